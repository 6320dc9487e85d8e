"""
Auth - Authenticator

Connexion username/mot de passe et émission de tokens.
Chaque émission et chaque échec sont tracés dans la piste d'audit.
"""

import asyncio
from typing import Optional

from .interfaces import ITokenCodec, Token
from .user_registry import InMemoryUserRegistry, check_password
from ..audit.interfaces import AuditEventType, IAuditEmitter
from ..core.exceptions import InvalidCredentialsError, NotFoundError
from ..logging import StructuredLogger


class Authenticator:
    """
    Example:
        authenticator = Authenticator(registry, codec, audit)
        token = await authenticator.login("admin@park.com", "123456")
        headers = {"Authorization": token.bearer}
    """

    def __init__(
        self,
        users: InMemoryUserRegistry,
        codec: ITokenCodec,
        audit: Optional[IAuditEmitter] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.users = users
        self.codec = codec
        self.audit = audit
        self.logger = logger or StructuredLogger("parkgate.auth.authenticator")

    async def login(self, username: str, password: str) -> Token:
        """
        Vérifie les identifiants et émet un token.

        Le message d'erreur ne distingue pas username inconnu et
        mot de passe faux.

        Raises:
            InvalidCredentialsError: identifiants invalides
        """
        user = await self.users.find_by_username(username)

        # bcrypt hors de la boucle asyncio
        valid = user is not None and await asyncio.to_thread(check_password, password or "", user.password_hash)
        if not valid:
            self.logger.warn("Échec d'authentification", username=username)
            if self.audit:
                await self.audit.emit_event(
                    AuditEventType.FAILED_AUTH,
                    actor=username or "anonymous",
                    action="login",
                    metadata={"reason": "invalid_credentials"},
                )
            raise InvalidCredentialsError()

        return await self._issue(user.username, user.role, user.id)

    async def issue_token(self, username: str) -> Token:
        """
        Émet un token pour un utilisateur existant (rôle lu dans le référentiel).

        Raises:
            NotFoundError: utilisateur inconnu
        """
        user = await self.users.find_by_username(username)
        if user is None:
            raise NotFoundError(f"Utilisateur '{username}' introuvable")
        return await self._issue(user.username, user.role, user.id)

    async def _issue(self, username, role, user_id) -> Token:
        token = self.codec.issue(username, role)

        self.logger.info("Token émis", subject=username, role=role.value, key_id=token.key_id)
        if self.audit:
            await self.audit.emit_event(
                AuditEventType.TOKEN_ISSUED,
                actor=username,
                action="issue_token",
                resource_id=user_id,
                metadata={
                    "role": role.value,
                    "key_id": token.key_id,
                    "expires_at": token.expires_at.isoformat(),
                },
            )
        return token
