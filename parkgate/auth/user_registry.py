"""
Auth - User Registry

Référentiel utilisateurs en mémoire, implémente IUserLookup.

Règles:
    - username = adresse e-mail, unique
    - mot de passe de 6 à 10 caractères, stocké uniquement haché (bcrypt)
    - hachage et vérification bcrypt hors de la boucle asyncio (thread)
"""

import asyncio
import re
import uuid
from dataclasses import replace
from typing import Dict, List, Optional

import bcrypt

from .interfaces import IUserLookup, Role, UserRecord
from ..audit.interfaces import AuditEventType, IAuditEmitter
from ..core.exceptions import ConflictError, DuplicateKeyError, NotFoundError, ParkGateError, ValidationFailedError
from ..logging import StructuredLogger
from ..observability.request_context import current_actor


EMAIL_PATTERN = re.compile(r"^[a-z0-9.+-]+@[a-z0-9.-]+\.[a-z]{2,}$")
PASSWORD_MIN_LENGTH: int = 6
PASSWORD_MAX_LENGTH: int = 10


class UsernameConflictError(ConflictError):
    """Username déjà enregistré."""

    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__(f"Username '{username}' déjà enregistré")


class PasswordChangeError(ParkGateError):
    """Mot de passe actuel faux ou confirmation différente."""

    status_code = 400


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def password_length_error(password: Optional[str]) -> Optional[str]:
    if not password or not (PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH):
        return f"Le mot de passe doit contenir entre {PASSWORD_MIN_LENGTH} et {PASSWORD_MAX_LENGTH} caractères"
    return None


def check_password(password: str, password_hash: str) -> bool:
    """Compare un mot de passe à son hash bcrypt; hash illisible = refus."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


class InMemoryUserRegistry(IUserLookup):
    """
    Référentiel utilisateurs.

    Note:
        Stockage en mémoire. Le store externe le remplace en production.

    Example:
        registry = InMemoryUserRegistry()
        user = await registry.register("admin@park.com", "123456", Role.ADMIN)
        await registry.find_by_username("admin@park.com")
    """

    def __init__(
        self,
        bcrypt_rounds: int = 12,
        audit: Optional[IAuditEmitter] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            bcrypt_rounds: Coût bcrypt (4 minimum, réduit dans les tests)
            audit: Piste d'audit optionnelle
            logger: Logger structuré
        """
        self.bcrypt_rounds = bcrypt_rounds
        self.audit = audit
        self.logger = logger or StructuredLogger("parkgate.auth.users")
        self._users: Dict[str, UserRecord] = {}
        self._by_username: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def register(self, username: str, password: str, role: Role = Role.CUSTOMER) -> UserRecord:
        """
        Crée un utilisateur.

        Raises:
            ValidationFailedError: e-mail ou mot de passe invalide
            UsernameConflictError: username déjà pris
        """
        errors = self.validate(username, password)
        if errors:
            raise ValidationFailedError(errors=errors)

        record = UserRecord(
            id=str(uuid.uuid4()),
            username=username,
            password_hash=await asyncio.to_thread(hash_password, password, self.bcrypt_rounds),
            role=role,
        )
        try:
            await self._insert(record)
        except DuplicateKeyError:
            self.logger.warn("Username déjà enregistré", username=username)
            raise UsernameConflictError(username)

        self.logger.info("Utilisateur enregistré", user_id=record.id, role=role.value)
        if self.audit:
            # Inscription publique : l'appelant anonyme est le nouvel utilisateur
            await self.audit.emit_event(
                AuditEventType.USER_CREATED,
                actor=current_actor(default=username),
                action="register_user",
                resource_id=record.id,
                metadata={"username": username, "role": role.value},
            )
        return record

    async def change_password(self, user_id: str, current: str, new: str, confirm: str) -> UserRecord:
        """
        Change le mot de passe d'un utilisateur.

        Raises:
            NotFoundError: utilisateur inconnu
            ValidationFailedError: nouveau mot de passe hors longueur
            PasswordChangeError: confirmation différente ou mot de passe actuel faux
        """
        user = await self.get_by_id(user_id)

        message = password_length_error(new)
        if message:
            raise ValidationFailedError(errors={"new_password": message})
        if new != confirm:
            raise PasswordChangeError("Le nouveau mot de passe ne correspond pas à la confirmation")
        if not await asyncio.to_thread(check_password, current or "", user.password_hash):
            self.logger.warn("Mot de passe actuel invalide", user_id=user_id)
            raise PasswordChangeError("Mot de passe actuel invalide")

        new_hash = await asyncio.to_thread(hash_password, new, self.bcrypt_rounds)
        async with self._lock:
            updated = replace(self._users[user_id], password_hash=new_hash)
            self._users[user_id] = updated

        self.logger.info("Mot de passe modifié", user_id=user_id)
        if self.audit:
            await self.audit.emit_event(
                AuditEventType.PASSWORD_CHANGED,
                actor=current_actor(default=user.username),
                action="change_password",
                resource_id=user_id,
            )
        return updated

    def validate(self, username: str, password: str) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        if not username or not EMAIL_PATTERN.match(username):
            errors["username"] = "Format d'e-mail invalide"
        message = password_length_error(password)
        if message:
            errors["password"] = message
        return errors

    async def _insert(self, record: UserRecord) -> None:
        async with self._lock:
            if record.username in self._by_username:
                raise DuplicateKeyError("username", record.username)
            self._users[record.id] = record
            self._by_username[record.username] = record.id

    async def find_by_username(self, username: str) -> Optional[UserRecord]:
        user_id = self._by_username.get(username)
        if user_id is None:
            return None
        return self._users.get(user_id)

    async def get_by_id(self, user_id: str) -> UserRecord:
        """
        Raises:
            NotFoundError: utilisateur inconnu
        """
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"Utilisateur id={user_id} introuvable")
        return user

    async def list_users(self) -> List[UserRecord]:
        return list(self._users.values())
