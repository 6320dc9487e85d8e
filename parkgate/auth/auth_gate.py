"""
Auth - Auth Gate

Filtre par requête : header Authorization -> identité attachée au contexte,
ou passage anonyme.

Transitions:
    pas de token / mauvais schéma -> ANONYMOUS
    token invalide ou expiré      -> ANONYMOUS (ou 401 si reject_invalid_tokens)
    token valide, sujet inconnu   -> ANONYMOUS
    token valide, sujet résolu    -> AUTHENTICATED

La décision de refuser une route sans identité appartient à l'AccessPolicy.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from .interfaces import ITokenCodec, IUserLookup, Identity, VerifyFailure
from ..core.exceptions import AuthenticationRequiredError
from ..logging import StructuredLogger
from ..observability.request_context import set_current_identity


AUTHORIZATION_HEADER: str = "Authorization"


class AuthState(Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class AuthOutcome:
    """Résultat du filtre pour une requête."""

    state: AuthState
    identity: Optional[Identity] = None
    failure: Optional[VerifyFailure] = None

    @property
    def authenticated(self) -> bool:
        return self.state == AuthState.AUTHENTICATED


class AuthGate:
    """
    Passerelle d'authentification sans état serveur.

    Example:
        gate = AuthGate(codec, user_registry)
        with request_scope():
            outcome = await gate.authenticate({"Authorization": token.bearer})
            get_current_identity()  # identité ou None
    """

    def __init__(
        self,
        codec: ITokenCodec,
        user_lookup: IUserLookup,
        logger: Optional[StructuredLogger] = None,
        reject_invalid_tokens: bool = False,
        realm: str = "/auth",
    ):
        """
        Args:
            codec: Codec de vérification des tokens
            user_lookup: Résolution username -> utilisateur
            logger: Logger structuré
            reject_invalid_tokens: True = 401 immédiat sur token invalide/expiré
            realm: Realm annoncé dans le challenge WWW-Authenticate
        """
        self.codec = codec
        self.user_lookup = user_lookup
        self.logger = logger or StructuredLogger("parkgate.auth.gate")
        self.reject_invalid_tokens = reject_invalid_tokens
        self.realm = realm

    async def authenticate(self, headers: Mapping[str, str]) -> AuthOutcome:
        """
        Traite le header Authorization de la requête courante.

        L'identité résolue est attachée au contexte de requête (ContextVar).

        Raises:
            AuthenticationRequiredError: token invalide et reject_invalid_tokens
        """
        set_current_identity(None)
        header = self._get_authorization(headers)

        if not header or not header.startswith(self.codec.BEARER_PREFIX):
            self.logger.info("Token absent ou sans préfixe Bearer, requête anonyme")
            return AuthOutcome(AuthState.ANONYMOUS, failure=VerifyFailure.MISSING)

        result = self.codec.verify(header)

        if not result.valid:
            self.logger.warn(
                "Token invalide ou expiré",
                reason=result.failure.value if result.failure else None,
                detail=result.detail,
            )
            if self.reject_invalid_tokens:
                raise self.challenge("Token invalide ou expiré")
            return AuthOutcome(AuthState.ANONYMOUS, failure=result.failure)

        subject = result.identity.subject
        user = await self.user_lookup.find_by_username(subject)
        if user is None:
            self.logger.warn("Sujet du token inconnu, requête anonyme", subject=subject)
            if self.reject_invalid_tokens:
                raise self.challenge("Utilisateur inconnu")
            return AuthOutcome(AuthState.ANONYMOUS)

        identity = Identity(subject=user.username, role=user.role, user_id=user.id)
        set_current_identity(identity)
        self.logger.debug("Requête authentifiée", subject=identity.subject, role=identity.role.value)

        return AuthOutcome(AuthState.AUTHENTICATED, identity=identity)

    def challenge(self, message: str = "Authentification requise") -> AuthenticationRequiredError:
        """Construit l'erreur 401 portant le challenge du realm."""
        return AuthenticationRequiredError(message, realm=self.realm)

    def _get_authorization(self, headers: Mapping[str, str]) -> Optional[str]:
        # Noms de headers insensibles à la casse
        for name, value in headers.items():
            if name.lower() == AUTHORIZATION_HEADER.lower():
                return value
        return None
