"""
Auth - Interfaces

Définit les contrats pour l'authentification et l'autorisation.
Toute implémentation DOIT respecter ces interfaces.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Role(Enum):
    """Rôles applicatifs."""

    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """
        Convertit une valeur de claim en rôle.

        Accepte le préfixe 'ROLE_' historique.

        Raises:
            ValueError: Rôle inconnu
        """
        normalized = (value or "").upper()
        if normalized.startswith("ROLE_"):
            normalized = normalized[len("ROLE_"):]
        return cls(normalized)


@dataclass(frozen=True)
class Identity:
    """
    Identité authentifiée attachée à une requête.

    Attributes:
        subject: Username unique (claim sub)
        role: Rôle applicatif
        user_id: Identifiant interne (résolu via UserLookup)
    """

    subject: str
    role: Role
    user_id: Optional[str] = None


@dataclass(frozen=True)
class Token:
    """
    Token signé émis par le TokenCodec. Jamais persisté.

    Attributes:
        raw: JWT compact (sans préfixe Bearer)
        subject: Username
        role: Rôle (claim role)
        issued_at: Émission (claim iat)
        expires_at: Expiration (claim exp)
        key_id: Clé ayant signé (header kid)
    """

    raw: str
    subject: str
    role: Role
    issued_at: datetime
    expires_at: datetime
    key_id: str

    @property
    def bearer(self) -> str:
        """Valeur prête pour le header Authorization."""
        return f"Bearer {self.raw}"


class VerifyFailure(Enum):
    """Motif d'échec de vérification."""

    MISSING = "missing"
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    UNKNOWN_KEY = "unknown_key"
    EXPIRED = "expired"


@dataclass(frozen=True)
class VerifyResult:
    """
    Résultat typé de vérification : jamais d'exception pour les cas attendus.

    valid=True  -> identity renseignée (sans user_id, non résolu)
    valid=False -> failure renseigné
    """

    identity: Optional[Identity] = None
    failure: Optional[VerifyFailure] = None
    detail: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.identity is not None

    @classmethod
    def ok(cls, identity: Identity) -> "VerifyResult":
        return cls(identity=identity)

    @classmethod
    def invalid(cls, failure: VerifyFailure, detail: Optional[str] = None) -> "VerifyResult":
        return cls(failure=failure, detail=detail)


@dataclass(frozen=True)
class UserRecord:
    """Utilisateur tel que fourni par le store externe."""

    id: str
    username: str
    password_hash: str
    role: Role


class IUserLookup(ABC):
    """Accès en lecture au référentiel utilisateurs."""

    @abstractmethod
    async def find_by_username(self, username: str) -> Optional[UserRecord]:
        """
        Recherche un utilisateur.

        Returns:
            UserRecord ou None si inconnu
        """
        pass


class ITokenCodec(ABC):
    """
    Interface émission/vérification de tokens signés.

    Durée de vie par défaut : 30 minutes.
    """

    DEFAULT_TTL_MINUTES: int = 30
    BEARER_PREFIX: str = "Bearer "

    @abstractmethod
    def issue(self, subject: str, role: Role) -> Token:
        """
        Émet un token signé pour (subject, role).

        Pur étant donnés la clé et l'horloge.
        """
        pass

    @abstractmethod
    def verify(self, raw_token: Optional[str]) -> VerifyResult:
        """
        Vérifie signature et expiration.

        Args:
            raw_token: Token brut, préfixe 'Bearer ' optionnel

        Returns:
            VerifyResult (jamais d'exception pour token invalide/expiré)
        """
        pass
