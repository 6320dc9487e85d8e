"""
ParkGate - Taxonomie des erreurs

Chaque erreur métier porte le code HTTP que la couche frontière renverra.
Les composants purs (TokenCodec, PricingEngine) ne lèvent rien pour les cas
attendus : ils retournent des résultats typés.
"""

from typing import Dict, Optional

from pydantic import ValidationError as PydanticValidationError


class ParkGateError(Exception):
    """Erreur de base ParkGate."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(ParkGateError):
    """Entité introuvable (client, session, place, reçu)."""

    status_code = 404


class ConflictError(ParkGateError):
    """Violation d'unicité (username, national_id, code place, reçu)."""

    status_code = 409
    retryable: bool = False


class InvalidCredentialsError(ParkGateError):
    """Identifiants invalides lors de la connexion."""

    status_code = 400

    def __init__(self, message: str = "Nom d'utilisateur ou mot de passe invalide") -> None:
        super().__init__(message)


class AuthenticationRequiredError(ParkGateError):
    """Identité absente sur une route protégée."""

    status_code = 401

    def __init__(self, message: str = "Authentification requise", realm: str = "/auth") -> None:
        self.realm = realm
        super().__init__(message)

    @property
    def challenge(self) -> str:
        """Valeur du header WWW-Authenticate."""
        return f"Bearer realm='{self.realm}'"


class ForbiddenError(ParkGateError):
    """Rôle insuffisant pour la route demandée."""

    status_code = 403


class ValidationFailedError(ParkGateError):
    """Entrée malformée."""

    status_code = 422

    def __init__(self, message: str = "Paramètres invalides", errors: Optional[Dict[str, str]] = None) -> None:
        self.errors = errors or {}
        super().__init__(message)

    @classmethod
    def from_pydantic(cls, error: PydanticValidationError) -> "ValidationFailedError":
        """Une entrée champ -> message par champ en erreur (premier message gardé)."""
        errors: Dict[str, str] = {}
        for item in error.errors():
            field = ".".join(str(part) for part in item.get("loc", ())) or "__root__"
            errors.setdefault(field, item.get("msg", "invalide"))
        return cls(errors=errors)


class InternalError(ParkGateError):
    """Erreur inattendue - jamais détaillée à l'appelant."""

    status_code = 500


class DuplicateKeyError(Exception):
    """
    Violation de clé unique remontée par un store.

    Jamais propagée telle quelle : les services la convertissent
    en ConflictError au point d'insertion.
    """

    def __init__(self, key: str, value: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Duplicate {key}: {value}")
