"""
ParkGate - Core Interfaces
Contrats et types pour configuration et cryptographie.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class ValidationSeverity(Enum):
    BLOCKING = "blocking"
    WARNING = "warning"
    INFO = "info"


class ValidationError(BaseModel):
    """Problème détecté dans une configuration."""

    rule_id: str
    message: str
    location: str
    value: Optional[str] = None
    severity: ValidationSeverity = ValidationSeverity.BLOCKING


class ValidationResult(BaseModel):
    """Résultat de validation d'une configuration."""

    valid: bool
    errors: list[ValidationError] = []
    warnings: list[ValidationError] = []
    checked_at: datetime


class SigningKeyConfig(BaseModel):
    """
    Clé de signature HMAC.

    Le secret est fourni directement ou via une variable d'environnement
    (secret_env), résolue au chargement.
    """

    id: str
    secret: Optional[str] = None
    secret_env: Optional[str] = None


class SecurityConfig(BaseModel):
    """Paramètres de la passerelle d'authentification."""

    signing_keys: List[SigningKeyConfig] = []
    active_key_id: Optional[str] = None
    token_ttl_minutes: int = 30
    clock_skew_seconds: int = 0
    realm: str = "/auth"
    reject_invalid_tokens: bool = False


class PricingConfig(BaseModel):
    """Grille tarifaire. Valeurs par défaut = tarif de référence."""

    first_tier_minutes: int = 15
    first_tier_fee: Decimal = Decimal("5.00")
    second_tier_minutes: int = 60
    second_tier_fee: Decimal = Decimal("9.25")
    block_minutes: int = 15
    block_fee: Decimal = Decimal("1.75")
    loyalty_every: int = 10
    loyalty_rate: Decimal = Decimal("0.30")


class AccessRuleConfig(BaseModel):
    """Règle {méthode, pattern} -> rôles."""

    method: str = "*"
    pattern: str
    roles: List[str] = []
    public: bool = False


class ParkGateSettings(BaseModel):
    """Configuration complète ParkGate."""

    version: str = "1.0"
    timezone: str = "UTC"
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    access_policy: Optional[List[AccessRuleConfig]] = None


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class IConfigLoader(ABC):
    """Charge la configuration depuis fichiers YAML."""

    @abstractmethod
    async def load(self, name: str) -> ParkGateSettings:
        """
        Charge une configuration nommée.

        Raises:
            ConfigIntegrityError: Fichier absent ou structure invalide
        """
        pass


class IConfigValidator(ABC):
    """Valide une configuration chargée."""

    @abstractmethod
    def validate(self, settings: ParkGateSettings) -> ValidationResult:
        """
        Valide contre TOUTES les règles.
        Retourne TOUTES les erreurs (pas fail-fast).
        """
        pass

    @abstractmethod
    def validate_rule(self, rule_id: str, settings: ParkGateSettings) -> Optional[ValidationError]:
        """Valide UNE règle spécifique."""
        pass


class ICryptoProvider(ABC):
    """Signature et hachage pour la piste d'audit."""

    @abstractmethod
    def sign(self, data: bytes, key_id: str) -> bytes:
        """
        Signe des données avec ECDSA-P384.

        Returns:
            Signature DER-encoded
        """
        pass

    @abstractmethod
    def verify_signature(self, data: bytes, signature: bytes, key_id: str) -> bool:
        """Vérifie une signature ECDSA-P384."""
        pass

    @abstractmethod
    def hash(self, data: bytes) -> str:
        """
        Calcule hash SHA-384.

        Returns:
            Hash hex string (96 caractères)
        """
        pass

