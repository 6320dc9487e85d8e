"""
ParkGate - Config Validator Implementation
Valide la configuration avant démarrage de la passerelle.
"""

from datetime import datetime
from typing import Callable, Dict, Optional
from zoneinfo import ZoneInfoNotFoundError

from .clock import resolve_timezone
from .interfaces import (
    IConfigValidator,
    ParkGateSettings,
    ValidationError,
    ValidationResult,
    ValidationSeverity,
)

KNOWN_ROLES = {"ADMIN", "CUSTOMER"}


class ConfigValidator(IConfigValidator):
    """Validation des configurations ParkGate."""

    # HS256 : secret au moins aussi long que le digest
    MIN_SECRET_BYTES: int = 32
    MAX_TOKEN_TTL_MINUTES: int = 24 * 60

    def __init__(self):
        self._validators: Dict[str, Callable[[ParkGateSettings], Optional[ValidationError]]] = {
            "active_key": self._validate_active_key,
            "key_ids_unique": self._validate_key_ids_unique,
            "secret_length": self._validate_secret_length,
            "token_ttl": self._validate_token_ttl,
            "token_ttl_max": self._validate_token_ttl_max,
            "timezone": self._validate_timezone,
            "pricing": self._validate_pricing,
            "policy_roles": self._validate_policy_roles,
        }

    def validate(self, settings: ParkGateSettings) -> ValidationResult:
        """
        Valide une config contre TOUTES les règles.
        Retourne TOUTES les erreurs (pas fail-fast).
        """
        errors = []
        warnings = []

        for rule_id in self._validators:
            error = self.validate_rule(rule_id, settings)
            if error:
                if error.severity == ValidationSeverity.BLOCKING:
                    errors.append(error)
                elif error.severity == ValidationSeverity.WARNING:
                    warnings.append(error)

        return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings, checked_at=datetime.now())

    def validate_rule(self, rule_id: str, settings: ParkGateSettings) -> Optional[ValidationError]:
        """Valide UNE règle spécifique."""
        if rule_id not in self._validators:
            return ValidationError(
                rule_id=rule_id,
                message=f"Règle inconnue: {rule_id}",
                location="config",
                severity=ValidationSeverity.BLOCKING,
            )

        return self._validators[rule_id](settings)

    def _validate_active_key(self, settings: ParkGateSettings) -> Optional[ValidationError]:
        """La clé active doit exister dans le trousseau."""
        security = settings.security
        key_ids = [k.id for k in security.signing_keys]

        if not key_ids:
            return ValidationError(
                rule_id="active_key",
                message="Aucune clé de signature configurée",
                location="security.signing_keys",
            )

        if security.active_key_id not in key_ids:
            return ValidationError(
                rule_id="active_key",
                message=f"Clé active inconnue: {security.active_key_id}",
                location="security.active_key_id",
                value=str(security.active_key_id),
            )

        return None

    def _validate_key_ids_unique(self, settings: ParkGateSettings) -> Optional[ValidationError]:
        seen = set()
        for key in settings.security.signing_keys:
            if key.id in seen:
                return ValidationError(
                    rule_id="key_ids_unique",
                    message=f"Identifiant de clé dupliqué: {key.id}",
                    location="security.signing_keys",
                    value=key.id,
                )
            seen.add(key.id)
        return None

    def _validate_secret_length(self, settings: ParkGateSettings) -> Optional[ValidationError]:
        """Secret HMAC >= 32 octets."""
        for key in settings.security.signing_keys:
            secret = key.secret or ""
            if len(secret.encode("utf-8")) < self.MIN_SECRET_BYTES:
                return ValidationError(
                    rule_id="secret_length",
                    message=f"Secret de la clé {key.id} trop court (minimum {self.MIN_SECRET_BYTES} octets)",
                    location=f"security.signing_keys[{key.id}]",
                )
        return None

    def _validate_token_ttl(self, settings: ParkGateSettings) -> Optional[ValidationError]:
        ttl = settings.security.token_ttl_minutes
        if ttl <= 0:
            return ValidationError(
                rule_id="token_ttl",
                message="token_ttl_minutes doit être positif",
                location="security.token_ttl_minutes",
                value=str(ttl),
            )
        return None

    def _validate_token_ttl_max(self, settings: ParkGateSettings) -> Optional[ValidationError]:
        ttl = settings.security.token_ttl_minutes
        if ttl > self.MAX_TOKEN_TTL_MINUTES:
            return ValidationError(
                rule_id="token_ttl_max",
                message=f"Durée de token {ttl} min supérieure à 24h",
                location="security.token_ttl_minutes",
                value=str(ttl),
                severity=ValidationSeverity.WARNING,
            )
        return None

    def _validate_timezone(self, settings: ParkGateSettings) -> Optional[ValidationError]:
        try:
            resolve_timezone(settings.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            return ValidationError(
                rule_id="timezone",
                message=f"Fuseau horaire inconnu: {settings.timezone}",
                location="timezone",
                value=settings.timezone,
            )
        return None

    def _validate_pricing(self, settings: ParkGateSettings) -> Optional[ValidationError]:
        """Paliers croissants, montants et taux positifs."""
        pricing = settings.pricing

        if not 0 < pricing.first_tier_minutes < pricing.second_tier_minutes:
            return ValidationError(
                rule_id="pricing",
                message="Les paliers doivent être croissants et positifs",
                location="pricing",
            )

        if pricing.block_minutes <= 0 or pricing.loyalty_every <= 0:
            return ValidationError(
                rule_id="pricing",
                message="block_minutes et loyalty_every doivent être positifs",
                location="pricing",
            )

        for field_name in ("first_tier_fee", "second_tier_fee", "block_fee", "loyalty_rate"):
            if getattr(pricing, field_name) < 0:
                return ValidationError(
                    rule_id="pricing",
                    message=f"{field_name} ne peut être négatif",
                    location=f"pricing.{field_name}",
                    value=str(getattr(pricing, field_name)),
                )

        if pricing.loyalty_rate > 1:
            return ValidationError(
                rule_id="pricing",
                message="loyalty_rate doit être <= 1",
                location="pricing.loyalty_rate",
                value=str(pricing.loyalty_rate),
            )

        return None

    def _validate_policy_roles(self, settings: ParkGateSettings) -> Optional[ValidationError]:
        """Les règles d'accès ne citent que des rôles connus."""
        for rule in settings.access_policy or []:
            for role in rule.roles:
                if role not in KNOWN_ROLES:
                    return ValidationError(
                        rule_id="policy_roles",
                        message=f"Rôle inconnu '{role}' dans la politique d'accès",
                        location=f"access_policy[{rule.method} {rule.pattern}]",
                        value=role,
                    )
        return None
