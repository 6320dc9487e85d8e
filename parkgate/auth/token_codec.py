"""
Auth - Token Codec

Émission et vérification des tokens JWT signés HMAC-SHA256.

Claims: sub (username), role (ADMIN|CUSTOMER), iat, exp.
Header: kid = identifiant de la clé ayant signé (rotation).

La vérification retourne un VerifyResult typé : un token absent, malformé,
mal signé ou expiré n'est jamais une exception pour l'appelant.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import jwt

from .interfaces import ITokenCodec, Identity, Role, Token, VerifyFailure, VerifyResult
from ..core.clock import Clock, utc_now
from ..core.interfaces import SecurityConfig


class TokenCodecError(Exception):
    """Erreur de configuration du codec (jamais levée par verify)."""

    pass


class SigningKeyRing:
    """
    Trousseau de clés HMAC avec une clé active.

    Rotation:
        - rotate() ajoute une clé et la rend active pour les nouveaux tokens
        - les tokens signés avec une ancienne clé restent valides tant que
          cette clé est dans le trousseau
        - retire() retire une ancienne clé (ses tokens deviennent invalides)

    Example:
        ring = SigningKeyRing({"k1": "..."}, active_key_id="k1")
        ring.rotate("k2", "...")
    """

    def __init__(self, keys: Dict[str, str], active_key_id: str):
        if not keys:
            raise TokenCodecError("Au moins une clé de signature est obligatoire")
        if active_key_id not in keys:
            raise TokenCodecError(f"Clé active inconnue: {active_key_id}")
        for key_id, secret in keys.items():
            if not secret:
                raise TokenCodecError(f"Secret vide pour la clé {key_id}")

        self._keys: Dict[str, str] = dict(keys)
        self._active_key_id = active_key_id

    @classmethod
    def from_config(cls, security: SecurityConfig) -> "SigningKeyRing":
        """Construit le trousseau depuis la section security (secrets déjà résolus)."""
        keys = {k.id: k.secret or "" for k in security.signing_keys}
        return cls(keys, active_key_id=security.active_key_id or "")

    @property
    def active_key_id(self) -> str:
        return self._active_key_id

    @property
    def key_ids(self) -> list:
        return list(self._keys)

    def active_secret(self) -> str:
        return self._keys[self._active_key_id]

    def get(self, key_id: str) -> Optional[str]:
        return self._keys.get(key_id)

    def rotate(self, key_id: str, secret: str) -> None:
        """Ajoute une clé et la rend active."""
        if not secret:
            raise TokenCodecError(f"Secret vide pour la clé {key_id}")
        self._keys[key_id] = secret
        self._active_key_id = key_id

    def retire(self, key_id: str) -> bool:
        """
        Retire une clé du trousseau.

        Raises:
            TokenCodecError: Si la clé est active

        Returns:
            True si retirée, False si inexistante
        """
        if key_id == self._active_key_id:
            raise TokenCodecError("Impossible de retirer la clé active")
        return self._keys.pop(key_id, None) is not None


class TokenCodec(ITokenCodec):
    """
    Codec JWT HS256.

    Example:
        codec = TokenCodec(ring, ttl=timedelta(minutes=30))
        token = codec.issue("admin@park.com", Role.ADMIN)
        result = codec.verify(token.bearer)
        assert result.valid
    """

    ALGORITHM: str = "HS256"

    def __init__(
        self,
        key_ring: SigningKeyRing,
        ttl: Optional[timedelta] = None,
        clock: Optional[Clock] = None,
        clock_skew: Optional[timedelta] = None,
    ):
        """
        Args:
            key_ring: Trousseau de clés (injecté, jamais codé en dur)
            ttl: Durée de vie des tokens (défaut: 30 min)
            clock: Horloge UTC injectable (tests)
            clock_skew: Tolérance d'horloge (défaut: aucune, expiration stricte)
        """
        self.key_ring = key_ring
        self.ttl = ttl if ttl is not None else timedelta(minutes=self.DEFAULT_TTL_MINUTES)
        self.clock = clock or utc_now
        self.clock_skew = clock_skew or timedelta(0)

        if self.ttl <= timedelta(0):
            raise TokenCodecError("La durée de vie du token doit être positive")

    @classmethod
    def from_config(cls, security: SecurityConfig, clock: Optional[Clock] = None) -> "TokenCodec":
        return cls(
            SigningKeyRing.from_config(security),
            ttl=timedelta(minutes=security.token_ttl_minutes),
            clock=clock,
            clock_skew=timedelta(seconds=security.clock_skew_seconds),
        )

    def issue(self, subject: str, role: Role) -> Token:
        """
        Émet un token signé avec la clé active.

        Raises:
            TokenCodecError: subject vide
        """
        if not subject:
            raise TokenCodecError("subject obligatoire")

        issued_at = int(self.clock().timestamp())
        expires_at = issued_at + int(self.ttl.total_seconds())
        key_id = self.key_ring.active_key_id

        payload = {
            "sub": subject,
            "role": role.value,
            "iat": issued_at,
            "exp": expires_at,
        }
        raw = jwt.encode(
            payload,
            self.key_ring.active_secret(),
            algorithm=self.ALGORITHM,
            headers={"kid": key_id, "typ": "JWT"},
        )

        return Token(
            raw=raw,
            subject=subject,
            role=role,
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
            key_id=key_id,
        )

    def verify(self, raw_token: Optional[str]) -> VerifyResult:
        """
        Vérifie un token.

        Ordre des contrôles: présence, format, clé (kid), signature,
        claims obligatoires, expiration (now >= exp -> expiré).
        """
        token = self.strip_scheme(raw_token)
        if not token:
            return VerifyResult.invalid(VerifyFailure.MISSING)

        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            return VerifyResult.invalid(VerifyFailure.MALFORMED, str(e))

        key_id = header.get("kid") or self.key_ring.active_key_id
        secret = self.key_ring.get(key_id)
        if secret is None:
            return VerifyResult.invalid(VerifyFailure.UNKNOWN_KEY, f"kid={key_id}")

        try:
            # Expiration vérifiée ci-dessous avec l'horloge injectée
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.ALGORITHM],
                options={
                    "require": ["exp", "iat", "sub"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidSignatureError as e:
            return VerifyResult.invalid(VerifyFailure.BAD_SIGNATURE, str(e))
        except jwt.InvalidTokenError as e:
            return VerifyResult.invalid(VerifyFailure.MALFORMED, str(e))

        exp = payload.get("exp")
        iat = payload.get("iat")
        if not isinstance(exp, (int, float)) or not isinstance(iat, (int, float)):
            return VerifyResult.invalid(VerifyFailure.MALFORMED, "iat/exp non numériques")

        now = self.clock().timestamp()
        skew = self.clock_skew.total_seconds()

        if now >= exp + skew:
            return VerifyResult.invalid(VerifyFailure.EXPIRED)
        if iat > now + skew:
            return VerifyResult.invalid(VerifyFailure.MALFORMED, "iat dans le futur")

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            return VerifyResult.invalid(VerifyFailure.MALFORMED, "sub invalide")

        try:
            role = Role.parse(str(payload.get("role", "")))
        except ValueError:
            return VerifyResult.invalid(VerifyFailure.MALFORMED, f"role invalide: {payload.get('role')}")

        return VerifyResult.ok(Identity(subject=subject, role=role))

    def strip_scheme(self, raw_token: Optional[str]) -> str:
        """Retire le préfixe 'Bearer ' s'il est présent."""
        if not raw_token:
            return ""
        token = raw_token.strip()
        if token == self.BEARER_PREFIX.strip():
            return ""
        if token.startswith(self.BEARER_PREFIX):
            token = token[len(self.BEARER_PREFIX):]
        return token.strip()
