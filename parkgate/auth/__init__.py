"""
Authentication & Authorization

Passerelle sans état : token signé -> identité -> politique d'accès.
"""

from .interfaces import (
    ITokenCodec,
    IUserLookup,
    Identity,
    Role,
    Token,
    UserRecord,
    VerifyFailure,
    VerifyResult,
)
from .token_codec import SigningKeyRing, TokenCodec, TokenCodecError
from .auth_gate import AuthGate, AuthOutcome, AuthState
from .access_policy import AccessPolicy, AccessRule, DEFAULT_RULES
from .user_registry import InMemoryUserRegistry, PasswordChangeError, UsernameConflictError
from .authenticator import Authenticator

__all__ = [
    # Interfaces
    "ITokenCodec",
    "IUserLookup",
    # Data classes
    "Identity",
    "Role",
    "Token",
    "UserRecord",
    "VerifyFailure",
    "VerifyResult",
    "AuthOutcome",
    "AuthState",
    "AccessRule",
    "DEFAULT_RULES",
    # Implementations
    "SigningKeyRing",
    "TokenCodec",
    "AuthGate",
    "AccessPolicy",
    "InMemoryUserRegistry",
    "Authenticator",
    # Exceptions
    "TokenCodecError",
    "UsernameConflictError",
    "PasswordChangeError",
]
