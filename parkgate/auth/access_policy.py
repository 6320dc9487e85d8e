"""
Auth - Access Policy

Politique déclarative {méthode, pattern de route} -> rôles requis,
évaluée une fois par requête après résolution de l'identité.

Règles:
    - première règle correspondante gagnante
    - règle publique : aucune identité requise
    - aucune règle : identité requise, tout rôle accepté
    - identité absente sur route protégée -> 401 (challenge)
    - rôle hors de l'ensemble requis      -> 403
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional

from .interfaces import Identity, Role
from ..core.exceptions import AuthenticationRequiredError, ForbiddenError
from ..core.interfaces import AccessRuleConfig
from ..observability.request_context import get_current_identity


@dataclass(frozen=True)
class AccessRule:
    """
    Règle d'accès.

    Attributes:
        method: Méthode HTTP ou '*'
        pattern: Route; '*' = un segment, '**' = reste du chemin
        roles: Rôles autorisés (vide = tout rôle authentifié)
        public: True si aucune identité n'est requise
    """

    method: str
    pattern: str
    roles: FrozenSet[Role] = frozenset()
    public: bool = False

    def matches(self, method: str, path: str) -> bool:
        if self.method != "*" and self.method.upper() != method.upper():
            return False
        return _compile_pattern(self.pattern).match(_normalize_path(path)) is not None


def _normalize_path(path: str) -> str:
    path = path.split("?", 1)[0]
    if len(path) > 1:
        path = path.rstrip("/")
    return path if path.startswith("/") else f"/{path}"


def _compile_pattern(pattern: str) -> "re.Pattern[str]":
    # Échapper puis remplacer les jokers échappés
    escaped = re.escape(_normalize_path(pattern))
    regex = escaped.replace(r"\*\*", ".*").replace(r"\*", "[^/]+")
    return re.compile(f"^{regex}$")


def admin_only(method: str, pattern: str) -> AccessRule:
    return AccessRule(method, pattern, frozenset({Role.ADMIN}))


def customer_only(method: str, pattern: str) -> AccessRule:
    return AccessRule(method, pattern, frozenset({Role.CUSTOMER}))


DEFAULT_RULES: List[AccessRule] = [
    AccessRule("POST", "/auth", public=True),
    AccessRule("POST", "/users", public=True),
    admin_only("GET", "/users"),
    AccessRule("GET", "/users/*", frozenset({Role.ADMIN, Role.CUSTOMER})),
    AccessRule("PATCH", "/users/*", frozenset({Role.ADMIN, Role.CUSTOMER})),
    admin_only("POST", "/slots"),
    admin_only("GET", "/slots/*"),
    admin_only("GET", "/customers"),
    customer_only("GET", "/customers/me"),
    customer_only("POST", "/customers"),
    admin_only("POST", "/parkings/check-in"),
    AccessRule("GET", "/parkings/check-in/*", frozenset({Role.ADMIN, Role.CUSTOMER})),
    admin_only("PUT", "/parkings/check-out/*"),
    admin_only("GET", "/parkings/national-id/*"),
    customer_only("GET", "/parkings"),
]


class AccessPolicy:
    """
    Évaluation de la politique d'accès.

    Example:
        policy = AccessPolicy()
        policy.enforce("PUT", "/parkings/check-out/20250101-101500", identity)
    """

    def __init__(self, rules: Optional[Iterable[AccessRule]] = None, realm: str = "/auth"):
        self.rules: List[AccessRule] = list(rules) if rules is not None else list(DEFAULT_RULES)
        self.realm = realm

    @classmethod
    def from_config(cls, rules: Optional[List[AccessRuleConfig]], realm: str = "/auth") -> "AccessPolicy":
        """
        Construit la politique depuis la configuration.

        Raises:
            ValueError: Rôle inconnu dans une règle
        """
        if rules is None:
            return cls(realm=realm)
        return cls(
            [
                AccessRule(
                    method=r.method,
                    pattern=r.pattern,
                    roles=frozenset(Role.parse(role) for role in r.roles),
                    public=r.public,
                )
                for r in rules
            ],
            realm=realm,
        )

    def match(self, method: str, path: str) -> Optional[AccessRule]:
        """Première règle correspondant à (method, path)."""
        for rule in self.rules:
            if rule.matches(method, path):
                return rule
        return None

    def is_allowed(self, method: str, path: str, identity: Optional[Identity]) -> bool:
        try:
            self.enforce(method, path, identity)
        except (AuthenticationRequiredError, ForbiddenError):
            return False
        return True

    def enforce(self, method: str, path: str, identity: Optional[Identity] = None) -> Optional[AccessRule]:
        """
        Vérifie l'accès; l'identité par défaut est celle du contexte de requête.

        Returns:
            Règle appliquée (None si aucune)

        Raises:
            AuthenticationRequiredError: Identité absente sur route protégée
            ForbiddenError: Rôle non autorisé
        """
        if identity is None:
            identity = get_current_identity()

        rule = self.match(method, path)

        if rule is not None and rule.public:
            return rule

        if identity is None:
            raise AuthenticationRequiredError("Authentification requise", realm=self.realm)

        if rule is not None and rule.roles and identity.role not in rule.roles:
            raise ForbiddenError(
                f"Accès refusé: rôle {identity.role.value} non autorisé pour {method.upper()} {path}"
            )

        return rule
