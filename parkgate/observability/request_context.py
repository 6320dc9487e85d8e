"""
Observability - Contexte de requête

Identité authentifiée et correlation_id attachés à la requête courante.

Utilise ContextVar : chaque requête (tâche asyncio) voit son propre contexte,
sans état partagé entre requêtes parallèles.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Optional

if TYPE_CHECKING:
    from ..auth.interfaces import Identity


# Header standard pour propagation HTTP
CORRELATION_HEADER: str = "X-Correlation-ID"

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
identity_var: ContextVar[Optional["Identity"]] = ContextVar("identity", default=None)


@dataclass(frozen=True)
class RequestContext:
    """Vue figée du contexte de la requête courante."""

    correlation_id: Optional[str]
    identity: Optional["Identity"]

    @property
    def authenticated(self) -> bool:
        return self.identity is not None


def get_correlation_id() -> Optional[str]:
    """Retourne le correlation_id de la requête courante."""
    return correlation_id_var.get()


def get_current_identity() -> Optional["Identity"]:
    """Retourne l'identité attachée à la requête courante (None = anonyme)."""
    return identity_var.get()


def set_current_identity(identity: Optional["Identity"]) -> None:
    """Attache une identité pour le reste de la requête."""
    identity_var.set(identity)


def current_actor(default: str = "system") -> str:
    """Sujet de l'identité courante, pour la piste d'audit."""
    identity = identity_var.get()
    return identity.subject if identity is not None else default


def current_context() -> RequestContext:
    return RequestContext(correlation_id=correlation_id_var.get(), identity=identity_var.get())


@contextmanager
def request_scope(correlation_id: Optional[str] = None) -> Iterator[RequestContext]:
    """
    Ouvre un contexte de requête neuf.

    Génère un correlation_id si absent ; identité et correlation_id sont
    restaurés à la sortie, même en cas d'exception.

    Example:
        with request_scope() as ctx:
            gate.authenticate(headers)
            identity = get_current_identity()
    """
    correlation_token = correlation_id_var.set(correlation_id or str(uuid.uuid4()))
    identity_token = identity_var.set(None)
    try:
        yield current_context()
    finally:
        identity_var.reset(identity_token)
        correlation_id_var.reset(correlation_token)
