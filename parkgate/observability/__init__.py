"""
Observability

Contexte de requête : correlation_id et identité authentifiée.
"""

from .request_context import (
    CORRELATION_HEADER,
    RequestContext,
    correlation_id_var,
    current_actor,
    current_context,
    get_correlation_id,
    get_current_identity,
    identity_var,
    request_scope,
    set_current_identity,
)

__all__ = [
    "CORRELATION_HEADER",
    "RequestContext",
    "correlation_id_var",
    "identity_var",
    "current_actor",
    "current_context",
    "get_correlation_id",
    "get_current_identity",
    "set_current_identity",
    "request_scope",
]
