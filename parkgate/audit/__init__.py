"""
Audit & Traçabilité

Piste d'audit signée des authentifications et des sessions facturées.
"""
from .interfaces import IAuditEmitter, AuditEvent, AuditEventType
from .audit_emitter import AuditEmitter, AuditEmitterError

__all__ = [
    # Interfaces
    "IAuditEmitter",
    # Data classes
    "AuditEvent",
    "AuditEventType",
    # Implementations
    "AuditEmitter",
    # Exceptions
    "AuditEmitterError",
]
