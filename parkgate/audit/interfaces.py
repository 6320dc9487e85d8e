"""
Audit - Interfaces

Piste d'audit signée : authentification et facturation des sessions.
Chaque événement est haché (SHA-384) puis signé (ECDSA-P384) ; une fois
émis, il n'est plus modifiable.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Dict, Any, Optional
from enum import Enum


class AuditEventType(Enum):
    """Types d'événements d'audit."""
    # Authentification
    TOKEN_ISSUED = "token_issued"
    FAILED_AUTH = "failed_auth"
    USER_CREATED = "user_created"
    PASSWORD_CHANGED = "password_changed"

    # Référentiel
    CUSTOMER_CREATED = "customer_created"
    SLOT_CREATED = "slot_created"

    # Sessions de stationnement
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"


@dataclass(frozen=True)
class AuditEvent:
    """
    Événement d'audit signé.

    Immutable pour garantir l'intégrité après signature.
    """
    event_id: str
    event_type: AuditEventType
    timestamp: datetime
    actor: str
    action: str
    resource_id: Optional[str]
    metadata: Dict[str, Any]
    correlation_id: Optional[str] = None
    signature: Optional[str] = None  # ECDSA-P384, base64
    hash_value: Optional[str] = None  # SHA-384 hex


class IAuditEmitter(ABC):
    """
    Interface émetteur d'événements d'audit.

    Responsabilités:
        - Création événements signés
        - Hachage SHA-384
        - Conservation de la piste
    """

    @abstractmethod
    async def emit_event(
        self,
        event_type: AuditEventType,
        actor: str,
        action: str,
        resource_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """
        Émet un événement d'audit signé.

        Args:
            event_type: Type d'événement
            actor: Utilisateur (ou "system") à l'origine de l'action
            action: Action effectuée
            resource_id: Ressource affectée (reçu, code place...)
            metadata: Métadonnées additionnelles

        Raises:
            AuditEmitterError: Erreur création/signature
        """
        pass

    @abstractmethod
    def verify_event_signature(self, event: AuditEvent) -> bool:
        """Vérifie la signature d'un événement."""
        pass

    @abstractmethod
    def compute_event_hash(self, event: AuditEvent) -> str:
        """Calcule le hash SHA-384 d'un événement."""
        pass

    @abstractmethod
    def get_events(self, event_type: Optional[AuditEventType] = None) -> List[AuditEvent]:
        """Retourne la piste (filtrée par type si demandé)."""
        pass
