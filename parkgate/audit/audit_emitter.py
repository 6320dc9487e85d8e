"""
Audit - Audit Emitter Implementation

Émetteur d'événements d'audit avec signature cryptographique.
Les montants facturés y sont consignés pour rendre chaque prix vérifiable.
"""

import uuid
import json
import base64
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from .interfaces import IAuditEmitter, AuditEvent, AuditEventType
from ..core.crypto_provider import CryptoProvider
from ..observability.request_context import get_correlation_id


class AuditEmitterError(Exception):
    """Erreur émission événement audit."""

    pass


class AuditEmitter(IAuditEmitter):
    """
    Émetteur d'événements d'audit signés (ECDSA-P384) et hachés (SHA-384).

    Example:
        emitter = AuditEmitter(CryptoProvider())
        event = await emitter.emit_event(
            AuditEventType.CHECK_OUT,
            "admin@park.com",
            "check_out",
            resource_id="20250101-101500",
            metadata={"fee": "11.00", "discount": "0.00"},
        )
    """

    KEY_ID: str = "audit_key"
    MAX_STRING_LENGTH: int = 1000

    def __init__(self, crypto_provider: CryptoProvider, key_id: Optional[str] = None):
        """
        Args:
            crypto_provider: Fournisseur cryptographique pour signature
            key_id: Clé de signature (défaut: audit_key)
        """
        self.crypto_provider = crypto_provider
        self.key_id = key_id or self.KEY_ID
        self._events: List[AuditEvent] = []

    async def emit_event(
        self,
        event_type: AuditEventType,
        actor: str,
        action: str,
        resource_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """
        Émet événement d'audit signé.

        Raises:
            AuditEmitterError: Paramètres manquants ou type invalide
        """
        if not actor or not action:
            raise AuditEmitterError("actor et action sont obligatoires")

        if not isinstance(event_type, AuditEventType):
            raise AuditEmitterError(f"Type événement invalide: {event_type}")

        preliminary_event = AuditEvent(
            event_id=str(uuid.uuid4()),
            event_type=event_type,
            timestamp=datetime.now(timezone.utc),
            actor=actor,
            action=action,
            resource_id=resource_id,
            metadata=self._sanitize_metadata(metadata or {}),
            correlation_id=get_correlation_id(),
        )

        canonical = self._canonical_payload(preliminary_event).encode("utf-8")
        signature = base64.b64encode(self.crypto_provider.sign(canonical, self.key_id)).decode("utf-8")

        signed_event = AuditEvent(
            event_id=preliminary_event.event_id,
            event_type=preliminary_event.event_type,
            timestamp=preliminary_event.timestamp,
            actor=preliminary_event.actor,
            action=preliminary_event.action,
            resource_id=preliminary_event.resource_id,
            metadata=preliminary_event.metadata,
            correlation_id=preliminary_event.correlation_id,
            signature=signature,
            hash_value=self.crypto_provider.hash(canonical),
        )

        self._events.append(signed_event)
        return signed_event

    def verify_event_signature(self, event: AuditEvent) -> bool:
        """
        Vérifie signature et hash d'un événement.

        Returns:
            False si signature absente, invalide, ou hash ne correspondant plus
        """
        if not event.signature:
            return False

        canonical = self._canonical_payload(event).encode("utf-8")
        if event.hash_value != self.crypto_provider.hash(canonical):
            return False

        try:
            signature_bytes = base64.b64decode(event.signature, validate=True)
        except (ValueError, TypeError):
            return False

        return self.crypto_provider.verify_signature(canonical, signature_bytes, self.key_id)

    def compute_event_hash(self, event: AuditEvent) -> str:
        """Calcule hash SHA-384 de la représentation canonique."""
        return self.crypto_provider.hash(self._canonical_payload(event).encode("utf-8"))

    def get_events(self, event_type: Optional[AuditEventType] = None) -> List[AuditEvent]:
        if event_type is None:
            return list(self._events)
        return [e for e in self._events if e.event_type == event_type]

    def get_events_for_resource(self, resource_id: str) -> List[AuditEvent]:
        """Historique d'une ressource (ex: tous les événements d'un reçu)."""
        return [e for e in self._events if e.resource_id == resource_id]

    def _sanitize_metadata(self, metadata: Dict[str, Any]) -> Dict[str, Any]:
        """
        Ne garde que les scalaires JSON ; tronque les chaînes longues.

        Les montants Decimal sont convertis en chaîne pour rester exacts.
        """
        clean: Dict[str, Any] = {}

        for key, value in metadata.items():
            if not isinstance(key, str) or len(key) > 100:
                continue
            if isinstance(value, bool) or isinstance(value, (int, float)):
                clean[key] = value
            elif isinstance(value, str):
                clean[key] = value[: self.MAX_STRING_LENGTH]
            elif value is None:
                clean[key] = None
            else:
                clean[key] = str(value)[: self.MAX_STRING_LENGTH]

        return clean

    def _canonical_payload(self, event: AuditEvent) -> str:
        # Ordre fixe des champs, hors signature et hash
        payload = {
            "event_id": event.event_id,
            "event_type": event.event_type.value,
            "timestamp": event.timestamp.isoformat(),
            "actor": event.actor,
            "action": event.action,
            "resource_id": event.resource_id,
            "metadata": event.metadata,
            "correlation_id": event.correlation_id,
        }
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))
