"""
Parking - Slot Allocator

Attribution atomique des places.

Garanties:
    - deux check-ins concurrents n'obtiennent jamais la même place
    - release() sur une place FREE est sans effet
"""

import uuid
from typing import List, Optional

from .interfaces import ISlotStore, Slot, SlotStatus
from ..audit.interfaces import AuditEventType, IAuditEmitter
from ..core.exceptions import ConflictError, DuplicateKeyError, NotFoundError, ValidationFailedError
from ..logging import StructuredLogger
from ..observability.request_context import current_actor


SLOT_CODE_LENGTH: int = 4


class SlotNotFoundError(NotFoundError):
    """Place introuvable ou aucune place libre."""

    pass


class SlotCodeConflictError(ConflictError):
    """Code de place déjà utilisé."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Place avec code '{code}' déjà enregistrée")


class SlotAllocator:
    """
    Example:
        allocator = SlotAllocator(InMemorySlotStore(db))
        await allocator.create_slot("A-01")
        slot = await allocator.acquire_free()
        await allocator.release(slot.id)
    """

    def __init__(
        self,
        store: ISlotStore,
        audit: Optional[IAuditEmitter] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.store = store
        self.audit = audit
        self.logger = logger or StructuredLogger("parkgate.parking.slots")

    async def create_slot(self, code: str) -> Slot:
        """
        Crée une place FREE.

        Raises:
            ValidationFailedError: code différent de 4 caractères
            SlotCodeConflictError: code déjà utilisé
        """
        code = (code or "").strip()
        if len(code) != SLOT_CODE_LENGTH:
            raise ValidationFailedError(
                errors={"code": f"Le code doit contenir exactement {SLOT_CODE_LENGTH} caractères"}
            )

        slot = Slot(id=str(uuid.uuid4()), code=code, status=SlotStatus.FREE)
        try:
            await self.store.add(slot)
        except DuplicateKeyError:
            self.logger.warn("Code de place déjà utilisé", code=code)
            raise SlotCodeConflictError(code)

        if self.audit:
            await self.audit.emit_event(
                AuditEventType.SLOT_CREATED,
                actor=current_actor(),
                action="create_slot",
                resource_id=slot.id,
                metadata={"code": code},
            )
        return slot

    async def get_by_code(self, code: str) -> Slot:
        """
        Raises:
            SlotNotFoundError: code inconnu
        """
        slot = await self.store.find_by_code(code)
        if slot is None:
            raise SlotNotFoundError(f"Place avec code '{code}' introuvable")
        return slot

    async def acquire_free(self) -> Slot:
        """
        Réserve une place libre (passage OCCUPIED atomique).

        Raises:
            SlotNotFoundError: aucune place libre
        """
        slot = await self.store.acquire_free()
        if slot is None:
            self.logger.warn("Aucune place libre")
            raise SlotNotFoundError("Aucune place libre")
        return slot

    async def release(self, slot_id: str) -> None:
        await self.store.release(slot_id)

    async def list_slots(self) -> List[Slot]:
        return await self.store.list_all()
