"""
Parking - Session Lifecycle

Check-in et check-out des véhicules.

Cycle de vie:
    check-in  -> session ouverte (place OCCUPIED, reçu YYYYMMDD-HHMMSS)
    check-out -> session clôturée (fee + discount, place FREE)

Une session clôturée est terminale : un second check-out du même reçu
échoue en NotFound.
"""

import uuid
from datetime import datetime, timezone, tzinfo
from typing import Any, List, Mapping, Optional, Union

from .customers import CustomerNotFoundError
from .interfaces import CheckInRequest, ICustomerStore, ISessionStore, ParkingSession
from .pricing import PricingEngine
from .slot_allocator import SlotAllocator
from ..audit.interfaces import AuditEventType, IAuditEmitter
from ..core.clock import Clock, utc_now
from ..core.exceptions import ConflictError, DuplicateKeyError, NotFoundError
from ..logging import StructuredLogger
from ..observability.request_context import current_actor


RECEIPT_FORMAT: str = "%Y%m%d-%H%M%S"


class SessionNotFoundError(NotFoundError):
    """Aucune session ouverte pour ce reçu."""

    pass


class ReceiptConflictError(ConflictError):
    """Reçu déjà attribué (deux check-ins dans la même seconde). Réessayable."""

    retryable = True

    def __init__(self, receipt: str) -> None:
        self.receipt = receipt
        super().__init__(f"Reçu {receipt} déjà attribué, réessayer")


def make_receipt(entry_time: datetime) -> str:
    return entry_time.strftime(RECEIPT_FORMAT)


class SessionLifecycle:
    """
    Orchestration check-in / check-out.

    Example:
        lifecycle = SessionLifecycle(customers, allocator, sessions, PricingEngine())
        session = await lifecycle.check_in({
            "plate": "ABC-1234", "brand": "Fiat", "model": "Uno",
            "color": "Blanc", "national_id": "52998224725",
        })
        closed = await lifecycle.check_out(session.receipt)
    """

    def __init__(
        self,
        customers: ICustomerStore,
        slots: SlotAllocator,
        sessions: ISessionStore,
        pricing: PricingEngine,
        clock: Optional[Clock] = None,
        tz: Optional[tzinfo] = None,
        audit: Optional[IAuditEmitter] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            customers: Store clients
            slots: Allocateur de places
            sessions: Store sessions
            pricing: Moteur de tarification
            clock: Horloge UTC injectable
            tz: Fuseau des horodatages et reçus (défaut: UTC)
            audit: Piste d'audit optionnelle
            logger: Logger structuré
        """
        self.customers = customers
        self.slots = slots
        self.sessions = sessions
        self.pricing = pricing
        self.clock = clock or utc_now
        self.tz = tz or timezone.utc
        self.audit = audit
        self.logger = logger or StructuredLogger("parkgate.parking.lifecycle")

    def now(self) -> datetime:
        return self.clock().astimezone(self.tz)

    async def check_in(self, request: Union[CheckInRequest, Mapping[str, Any]]) -> ParkingSession:
        """
        Ouvre une session pour le client désigné par son CPF.

        Raises:
            ValidationFailedError: demande invalide
            CustomerNotFoundError: CPF inconnu
            SlotNotFoundError: aucune place libre
            ReceiptConflictError: reçu déjà attribué (place relâchée)
        """
        if not isinstance(request, CheckInRequest):
            request = CheckInRequest.parse(request)

        customer = await self.customers.find_by_national_id(request.national_id)
        if customer is None:
            raise CustomerNotFoundError(f"Client CPF '{request.national_id}' introuvable")

        slot = await self.slots.acquire_free()

        entry_time = self.now()
        session = ParkingSession(
            id=str(uuid.uuid4()),
            customer_id=customer.id,
            slot_id=slot.id,
            receipt=make_receipt(entry_time),
            vehicle=request.vehicle(),
            entry_time=entry_time,
        )

        try:
            await self.sessions.create_open(session)
        except DuplicateKeyError:
            await self.slots.release(slot.id)
            self.logger.warn("Collision de reçu, place relâchée", receipt=session.receipt, slot=slot.code)
            raise ReceiptConflictError(session.receipt)
        except Exception:
            await self.slots.release(slot.id)
            raise

        self.logger.info(
            "Check-in effectué",
            receipt=session.receipt,
            slot=slot.code,
            plate=request.plate,
            national_id=customer.national_id,
        )
        if self.audit:
            await self.audit.emit_event(
                AuditEventType.CHECK_IN,
                actor=current_actor(),
                action="check_in",
                resource_id=session.receipt,
                metadata={
                    "slot": slot.code,
                    "plate": request.plate,
                    "customer_id": customer.id,
                    "entry_time": entry_time.isoformat(),
                },
            )
        return session

    async def check_out(self, receipt: str) -> ParkingSession:
        """
        Clôture la session ouverte du reçu : tarif, remise, libération de place.

        Raises:
            SessionNotFoundError: pas de session ouverte pour ce reçu
        """
        session = await self.sessions.find_open_by_receipt(receipt)
        if session is None:
            raise SessionNotFoundError(f"Reçu '{receipt}' introuvable ou check-out déjà effectué")

        customer = await self.customers.get(session.customer_id)
        if customer is None:
            raise CustomerNotFoundError(f"Client id={session.customer_id} introuvable")

        exit_time = self.now()
        minutes = self.pricing.minutes_between(session.entry_time, exit_time)
        fee = self.pricing.fee_for_minutes(minutes)
        settled = {}

        def settle(current: ParkingSession, completed: int) -> ParkingSession:
            # Appelé sous le verrou du store
            settled["completed"] = completed
            return current.close(exit_time, fee, self.pricing.discount(fee, completed))

        closed = await self.sessions.close_and_persist(session.id, settle)
        if closed is None:
            raise SessionNotFoundError(f"Reçu '{receipt}' introuvable ou check-out déjà effectué")
        discount = closed.discount
        completed = settled["completed"]

        self.logger.info(
            "Check-out effectué",
            receipt=receipt,
            minutes=minutes,
            fee=str(fee),
            discount=str(discount),
        )
        if self.audit:
            await self.audit.emit_event(
                AuditEventType.CHECK_OUT,
                actor=current_actor(),
                action="check_out",
                resource_id=receipt,
                metadata={
                    "receipt": receipt,
                    "minutes": minutes,
                    "fee": str(fee),
                    "discount": str(discount),
                    "completed_sessions": completed,
                },
            )
        return closed

    async def get_open_session(self, receipt: str) -> ParkingSession:
        """
        Raises:
            SessionNotFoundError: pas de session ouverte pour ce reçu
        """
        session = await self.sessions.find_open_by_receipt(receipt)
        if session is None:
            raise SessionNotFoundError(f"Reçu '{receipt}' introuvable ou check-out déjà effectué")
        return session

    async def sessions_for_customer(self, national_id: str) -> List[ParkingSession]:
        customer = await self.customers.find_by_national_id(national_id)
        if customer is None:
            raise CustomerNotFoundError(f"Client CPF '{national_id}' introuvable")
        return await self.sessions.list_for_customer(customer.id)

    async def sessions_for_user(self, user_id: str) -> List[ParkingSession]:
        customer = await self.customers.find_by_owning_user_id(user_id)
        if customer is None:
            raise CustomerNotFoundError(f"Aucun client pour l'utilisateur id={user_id}")
        return await self.sessions.list_for_customer(customer.id)
