"""
Parking - In-Memory Stores

Implémentations mémoire des stores. Les trois stores partagent une même
base et un même verrou asyncio, qui joue le rôle de verrou de ligne :
    - acquire_free : sélection + passage OCCUPIED sous verrou
    - close_and_persist : comptage, tarif, clôture et libération de la place sous verrou
"""

import asyncio
from dataclasses import replace
from typing import Dict, List, Optional

from .interfaces import (
    Customer,
    ICustomerStore,
    ISessionStore,
    ISlotStore,
    ParkingSession,
    Settlement,
    Slot,
    SlotStatus,
)
from ..core.exceptions import DuplicateKeyError


class InMemoryDatabase:
    """
    Tables partagées.

    Note:
        Stockage en mémoire. Un SGBD transactionnel le remplace en production.
    """

    def __init__(self):
        self.lock = asyncio.Lock()
        self.slots: Dict[str, Slot] = {}
        self.customers: Dict[str, Customer] = {}
        self.sessions: Dict[str, ParkingSession] = {}

    def _set_slot_status(self, slot_id: str, status: SlotStatus) -> Optional[Slot]:
        # Appelant détient le verrou
        slot = self.slots.get(slot_id)
        if slot is None:
            return None
        if slot.status != status:
            slot = replace(slot, status=status)
            self.slots[slot_id] = slot
        return slot

    def _count_closed(self, customer_id: str) -> int:
        return sum(
            1
            for s in self.sessions.values()
            if s.customer_id == customer_id and not s.is_open
        )


class InMemorySlotStore(ISlotStore):
    def __init__(self, db: InMemoryDatabase):
        self.db = db

    async def add(self, slot: Slot) -> Slot:
        async with self.db.lock:
            if any(s.code == slot.code for s in self.db.slots.values()):
                raise DuplicateKeyError("code", slot.code)
            self.db.slots[slot.id] = slot
        return slot

    async def get(self, slot_id: str) -> Optional[Slot]:
        return self.db.slots.get(slot_id)

    async def find_by_code(self, code: str) -> Optional[Slot]:
        for slot in self.db.slots.values():
            if slot.code == code:
                return slot
        return None

    async def acquire_free(self) -> Optional[Slot]:
        async with self.db.lock:
            for slot in self.db.slots.values():
                if slot.status == SlotStatus.FREE:
                    return self.db._set_slot_status(slot.id, SlotStatus.OCCUPIED)
        return None

    async def release(self, slot_id: str) -> None:
        async with self.db.lock:
            self.db._set_slot_status(slot_id, SlotStatus.FREE)

    async def list_all(self) -> List[Slot]:
        return list(self.db.slots.values())


class InMemoryCustomerStore(ICustomerStore):
    def __init__(self, db: InMemoryDatabase):
        self.db = db

    async def add(self, customer: Customer) -> Customer:
        async with self.db.lock:
            for existing in self.db.customers.values():
                if existing.national_id == customer.national_id:
                    raise DuplicateKeyError("national_id", customer.national_id)
                if existing.owning_user_id == customer.owning_user_id:
                    raise DuplicateKeyError("owning_user_id", customer.owning_user_id)
            self.db.customers[customer.id] = customer
        return customer

    async def get(self, customer_id: str) -> Optional[Customer]:
        return self.db.customers.get(customer_id)

    async def find_by_national_id(self, national_id: str) -> Optional[Customer]:
        for customer in self.db.customers.values():
            if customer.national_id == national_id:
                return customer
        return None

    async def find_by_owning_user_id(self, user_id: str) -> Optional[Customer]:
        for customer in self.db.customers.values():
            if customer.owning_user_id == user_id:
                return customer
        return None

    async def list_all(self) -> List[Customer]:
        return list(self.db.customers.values())

    async def count_closed_sessions(self, customer_id: str) -> int:
        return self.db._count_closed(customer_id)


class InMemorySessionStore(ISessionStore):
    def __init__(self, db: InMemoryDatabase):
        self.db = db

    async def create_open(self, session: ParkingSession) -> ParkingSession:
        if not session.is_open:
            raise ValueError("create_open attend une session ouverte")
        async with self.db.lock:
            if any(s.receipt == session.receipt for s in self.db.sessions.values()):
                raise DuplicateKeyError("receipt", session.receipt)
            self.db.sessions[session.id] = session
        return session

    async def find_open_by_receipt(self, receipt: str) -> Optional[ParkingSession]:
        for session in self.db.sessions.values():
            if session.receipt == receipt and session.is_open:
                return session
        return None

    async def close_and_persist(self, session_id: str, settle: Settlement) -> Optional[ParkingSession]:
        async with self.db.lock:
            current = self.db.sessions.get(session_id)
            if current is None or not current.is_open:
                return None
            closed = settle(current, self.db._count_closed(current.customer_id))
            if closed.is_open or closed.id != session_id:
                raise ValueError("settle doit retourner la même session, clôturée")
            self.db.sessions[session_id] = closed
            self.db._set_slot_status(closed.slot_id, SlotStatus.FREE)
        return closed

    async def list_for_customer(self, customer_id: str) -> List[ParkingSession]:
        sessions = [s for s in self.db.sessions.values() if s.customer_id == customer_id]
        return sorted(sessions, key=lambda s: s.entry_time)
