"""
Parking

Places, clients, sessions de stationnement et tarification.
"""

from .interfaces import (
    CheckInRequest,
    Customer,
    ICustomerStore,
    ISessionStore,
    ISlotStore,
    ParkingSession,
    Settlement,
    Slot,
    SlotStatus,
    VehicleInfo,
)
from .pricing import PricingEngine, PricingError
from .stores import InMemoryCustomerStore, InMemoryDatabase, InMemorySessionStore, InMemorySlotStore
from .slot_allocator import SlotAllocator, SlotCodeConflictError, SlotNotFoundError
from .customers import CustomerNotFoundError, CustomerRegistry, NationalIdConflictError, is_valid_national_id
from .session_lifecycle import ReceiptConflictError, SessionLifecycle, SessionNotFoundError, make_receipt

__all__ = [
    # Interfaces
    "ICustomerStore",
    "ISessionStore",
    "ISlotStore",
    "Settlement",
    # Data classes
    "CheckInRequest",
    "Customer",
    "ParkingSession",
    "Slot",
    "SlotStatus",
    "VehicleInfo",
    # Implementations
    "PricingEngine",
    "InMemoryDatabase",
    "InMemoryCustomerStore",
    "InMemorySessionStore",
    "InMemorySlotStore",
    "SlotAllocator",
    "CustomerRegistry",
    "SessionLifecycle",
    "is_valid_national_id",
    "make_receipt",
    # Exceptions
    "PricingError",
    "SlotNotFoundError",
    "SlotCodeConflictError",
    "CustomerNotFoundError",
    "NationalIdConflictError",
    "SessionNotFoundError",
    "ReceiptConflictError",
]
