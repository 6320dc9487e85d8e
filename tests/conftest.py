"""
ParkGate - Pytest Configuration
Fixtures partagées pour tous les tests.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from parkgate.audit import AuditEmitter
from parkgate.auth import InMemoryUserRegistry, SigningKeyRing, TokenCodec
from parkgate.core.clock import FrozenClock
from parkgate.core.config_loader import ConfigLoader
from parkgate.core.crypto_provider import CryptoProvider
from parkgate.logging import StructuredLogger
from parkgate.parking import (
    InMemoryCustomerStore,
    InMemoryDatabase,
    InMemorySessionStore,
    InMemorySlotStore,
    PricingEngine,
    SlotAllocator,
)


SECRET_K1 = "test-hmac-secret-k1-0123456789abcdef"
SECRET_K2 = "test-hmac-secret-k2-fedcba9876543210"

VALID_NATIONAL_ID = "52998224725"
OTHER_NATIONAL_ID = "11144477735"

# bcrypt au coût minimal : les tests ne mesurent pas la robustesse du hash
TEST_BCRYPT_ROUNDS = 4


@pytest.fixture
def fixtures_path() -> Path:
    """Chemin vers le dossier fixtures."""
    return Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def config_loader(fixtures_path: Path) -> ConfigLoader:
    return ConfigLoader(str(fixtures_path / "configs"))


@pytest.fixture
def clock() -> FrozenClock:
    """Horloge figée au 2025-01-01 10:15:00 UTC."""
    return FrozenClock(datetime(2025, 1, 1, 10, 15, 0, tzinfo=timezone.utc))


@pytest.fixture
def key_ring() -> SigningKeyRing:
    return SigningKeyRing({"k1": SECRET_K1}, active_key_id="k1")


@pytest.fixture
def codec(key_ring, clock) -> TokenCodec:
    return TokenCodec(key_ring, clock=clock)


@pytest.fixture
def logger() -> StructuredLogger:
    """Logger en capture seule (DEBUG inclus)."""
    from parkgate.logging import LogConfig, LogLevel

    return StructuredLogger("test", config=LogConfig(min_level=LogLevel.DEBUG))


@pytest.fixture
def audit() -> AuditEmitter:
    return AuditEmitter(CryptoProvider())


@pytest.fixture
def user_registry() -> InMemoryUserRegistry:
    return InMemoryUserRegistry(bcrypt_rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def slot_store(db) -> InMemorySlotStore:
    return InMemorySlotStore(db)


@pytest.fixture
def customer_store(db) -> InMemoryCustomerStore:
    return InMemoryCustomerStore(db)


@pytest.fixture
def session_store(db) -> InMemorySessionStore:
    return InMemorySessionStore(db)


@pytest.fixture
def allocator(slot_store) -> SlotAllocator:
    return SlotAllocator(slot_store)


@pytest.fixture
def pricing() -> PricingEngine:
    return PricingEngine()
