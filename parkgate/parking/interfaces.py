"""
Parking - Interfaces

Types du domaine stationnement et contrats des stores.

Invariants:
    - au plus une session ouverte (exit_time None) par reçu
    - place OCCUPIED ssi une session ouverte la référence
    - fee et discount fixés ensemble, une seule fois, au check-out
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import ValidationFailedError


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class SlotStatus(Enum):
    FREE = "FREE"
    OCCUPIED = "OCCUPIED"


@dataclass(frozen=True)
class Slot:
    """Place de stationnement. code unique, exactement 4 caractères."""

    id: str
    code: str
    status: SlotStatus = SlotStatus.FREE

    @property
    def free(self) -> bool:
        return self.status == SlotStatus.FREE


@dataclass(frozen=True)
class Customer:
    """
    Client.

    Attributes:
        id: Identifiant interne
        name: Nom (3 à 100 caractères)
        national_id: CPF, 11 chiffres, unique
        owning_user_id: Utilisateur propriétaire (un client par utilisateur)
    """

    id: str
    name: str
    national_id: str
    owning_user_id: str


@dataclass(frozen=True)
class VehicleInfo:
    plate: str
    brand: str
    model: str
    color: str


@dataclass(frozen=True)
class ParkingSession:
    """
    Session de stationnement.

    Ouverte au check-in, clôturée au check-out. Clôturée = terminale :
    close() retourne une nouvelle instance, l'instance clôturée est figée.
    """

    id: str
    customer_id: str
    slot_id: str
    receipt: str
    vehicle: VehicleInfo
    entry_time: datetime
    exit_time: Optional[datetime] = None
    fee: Optional[Decimal] = None
    discount: Optional[Decimal] = None

    @property
    def is_open(self) -> bool:
        return self.exit_time is None

    @property
    def amount_due(self) -> Optional[Decimal]:
        if self.fee is None or self.discount is None:
            return None
        return self.fee - self.discount

    def close(self, exit_time: datetime, fee: Decimal, discount: Decimal) -> "ParkingSession":
        """
        Raises:
            ValueError: Session déjà clôturée
        """
        if not self.is_open:
            raise ValueError(f"Session {self.receipt} déjà clôturée")
        return replace(self, exit_time=exit_time, fee=fee, discount=discount)


class CheckInRequest(BaseModel):
    """Demande de check-in (véhicule + CPF du client)."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    plate: str = Field(pattern=r"^[A-Z]{3}-[0-9]{4}$")
    brand: str = Field(min_length=1)
    model: str = Field(min_length=1)
    color: str = Field(min_length=1)
    national_id: str = Field(pattern=r"^[0-9]{11}$")

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> "CheckInRequest":
        """
        Valide un payload brut.

        Raises:
            ValidationFailedError: Champ manquant ou invalide (champ -> message)
        """
        try:
            return cls.model_validate(dict(data))
        except PydanticValidationError as e:
            raise ValidationFailedError.from_pydantic(e)

    def vehicle(self) -> VehicleInfo:
        return VehicleInfo(plate=self.plate, brand=self.brand, model=self.model, color=self.color)


# ══════════════════════════════════════════════════════════════════════════════
# STORES
# ══════════════════════════════════════════════════════════════════════════════


# (session ouverte, sessions déjà clôturées du client) -> session clôturée
Settlement = Callable[[ParkingSession, int], ParkingSession]


class ISlotStore(ABC):
    """Stockage des places. acquire_free est un compare-and-swap atomique."""

    @abstractmethod
    async def add(self, slot: Slot) -> Slot:
        """
        Raises:
            DuplicateKeyError: code déjà utilisé
        """
        pass

    @abstractmethod
    async def get(self, slot_id: str) -> Optional[Slot]:
        pass

    @abstractmethod
    async def find_by_code(self, code: str) -> Optional[Slot]:
        pass

    @abstractmethod
    async def acquire_free(self) -> Optional[Slot]:
        """
        Sélectionne une place FREE et la passe OCCUPIED en une étape atomique.

        Returns:
            Place acquise (OCCUPIED) ou None si aucune place libre
        """
        pass

    @abstractmethod
    async def release(self, slot_id: str) -> None:
        """Passe la place FREE. Idempotent."""
        pass

    @abstractmethod
    async def list_all(self) -> List[Slot]:
        pass


class ICustomerStore(ABC):
    """Stockage des clients."""

    @abstractmethod
    async def add(self, customer: Customer) -> Customer:
        """
        Raises:
            DuplicateKeyError: national_id ou owning_user_id déjà utilisé
        """
        pass

    @abstractmethod
    async def get(self, customer_id: str) -> Optional[Customer]:
        pass

    @abstractmethod
    async def find_by_national_id(self, national_id: str) -> Optional[Customer]:
        pass

    @abstractmethod
    async def find_by_owning_user_id(self, user_id: str) -> Optional[Customer]:
        pass

    @abstractmethod
    async def list_all(self) -> List[Customer]:
        pass

    @abstractmethod
    async def count_closed_sessions(self, customer_id: str) -> int:
        """Nombre de sessions clôturées du client."""
        pass


class ISessionStore(ABC):
    """Stockage des sessions de stationnement."""

    @abstractmethod
    async def create_open(self, session: ParkingSession) -> ParkingSession:
        """
        Raises:
            DuplicateKeyError: reçu déjà utilisé
        """
        pass

    @abstractmethod
    async def find_open_by_receipt(self, receipt: str) -> Optional[ParkingSession]:
        pass

    @abstractmethod
    async def close_and_persist(self, session_id: str, settle: Settlement) -> Optional[ParkingSession]:
        """
        Clôture la session et libère sa place, atomiquement.

        Sous le même verrou : relecture de la session, comptage des sessions
        déjà clôturées du client, appel de settle(session, completed) puis
        persistance de la session clôturée retournée.

        Returns:
            Session persistée, ou None si elle n'était plus ouverte
        """
        pass

    @abstractmethod
    async def list_for_customer(self, customer_id: str) -> List[ParkingSession]:
        """Historique du client, trié par entry_time."""
        pass
