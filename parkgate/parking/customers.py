"""
Parking - Customer Registry

Référentiel clients : un client par utilisateur, identifié par son CPF.
"""

import uuid
from typing import List, Optional

from .interfaces import Customer, ICustomerStore
from ..audit.interfaces import AuditEventType, IAuditEmitter
from ..core.exceptions import ConflictError, DuplicateKeyError, NotFoundError, ValidationFailedError
from ..logging import StructuredLogger
from ..observability.request_context import current_actor


NAME_MIN_LENGTH: int = 3
NAME_MAX_LENGTH: int = 100


class CustomerNotFoundError(NotFoundError):
    pass


class NationalIdConflictError(ConflictError):
    """CPF déjà enregistré."""

    def __init__(self, national_id: str) -> None:
        self.national_id = national_id
        super().__init__(f"CPF {national_id} ne peut pas être enregistré, déjà existant")


def is_valid_national_id(value: str) -> bool:
    """
    Valide un CPF : 11 chiffres, pas tous identiques, deux chiffres de contrôle.

    Example:
        is_valid_national_id("52998224725")  # True
    """
    if not value or len(value) != 11 or not value.isdigit():
        return False
    if len(set(value)) == 1:
        return False

    digits = [int(c) for c in value]
    for position in (9, 10):
        total = sum(d * (position + 1 - i) for i, d in enumerate(digits[:position]))
        check = (total * 10) % 11
        if check == 10:
            check = 0
        if check != digits[position]:
            return False
    return True


class CustomerRegistry:
    """
    Example:
        registry = CustomerRegistry(InMemoryCustomerStore(db))
        customer = await registry.register("Maria Silva", "52998224725", user.id)
    """

    def __init__(
        self,
        store: ICustomerStore,
        audit: Optional[IAuditEmitter] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.store = store
        self.audit = audit
        self.logger = logger or StructuredLogger("parkgate.parking.customers")

    async def register(self, name: str, national_id: str, owning_user_id: str) -> Customer:
        """
        Enregistre un client.

        Raises:
            ValidationFailedError: nom ou CPF invalide
            NationalIdConflictError: CPF déjà enregistré
            ConflictError: utilisateur déjà associé à un client
        """
        name = (name or "").strip()
        errors = {}
        if not (NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH):
            errors["name"] = f"Le nom doit contenir entre {NAME_MIN_LENGTH} et {NAME_MAX_LENGTH} caractères"
        if not is_valid_national_id(national_id):
            errors["national_id"] = "CPF invalide"
        if not owning_user_id:
            errors["owning_user_id"] = "Utilisateur propriétaire obligatoire"
        if errors:
            raise ValidationFailedError(errors=errors)

        customer = Customer(
            id=str(uuid.uuid4()),
            name=name,
            national_id=national_id,
            owning_user_id=owning_user_id,
        )
        try:
            await self.store.add(customer)
        except DuplicateKeyError as e:
            self.logger.warn("Client en doublon", key=e.key)
            if e.key == "national_id":
                raise NationalIdConflictError(national_id)
            raise ConflictError("Utilisateur déjà associé à un client")

        if self.audit:
            await self.audit.emit_event(
                AuditEventType.CUSTOMER_CREATED,
                actor=current_actor(),
                action="register_customer",
                resource_id=customer.id,
                metadata={"national_id": national_id, "owning_user_id": owning_user_id},
            )
        self.logger.info("Client enregistré", customer_id=customer.id, national_id=national_id)
        return customer

    async def find_by_national_id(self, national_id: str) -> Customer:
        """
        Raises:
            CustomerNotFoundError: CPF inconnu
        """
        customer = await self.store.find_by_national_id(national_id)
        if customer is None:
            raise CustomerNotFoundError(f"Client CPF '{national_id}' introuvable")
        return customer

    async def find_by_owning_user_id(self, user_id: str) -> Customer:
        """
        Raises:
            CustomerNotFoundError: aucun client pour cet utilisateur
        """
        customer = await self.store.find_by_owning_user_id(user_id)
        if customer is None:
            raise CustomerNotFoundError(f"Aucun client pour l'utilisateur id={user_id}")
        return customer

    async def list_customers(self) -> List[Customer]:
        return await self.store.list_all()
