"""
Boundary - ParkGate App

Façade et pipeline de requête :

    request_scope -> AuthGate -> AccessPolicy -> handler -> ErrorMapper

Les routes reprennent l'API de stationnement :
    POST /auth                          connexion, émission de token
    POST /users                         inscription
    GET  /users, /users/{user_id}
    PATCH /users/{user_id}                changement de son propre mot de passe
    POST /slots, GET /slots/{code}
    POST /customers, GET /customers, GET /customers/me
    POST /parkings/check-in
    GET  /parkings/check-in/{receipt}
    PUT  /parkings/check-out/{receipt}
    GET  /parkings/national-id/{national_id}
    GET  /parkings                      historique du client connecté
"""

import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .error_mapper import ErrorMapper
from .interfaces import GateRequest, GateResponse
from ..audit import AuditEmitter
from ..auth import (
    AccessPolicy,
    AuthGate,
    Authenticator,
    Identity,
    InMemoryUserRegistry,
    Role,
    Token,
    TokenCodec,
    UserRecord,
    VerifyResult,
)
from ..core.clock import Clock, resolve_timezone
from ..core.config_loader import ConfigIntegrityError, ConfigLoader
from ..core.config_validator import ConfigValidator
from ..core.crypto_provider import CryptoProvider
from ..core.exceptions import AuthenticationRequiredError, ForbiddenError, NotFoundError, ValidationFailedError
from ..core.interfaces import ParkGateSettings
from ..logging import StructuredLogger
from ..observability.request_context import CORRELATION_HEADER, get_current_identity, request_scope
from ..parking import (
    CheckInRequest,
    Customer,
    CustomerRegistry,
    InMemoryCustomerStore,
    InMemoryDatabase,
    InMemorySessionStore,
    InMemorySlotStore,
    ParkingSession,
    PricingEngine,
    SessionLifecycle,
    Slot,
    SlotAllocator,
)


Handler = Callable[[GateRequest], Awaitable[Any]]
LogHandler = Callable[[str], None]


# ══════════════════════════════════════════════════════════════════════════════
# CORPS DE REQUÊTE
# ══════════════════════════════════════════════════════════════════════════════


class LoginBody(BaseModel):
    username: str
    password: str


class UserCreateBody(BaseModel):
    username: str
    password: str


class PasswordChangeBody(BaseModel):
    current_password: str
    new_password: str
    confirm_password: str


class SlotCreateBody(BaseModel):
    code: str


class CustomerCreateBody(BaseModel):
    name: str
    national_id: str


def parse_body(model: type, body: Optional[Dict[str, Any]]):
    try:
        return model.model_validate(body or {})
    except PydanticValidationError as e:
        raise ValidationFailedError.from_pydantic(e)


# ══════════════════════════════════════════════════════════════════════════════
# SÉRIALISATION
# ══════════════════════════════════════════════════════════════════════════════


def user_to_dict(user: UserRecord) -> Dict[str, Any]:
    return {"id": user.id, "username": user.username, "role": user.role.value}


def slot_to_dict(slot: Slot) -> Dict[str, Any]:
    return {"id": slot.id, "code": slot.code, "status": slot.status.value}


def customer_to_dict(customer: Customer) -> Dict[str, Any]:
    return {
        "id": customer.id,
        "name": customer.name,
        "national_id": customer.national_id,
        "owning_user_id": customer.owning_user_id,
    }


def session_to_dict(session: ParkingSession) -> Dict[str, Any]:
    return {
        "receipt": session.receipt,
        "plate": session.vehicle.plate,
        "brand": session.vehicle.brand,
        "model": session.vehicle.model,
        "color": session.vehicle.color,
        "customer_id": session.customer_id,
        "slot_id": session.slot_id,
        "entry_time": session.entry_time.isoformat(),
        "exit_time": session.exit_time.isoformat() if session.exit_time else None,
        "fee": str(session.fee) if session.fee is not None else None,
        "discount": str(session.discount) if session.discount is not None else None,
    }


def token_to_dict(token: Token) -> Dict[str, Any]:
    return {"token": token.raw, "expires_at": token.expires_at.isoformat()}


# ══════════════════════════════════════════════════════════════════════════════
# ROUTAGE
# ══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Route:
    """Route {method, template} ; les segments {nom} deviennent des paramètres."""

    method: str
    template: str
    handler: str
    success_status: int = 200

    def match(self, method: str, path: str) -> Optional[Dict[str, str]]:
        if self.method != method.upper():
            return None
        found = self._regex().match(path.split("?", 1)[0].rstrip("/") or "/")
        return found.groupdict() if found else None

    def _regex(self) -> "re.Pattern[str]":
        segments = []
        for segment in self.template.strip("/").split("/"):
            if segment.startswith("{") and segment.endswith("}"):
                segments.append(f"(?P<{segment[1:-1]}>[^/]+)")
            else:
                segments.append(re.escape(segment))
        return re.compile("^/" + "/".join(segments) + "$")


ROUTES: List[Route] = [
    Route("POST", "/auth", "_login"),
    Route("POST", "/users", "_create_user", 201),
    Route("GET", "/users", "_list_users"),
    Route("GET", "/users/{user_id}", "_get_user"),
    Route("PATCH", "/users/{user_id}", "_change_password", 204),
    Route("POST", "/slots", "_create_slot", 201),
    Route("GET", "/slots/{code}", "_get_slot"),
    Route("POST", "/customers", "_create_customer", 201),
    Route("GET", "/customers", "_list_customers"),
    Route("GET", "/customers/me", "_get_own_customer"),
    Route("POST", "/parkings/check-in", "_check_in", 201),
    Route("GET", "/parkings/check-in/{receipt}", "_get_open_session"),
    Route("PUT", "/parkings/check-out/{receipt}", "_check_out"),
    Route("GET", "/parkings/national-id/{national_id}", "_sessions_by_national_id"),
    Route("GET", "/parkings", "_own_sessions"),
]


# ══════════════════════════════════════════════════════════════════════════════
# APPLICATION
# ══════════════════════════════════════════════════════════════════════════════


class ParkGateApp:
    """
    Façade ParkGate.

    Example:
        app = build_app(settings)
        await app.users.register("admin@park.com", "123456", Role.ADMIN)
        token = await app.issue_token("admin@park.com")
        response = await app.handle(GateRequest(
            "POST", "/slots", {"Authorization": token.bearer}, {"code": "A-01"}
        ))
    """

    def __init__(
        self,
        settings: ParkGateSettings,
        codec: TokenCodec,
        gate: AuthGate,
        policy: AccessPolicy,
        users: InMemoryUserRegistry,
        authenticator: Authenticator,
        customers: CustomerRegistry,
        slots: SlotAllocator,
        lifecycle: SessionLifecycle,
        audit: AuditEmitter,
        error_mapper: ErrorMapper,
        logger: Optional[StructuredLogger] = None,
    ):
        self.settings = settings
        self.codec = codec
        self.gate = gate
        self.policy = policy
        self.users = users
        self.authenticator = authenticator
        self.customers = customers
        self.slots = slots
        self.lifecycle = lifecycle
        self.audit = audit
        self.error_mapper = error_mapper
        self.logger = logger or StructuredLogger("parkgate.app")
        self.routes: List[Route] = list(ROUTES)

    # ── Opérations exposées ──────────────────────────────────────────────────

    async def check_in(self, dto: Union[CheckInRequest, Dict[str, Any]]) -> ParkingSession:
        return await self.lifecycle.check_in(dto)

    async def check_out(self, receipt: str) -> ParkingSession:
        return await self.lifecycle.check_out(receipt)

    async def issue_token(self, username: str) -> Token:
        return await self.authenticator.issue_token(username)

    def verify_token(self, raw: Optional[str]) -> VerifyResult:
        return self.codec.verify(raw)

    # ── Pipeline ─────────────────────────────────────────────────────────────

    async def dispatch(self, request: GateRequest, handler: Handler, success_status: int = 200) -> GateResponse:
        """
        Exécute gate -> politique -> handler dans un contexte de requête.

        Toute exception est traduite par l'ErrorMapper ; le correlation_id
        est renvoyé dans chaque réponse.
        """
        with request_scope(request.header(CORRELATION_HEADER)) as ctx:
            headers = {CORRELATION_HEADER: ctx.correlation_id}
            try:
                await self.gate.authenticate(request.headers)
                self.policy.enforce(request.method, request.path)
                body = await handler(request)
            except Exception as e:
                response = self.error_mapper.to_response(e, request)
                response.headers.update(headers)
                return response

            return GateResponse(status=success_status, body=body, headers=headers)

    async def handle(self, request: GateRequest) -> GateResponse:
        """Route la requête vers le handler intégré correspondant."""
        for route in self.routes:
            params = route.match(request.method, request.path)
            if params is not None:
                method = getattr(self, route.handler)

                async def bound(req: GateRequest, method=method, params=params) -> Any:
                    return await method(req, **params)

                return await self.dispatch(request, bound, route.success_status)

        return await self.dispatch(request, self._no_route)

    async def _no_route(self, request: GateRequest) -> Any:
        raise NotFoundError(f"Route introuvable: {request.method.upper()} {request.path}")

    # ── Handlers ─────────────────────────────────────────────────────────────

    def _require_identity(self) -> Identity:
        identity = get_current_identity()
        if identity is None:
            raise AuthenticationRequiredError(realm=self.settings.security.realm)
        return identity

    async def _login(self, request: GateRequest) -> Dict[str, Any]:
        body = parse_body(LoginBody, request.body)
        token = await self.authenticator.login(body.username, body.password)
        return token_to_dict(token)

    async def _create_user(self, request: GateRequest) -> Dict[str, Any]:
        body = parse_body(UserCreateBody, request.body)
        user = await self.users.register(body.username, body.password, Role.CUSTOMER)
        return user_to_dict(user)

    async def _list_users(self, request: GateRequest) -> List[Dict[str, Any]]:
        return [user_to_dict(u) for u in await self.users.list_users()]

    async def _get_user(self, request: GateRequest, user_id: str) -> Dict[str, Any]:
        identity = self._require_identity()
        if identity.role == Role.CUSTOMER and identity.user_id != user_id:
            raise ForbiddenError("Un client ne peut consulter que son propre compte")
        return user_to_dict(await self.users.get_by_id(user_id))

    async def _change_password(self, request: GateRequest, user_id: str) -> None:
        identity = self._require_identity()
        if identity.user_id != user_id:
            raise ForbiddenError("Seul le titulaire du compte peut changer son mot de passe")
        body = parse_body(PasswordChangeBody, request.body)
        await self.users.change_password(user_id, body.current_password, body.new_password, body.confirm_password)

    async def _create_slot(self, request: GateRequest) -> Dict[str, Any]:
        body = parse_body(SlotCreateBody, request.body)
        return slot_to_dict(await self.slots.create_slot(body.code))

    async def _get_slot(self, request: GateRequest, code: str) -> Dict[str, Any]:
        return slot_to_dict(await self.slots.get_by_code(code))

    async def _create_customer(self, request: GateRequest) -> Dict[str, Any]:
        identity = self._require_identity()
        body = parse_body(CustomerCreateBody, request.body)
        customer = await self.customers.register(body.name, body.national_id, identity.user_id)
        return customer_to_dict(customer)

    async def _list_customers(self, request: GateRequest) -> List[Dict[str, Any]]:
        return [customer_to_dict(c) for c in await self.customers.list_customers()]

    async def _get_own_customer(self, request: GateRequest) -> Dict[str, Any]:
        identity = self._require_identity()
        return customer_to_dict(await self.customers.find_by_owning_user_id(identity.user_id))

    async def _check_in(self, request: GateRequest) -> Dict[str, Any]:
        session = await self.check_in(CheckInRequest.parse(request.body or {}))
        return session_to_dict(session)

    async def _get_open_session(self, request: GateRequest, receipt: str) -> Dict[str, Any]:
        return session_to_dict(await self.lifecycle.get_open_session(receipt))

    async def _check_out(self, request: GateRequest, receipt: str) -> Dict[str, Any]:
        return session_to_dict(await self.check_out(receipt))

    async def _sessions_by_national_id(self, request: GateRequest, national_id: str) -> List[Dict[str, Any]]:
        return [session_to_dict(s) for s in await self.lifecycle.sessions_for_customer(national_id)]

    async def _own_sessions(self, request: GateRequest) -> List[Dict[str, Any]]:
        identity = self._require_identity()
        return [session_to_dict(s) for s in await self.lifecycle.sessions_for_user(identity.user_id)]


# ══════════════════════════════════════════════════════════════════════════════
# CONSTRUCTION
# ══════════════════════════════════════════════════════════════════════════════


def build_app(
    settings: ParkGateSettings,
    clock: Optional[Clock] = None,
    bcrypt_rounds: int = 12,
    log_handler: Optional[LogHandler] = None,
) -> ParkGateApp:
    """
    Assemble tous les composants depuis la configuration.

    Args:
        settings: Configuration (secrets résolus)
        clock: Horloge UTC injectable, partagée par tokens et sessions
        bcrypt_rounds: Coût bcrypt des mots de passe
        log_handler: Destination des lignes JSON de log (None = capture seule)
    """
    security = settings.security

    def logger(name: str) -> StructuredLogger:
        return StructuredLogger(name, output_handler=log_handler)

    codec = TokenCodec.from_config(security, clock=clock)
    audit = AuditEmitter(CryptoProvider())
    users = InMemoryUserRegistry(bcrypt_rounds=bcrypt_rounds, audit=audit, logger=logger("parkgate.auth.users"))

    db = InMemoryDatabase()
    customer_store = InMemoryCustomerStore(db)
    slots = SlotAllocator(InMemorySlotStore(db), audit=audit, logger=logger("parkgate.parking.slots"))

    lifecycle = SessionLifecycle(
        customers=customer_store,
        slots=slots,
        sessions=InMemorySessionStore(db),
        pricing=PricingEngine(settings.pricing),
        clock=clock,
        tz=resolve_timezone(settings.timezone),
        audit=audit,
        logger=logger("parkgate.parking.lifecycle"),
    )

    return ParkGateApp(
        settings=settings,
        codec=codec,
        gate=AuthGate(
            codec,
            users,
            logger=logger("parkgate.auth.gate"),
            reject_invalid_tokens=security.reject_invalid_tokens,
            realm=security.realm,
        ),
        policy=AccessPolicy.from_config(settings.access_policy, realm=security.realm),
        users=users,
        authenticator=Authenticator(users, codec, audit, logger=logger("parkgate.auth.authenticator")),
        customers=CustomerRegistry(customer_store, audit=audit, logger=logger("parkgate.parking.customers")),
        slots=slots,
        lifecycle=lifecycle,
        audit=audit,
        error_mapper=ErrorMapper(logger("parkgate.boundary.errors")),
        logger=logger("parkgate.app"),
    )


async def load_app(configs_path: str, name: str = "default", **kwargs: Any) -> ParkGateApp:
    """
    Charge, valide puis assemble.

    Raises:
        ConfigIntegrityError: configuration absente, mal formée ou invalide
    """
    settings = await ConfigLoader(configs_path).load(name)
    result = ConfigValidator().validate(settings)
    if not result.valid:
        problems = "; ".join(f"{e.rule_id}: {e.message}" for e in result.errors)
        raise ConfigIntegrityError(f"Configuration '{name}' invalide: {problems}")
    return build_app(settings, **kwargs)
