"""
Tests d'intégration ParkGate

Parcours complet depuis une configuration YAML :
    inscription -> connexion -> client -> place -> check-in -> check-out
"""

import re

import pytest
import pytest_asyncio

from parkgate.audit.interfaces import AuditEventType
from parkgate.auth import Role, SigningKeyRing, TokenCodec
from parkgate.boundary import GateRequest, load_app
from parkgate.core.config_loader import ConfigIntegrityError


VALID_NATIONAL_ID = "52998224725"
SECRET_K2 = "test-hmac-secret-k2-fedcba9876543210"
RECEIPT_PATTERN = re.compile(r"^\d{8}-\d{6}$")

CHECK_IN_BODY = {
    "plate": "ABC-1234",
    "brand": "Fiat",
    "model": "Uno",
    "color": "Blanc",
    "national_id": VALID_NATIONAL_ID,
}


def call(app, method, path, token=None, body=None):
    headers = {"Authorization": token} if token else {}
    return app.handle(GateRequest(method=method, path=path, headers=headers, body=body))


async def login(app, username, password):
    response = await call(app, "POST", "/auth", body={"username": username, "password": password})
    assert response.status == 200
    return f"Bearer {response.body['token']}"


@pytest_asyncio.fixture
async def app(fixtures_path, clock):
    app = await load_app(str(fixtures_path / "configs"), "default", clock=clock, bcrypt_rounds=4)
    await app.users.register("admin@park.com", "123456", Role.ADMIN)
    return app


class TestParkingFlow:
    @pytest.mark.asyncio
    async def test_full_flow(self, app, clock):
        signup = await call(
            app, "POST", "/users", body={"username": "client@park.com", "password": "654321"}
        )
        assert signup.status == 201

        customer_token = await login(app, "client@park.com", "654321")
        profile = await call(
            app,
            "POST",
            "/customers",
            customer_token,
            {"name": "Maria Silva", "national_id": VALID_NATIONAL_ID},
        )
        assert profile.status == 201

        admin_token = await login(app, "admin@park.com", "123456")
        slot = await call(app, "POST", "/slots", admin_token, {"code": "A-01"})
        assert slot.status == 201

        check_in = await call(app, "POST", "/parkings/check-in", admin_token, CHECK_IN_BODY)
        assert check_in.status == 201
        receipt = check_in.body["receipt"]
        assert RECEIPT_PATTERN.match(receipt)
        assert check_in.body["exit_time"] is None

        lookup = await call(app, "GET", f"/parkings/check-in/{receipt}", customer_token)
        assert lookup.status == 200
        assert lookup.body["plate"] == "ABC-1234"

        occupied = await call(app, "GET", "/slots/A-01", admin_token)
        assert occupied.body["status"] == "OCCUPIED"

        clock.advance(minutes=61)
        admin_token = await login(app, "admin@park.com", "123456")

        check_out = await call(app, "PUT", f"/parkings/check-out/{receipt}", admin_token)
        assert check_out.status == 200
        assert check_out.body["fee"] == "11.00"
        assert check_out.body["discount"] == "0.00"

        again = await call(app, "PUT", f"/parkings/check-out/{receipt}", admin_token)
        assert again.status == 404

        freed = await call(app, "GET", "/slots/A-01", admin_token)
        assert freed.body["status"] == "FREE"

        customer_token = await login(app, "client@park.com", "654321")
        history = await call(app, "GET", "/parkings", customer_token)
        assert [s["receipt"] for s in history.body] == [receipt]

        by_national_id = await call(app, "GET", f"/parkings/national-id/{VALID_NATIONAL_ID}", admin_token)
        assert by_national_id.body == history.body

    @pytest.mark.asyncio
    async def test_audit_trail_names_the_caller(self, app, clock):
        await app.users.register("client@park.com", "654321")
        customer_token = await login(app, "client@park.com", "654321")
        await call(
            app, "POST", "/customers", customer_token, {"name": "Maria Silva", "national_id": VALID_NATIONAL_ID}
        )
        admin_token = await login(app, "admin@park.com", "123456")
        await call(app, "POST", "/slots", admin_token, {"code": "A-01"})

        check_in = await call(app, "POST", "/parkings/check-in", admin_token, CHECK_IN_BODY)
        clock.advance(minutes=10)
        await call(app, "PUT", f"/parkings/check-out/{check_in.body['receipt']}", admin_token)

        events = app.audit.get_events_for_resource(check_in.body["receipt"])
        assert [e.event_type for e in events] == [AuditEventType.CHECK_IN, AuditEventType.CHECK_OUT]
        assert all(e.actor == "admin@park.com" for e in events)
        assert all(app.audit.verify_event_signature(e) for e in events)
        assert events[1].metadata["fee"] == "5.00"

    @pytest.mark.asyncio
    async def test_anonymous_and_wrong_role(self, app):
        anonymous = await call(app, "POST", "/parkings/check-in", body=CHECK_IN_BODY)
        assert anonymous.status == 401
        assert anonymous.headers["WWW-Authenticate"] == "Bearer realm='/auth'"

        await app.users.register("client@park.com", "654321")
        customer_token = await login(app, "client@park.com", "654321")
        forbidden = await call(app, "POST", "/parkings/check-in", customer_token, CHECK_IN_BODY)
        assert forbidden.status == 403

    @pytest.mark.asyncio
    async def test_check_in_without_free_slot(self, app):
        await app.users.register("client@park.com", "654321")
        customer_token = await login(app, "client@park.com", "654321")
        await call(
            app, "POST", "/customers", customer_token, {"name": "Maria Silva", "national_id": VALID_NATIONAL_ID}
        )
        admin_token = await login(app, "admin@park.com", "123456")

        response = await call(app, "POST", "/parkings/check-in", admin_token, CHECK_IN_BODY)

        assert response.status == 404
        assert response.body["path"] == "/parkings/check-in"


class TestConfigurations:
    @pytest.mark.asyncio
    async def test_invalid_config_refused(self, fixtures_path):
        with pytest.raises(ConfigIntegrityError) as exc_info:
            await load_app(str(fixtures_path / "configs"), "invalid_security")

        assert "active_key" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_malformed_config_refused(self, fixtures_path):
        with pytest.raises(ConfigIntegrityError):
            await load_app(str(fixtures_path / "configs"), "malformed")

    @pytest.mark.asyncio
    async def test_key_rotation(self, fixtures_path, clock, monkeypatch):
        monkeypatch.setenv("PARKGATE_SIGNING_KEY_K2", SECRET_K2)
        app = await load_app(str(fixtures_path / "configs"), "rotated_keys", clock=clock, bcrypt_rounds=4)
        await app.users.register("admin@park.com", "123456", Role.ADMIN)

        fresh = await app.issue_token("admin@park.com")
        assert fresh.key_id == "k2"

        legacy_codec = TokenCodec(
            SigningKeyRing({"k1": "retired-soon-hmac-secret-0123456789ab"}, active_key_id="k1"),
            clock=clock,
        )
        legacy = legacy_codec.issue("admin@park.com", Role.ADMIN)
        result = app.verify_token(legacy.bearer)
        assert result.valid
        assert result.identity.subject == "admin@park.com"

    @pytest.mark.asyncio
    async def test_strict_config_rejects_bad_tokens(self, fixtures_path, clock, monkeypatch):
        monkeypatch.setenv("PARKGATE_SIGNING_KEY_K2", SECRET_K2)
        app = await load_app(str(fixtures_path / "configs"), "rotated_keys", clock=clock, bcrypt_rounds=4)

        response = await call(app, "GET", "/parkings", "Bearer pas.un.token")

        assert response.status == 401

        await app.users.register("admin@park.com", "123456", Role.ADMIN)
        admin = await app.issue_token("admin@park.com")
        clock.advance(minutes=15)
        expired = await call(app, "GET", "/parkings", admin.bearer)
        assert expired.status == 401
