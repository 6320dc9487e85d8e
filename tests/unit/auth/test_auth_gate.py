"""
Tests unitaires AuthGate

Transitions:
    pas de token / mauvais schéma -> anonyme
    token invalide                -> anonyme (ou 401 si configuré)
    token valide, sujet inconnu   -> anonyme
    token valide, sujet résolu    -> identité dans le contexte de requête
"""

import pytest
import pytest_asyncio

from parkgate.auth import AuthGate, AuthState, Role, VerifyFailure
from parkgate.core.exceptions import AuthenticationRequiredError
from parkgate.logging import LogLevel
from parkgate.observability import get_current_identity, request_scope


@pytest_asyncio.fixture
async def registered(user_registry):
    admin = await user_registry.register("admin@park.com", "123456", Role.ADMIN)
    customer = await user_registry.register("client@park.com", "654321", Role.CUSTOMER)
    return {"admin": admin, "customer": customer}


@pytest.fixture
def gate(codec, user_registry, logger):
    return AuthGate(codec, user_registry, logger=logger)


class TestAnonymous:
    @pytest.mark.asyncio
    async def test_no_header(self, gate):
        with request_scope():
            outcome = await gate.authenticate({})

            assert outcome.state == AuthState.ANONYMOUS
            assert outcome.failure == VerifyFailure.MISSING
            assert get_current_identity() is None

    @pytest.mark.asyncio
    async def test_wrong_scheme(self, gate):
        outcome = await gate.authenticate({"Authorization": "Basic dXNlcjpwYXNz"})

        assert outcome.authenticated is False

    @pytest.mark.asyncio
    async def test_invalid_token_logs_warning(self, gate, logger):
        outcome = await gate.authenticate({"Authorization": "Bearer pas.un.token"})

        assert outcome.state == AuthState.ANONYMOUS
        assert outcome.failure == VerifyFailure.MALFORMED
        warnings = logger.get_entries_by_level(LogLevel.WARN)
        assert len(warnings) == 1
        assert warnings[0].extra["reason"] == "malformed"

    @pytest.mark.asyncio
    async def test_expired_token(self, gate, codec, clock, registered):
        token = codec.issue("admin@park.com", Role.ADMIN)
        clock.advance(minutes=31)

        outcome = await gate.authenticate({"Authorization": token.bearer})

        assert outcome.authenticated is False
        assert outcome.failure == VerifyFailure.EXPIRED

    @pytest.mark.asyncio
    async def test_unknown_subject(self, gate, codec):
        token = codec.issue("fantome@park.com", Role.ADMIN)

        outcome = await gate.authenticate({"Authorization": token.bearer})

        assert outcome.state == AuthState.ANONYMOUS
        assert outcome.identity is None

    @pytest.mark.asyncio
    async def test_previous_identity_cleared(self, gate, codec, registered):
        token = codec.issue("admin@park.com", Role.ADMIN)

        with request_scope():
            await gate.authenticate({"Authorization": token.bearer})
            assert get_current_identity() is not None

            await gate.authenticate({})
            assert get_current_identity() is None


class TestAuthenticated:
    @pytest.mark.asyncio
    async def test_valid_token_attaches_identity(self, gate, codec, registered):
        token = codec.issue("admin@park.com", Role.ADMIN)

        with request_scope():
            outcome = await gate.authenticate({"Authorization": token.bearer})

            assert outcome.state == AuthState.AUTHENTICATED
            assert outcome.identity.subject == "admin@park.com"
            assert outcome.identity.role == Role.ADMIN
            assert outcome.identity.user_id == registered["admin"].id
            assert get_current_identity() == outcome.identity

        assert get_current_identity() is None

    @pytest.mark.asyncio
    async def test_header_name_case_insensitive(self, gate, codec, registered):
        token = codec.issue("client@park.com", Role.CUSTOMER)

        outcome = await gate.authenticate({"authorization": token.bearer})

        assert outcome.authenticated is True

    @pytest.mark.asyncio
    async def test_role_comes_from_user_store(self, gate, codec, registered):
        """Le rôle du référentiel prime sur le claim du token."""
        token = codec.issue("client@park.com", Role.ADMIN)

        outcome = await gate.authenticate({"Authorization": token.bearer})

        assert outcome.identity.role == Role.CUSTOMER


class TestRejectInvalidTokens:
    @pytest.fixture
    def strict_gate(self, codec, user_registry, logger):
        return AuthGate(codec, user_registry, logger=logger, reject_invalid_tokens=True, realm="/api/v1/auth")

    @pytest.mark.asyncio
    async def test_invalid_token_raises_401(self, strict_gate):
        with pytest.raises(AuthenticationRequiredError) as exc_info:
            await strict_gate.authenticate({"Authorization": "Bearer pas.un.token"})

        assert exc_info.value.status_code == 401
        assert exc_info.value.challenge == "Bearer realm='/api/v1/auth'"

    @pytest.mark.asyncio
    async def test_unknown_subject_raises_401(self, strict_gate, codec):
        with pytest.raises(AuthenticationRequiredError):
            await strict_gate.authenticate({"Authorization": codec.issue("x@park.com", Role.ADMIN).bearer})

    @pytest.mark.asyncio
    async def test_missing_token_still_anonymous(self, strict_gate):
        outcome = await strict_gate.authenticate({})

        assert outcome.state == AuthState.ANONYMOUS

    def test_challenge(self, strict_gate):
        assert strict_gate.challenge().challenge == "Bearer realm='/api/v1/auth'"
