"""
Tests unitaires Authenticator

Connexion, émission de tokens, traces d'audit.
"""

import asyncio
from unittest.mock import patch

import pytest
import pytest_asyncio

from parkgate.audit.interfaces import AuditEventType
from parkgate.auth import Authenticator, Role
from parkgate.auth.user_registry import check_password
from parkgate.core.exceptions import InvalidCredentialsError, NotFoundError
from parkgate.logging import LogLevel


@pytest_asyncio.fixture
async def admin(user_registry):
    return await user_registry.register("admin@park.com", "123456", Role.ADMIN)


@pytest.fixture
def authenticator(user_registry, codec, audit, logger):
    return Authenticator(user_registry, codec, audit=audit, logger=logger)


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_issues_verifiable_token(self, authenticator, codec, admin):
        token = await authenticator.login("admin@park.com", "123456")

        result = codec.verify(token.bearer)
        assert result.valid
        assert result.identity.subject == "admin@park.com"
        assert result.identity.role == Role.ADMIN
        assert token.key_id == "k1"

    @pytest.mark.asyncio
    async def test_login_audited(self, authenticator, audit, admin):
        token = await authenticator.login("admin@park.com", "123456")

        events = audit.get_events(AuditEventType.TOKEN_ISSUED)
        assert len(events) == 1
        assert events[0].actor == "admin@park.com"
        assert events[0].resource_id == admin.id
        assert events[0].metadata["role"] == "ADMIN"
        assert events[0].metadata["expires_at"] == token.expires_at.isoformat()
        assert audit.verify_event_signature(events[0])

    @pytest.mark.asyncio
    async def test_wrong_password(self, authenticator, audit, logger, admin):
        with pytest.raises(InvalidCredentialsError) as exc_info:
            await authenticator.login("admin@park.com", "mauvais")

        assert exc_info.value.status_code == 400
        failures = audit.get_events(AuditEventType.FAILED_AUTH)
        assert len(failures) == 1
        assert failures[0].actor == "admin@park.com"
        assert len(logger.get_entries_by_level(LogLevel.WARN)) == 1

    @pytest.mark.asyncio
    async def test_unknown_user_same_error(self, authenticator, admin):
        with pytest.raises(InvalidCredentialsError) as unknown:
            await authenticator.login("inconnu@park.com", "123456")
        with pytest.raises(InvalidCredentialsError) as wrong:
            await authenticator.login("admin@park.com", "654321")

        assert unknown.value.message == wrong.value.message

    @pytest.mark.asyncio
    async def test_empty_username_audited_as_anonymous(self, authenticator, audit):
        with pytest.raises(InvalidCredentialsError):
            await authenticator.login("", "")

        assert audit.get_events(AuditEventType.FAILED_AUTH)[0].actor == "anonymous"

    @pytest.mark.asyncio
    async def test_password_never_logged(self, authenticator, logger, admin):
        await authenticator.login("admin@park.com", "123456")
        with pytest.raises(InvalidCredentialsError):
            await authenticator.login("admin@park.com", "fuite99")

        dumped = "".join(entry.to_json() for entry in logger.get_entries())
        assert "fuite99" not in dumped

    @pytest.mark.asyncio
    async def test_password_checked_in_worker_thread(self, authenticator, admin):
        with patch.object(asyncio, "to_thread", wraps=asyncio.to_thread) as to_thread:
            await authenticator.login("admin@park.com", "123456")

        to_thread.assert_awaited_once()
        assert to_thread.call_args.args[0] is check_password


class TestIssueToken:
    @pytest.mark.asyncio
    async def test_role_from_registry(self, authenticator, user_registry):
        await user_registry.register("client@park.com", "123456")

        token = await authenticator.issue_token("client@park.com")

        assert token.role == Role.CUSTOMER

    @pytest.mark.asyncio
    async def test_unknown_user(self, authenticator):
        with pytest.raises(NotFoundError):
            await authenticator.issue_token("inconnu@park.com")

    @pytest.mark.asyncio
    async def test_without_audit(self, user_registry, codec, admin):
        authenticator = Authenticator(user_registry, codec)

        token = await authenticator.issue_token("admin@park.com")

        assert token.subject == "admin@park.com"
