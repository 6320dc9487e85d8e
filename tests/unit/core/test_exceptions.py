"""
Tests unitaires pour la taxonomie des erreurs.
"""

import pytest
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from parkgate.core.exceptions import (
    AuthenticationRequiredError,
    ConflictError,
    DuplicateKeyError,
    ForbiddenError,
    InternalError,
    InvalidCredentialsError,
    NotFoundError,
    ParkGateError,
    ValidationFailedError,
)


class _Sample(BaseModel):
    code: str = Field(min_length=4, max_length=4)
    count: int


class TestStatusCodes:
    @pytest.mark.parametrize(
        "error_cls, status",
        [
            (NotFoundError, 404),
            (ConflictError, 409),
            (ForbiddenError, 403),
            (InternalError, 500),
        ],
    )
    def test_status_code(self, error_cls, status):
        error = error_cls("message")

        assert isinstance(error, ParkGateError)
        assert error.status_code == status
        assert error.message == "message"

    def test_invalid_credentials_default_message(self):
        error = InvalidCredentialsError()

        assert error.status_code == 400
        assert "invalide" in error.message

    def test_conflict_not_retryable_by_default(self):
        assert ConflictError("x").retryable is False


class TestAuthenticationRequired:
    def test_challenge_uses_realm(self):
        error = AuthenticationRequiredError(realm="/api/v1/auth")

        assert error.status_code == 401
        assert error.challenge == "Bearer realm='/api/v1/auth'"

    def test_default_realm(self):
        assert AuthenticationRequiredError().challenge == "Bearer realm='/auth'"


class TestValidationFailed:
    def test_errors_map(self):
        error = ValidationFailedError(errors={"plate": "format invalide"})

        assert error.status_code == 422
        assert error.errors == {"plate": "format invalide"}

    def test_from_pydantic_maps_each_field(self):
        with pytest.raises(PydanticValidationError) as exc_info:
            _Sample.model_validate({"code": "ABCDE"})

        error = ValidationFailedError.from_pydantic(exc_info.value)

        assert set(error.errors) == {"code", "count"}
        assert error.message == "Paramètres invalides"


class TestDuplicateKey:
    def test_carries_key_and_value(self):
        error = DuplicateKeyError("receipt", "20250101-101500")

        assert error.key == "receipt"
        assert error.value == "20250101-101500"
        assert not isinstance(error, ParkGateError)
