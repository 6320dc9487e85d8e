"""
Boundary - Error Mapper

Traduit les exceptions en réponses HTTP.

    ParkGateError        -> status_code de l'erreur, message tel quel
    AuthenticationRequiredError -> + WWW-Authenticate: Bearer realm='...'
    ConflictError retryable     -> + Retry-After
    toute autre exception       -> 500, message générique, log ERROR
"""

import traceback
from http import HTTPStatus
from typing import Dict, Optional

from .interfaces import ErrorResponse, GateRequest, GateResponse
from ..core.exceptions import (
    AuthenticationRequiredError,
    ConflictError,
    InternalError,
    ParkGateError,
    ValidationFailedError,
)
from ..logging import StructuredLogger


GENERIC_ERROR_MESSAGE: str = "Erreur interne du serveur"
RETRY_AFTER_SECONDS: int = 1


def status_text(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"


class ErrorMapper:
    """
    Example:
        mapper = ErrorMapper()
        response = mapper.to_response(SessionNotFoundError("..."), request)
        response.status  # 404
    """

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self.logger = logger or StructuredLogger("parkgate.boundary.errors")

    def to_response(self, error: Exception, request: GateRequest) -> GateResponse:
        if isinstance(error, ParkGateError) and not isinstance(error, InternalError):
            return self._known(error, request)
        return self._internal(error, request)

    def _known(self, error: ParkGateError, request: GateRequest) -> GateResponse:
        status = error.status_code
        headers: Dict[str, str] = {}

        if isinstance(error, AuthenticationRequiredError):
            headers["WWW-Authenticate"] = error.challenge
        if isinstance(error, ConflictError) and error.retryable:
            headers["Retry-After"] = str(RETRY_AFTER_SECONDS)

        self.logger.warn(
            "Requête rejetée",
            status=status,
            error_type=type(error).__name__,
            error_message=error.message,
            method=request.method,
            path=request.path,
        )

        body = ErrorResponse(
            path=request.path,
            method=request.method.upper(),
            status=status,
            status_text=status_text(status),
            message=error.message,
            errors=error.errors if isinstance(error, ValidationFailedError) else None,
        )
        return GateResponse(status=status, body=body.model_dump(exclude_none=True), headers=headers)

    def _internal(self, error: Exception, request: GateRequest) -> GateResponse:
        self.logger.error(
            "Erreur interne",
            error_type=type(error).__name__,
            error=str(error),
            method=request.method,
            path=request.path,
            traceback="".join(traceback.format_exception(type(error), error, error.__traceback__)),
        )

        body = ErrorResponse(
            path=request.path,
            method=request.method.upper(),
            status=500,
            status_text=status_text(500),
            message=GENERIC_ERROR_MESSAGE,
        )
        return GateResponse(status=500, body=body.model_dump(exclude_none=True))
