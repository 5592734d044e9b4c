"""
Module 09D - API Error Handling

Standardized error handling for the API.
Domain exceptions are mapped to HTTP statuses here so routes can let
them propagate.
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from api.models.responses import ErrorResponse, ErrorDetail
from core.schemas.errors import (
    AllocationParseError,
    AllocationValidationException,
    ChainEventDecodeException,
    IntegrityException,
    InvalidRequestException,
    MerkledropException,
    NotFoundException,
    StateConflictException,
    UpstreamUnavailableException,
)


class APIError(Exception):
    """Base API error with structured response."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            ok=False,
            error=ErrorDetail(
                code=self.code,
                message=self.message,
                details=self.details,
            ),
        )


class UnauthorizedError(APIError):
    """Missing or wrong admin API key."""

    def __init__(self, message: str = "Invalid or missing API key"):
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class ServiceUnavailableError(APIError):
    """A required backend collaborator is not configured."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            code="SERVICE_UNAVAILABLE",
            message=message,
            status_code=503,
            details=details,
        )


# Most specific first: the first isinstance match wins
_STATUS_BY_EXCEPTION: list[tuple[type[MerkledropException], int]] = [
    (AllocationValidationException, 400),
    (AllocationParseError, 400),
    (InvalidRequestException, 400),
    (NotFoundException, 404),
    (StateConflictException, 409),
    (IntegrityException, 409),
    (UpstreamUnavailableException, 503),
    (ChainEventDecodeException, 502),
]


def status_for(exc: MerkledropException) -> int:
    for exc_type, status_code in _STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return status_code
    return 500


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


async def merkledrop_error_handler(request: Request, exc: MerkledropException) -> JSONResponse:
    """Handle domain exceptions raised by the engine."""
    error = exc.to_error_model()
    return JSONResponse(
        status_code=status_for(exc),
        content=ErrorResponse(
            ok=False,
            error=ErrorDetail(
                code=error.code,
                message=error.message,
                details=error.details,
                retryable=error.retryable,
            ),
        ).model_dump(mode="json"),
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            ok=False,
            error=ErrorDetail(
                code="INTERNAL_ERROR",
                message="An unexpected error occurred",
                details={"type": type(exc).__name__},
            ),
        ).model_dump(),
    )
