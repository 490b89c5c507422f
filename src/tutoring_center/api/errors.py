"""Mapping of domain exceptions to HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from tutoring_center.domain.errors import (
    AuthenticationError,
    AuthorizationError,
    BackendError,
    ConflictError,
    DomainError,
    InvalidInvitationError,
    NotAuthenticatedError,
    NotFoundError,
    ValidationError,
)

_logger = logging.getLogger(__name__)

# Ordered most specific first; the first matching class wins.
_STATUS_CODES: tuple[tuple[type[DomainError], int], ...] = (
    (NotAuthenticatedError, status.HTTP_401_UNAUTHORIZED),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidInvitationError, status.HTTP_400_BAD_REQUEST),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (BackendError, status.HTTP_502_BAD_GATEWAY),
)


def status_code_for(exc: DomainError) -> int:
    """Return the HTTP status for a domain exception."""
    for error_type, code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


def register_error_handlers(app: FastAPI) -> None:
    """Install handlers translating service exceptions into JSON errors."""

    @app.exception_handler(DomainError)
    async def domain_error(request: Request, exc: DomainError) -> JSONResponse:
        code = status_code_for(exc)
        if code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            _logger.error("Backend failure on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        _logger.exception("Unhandled error on %s", request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "InternalError",
                "detail": "Something went wrong. Please reload and try again.",
            },
        )
