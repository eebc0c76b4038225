"""
Academy Admin - Error Taxonomy

Application exceptions and their HTTP rendering.

Every error carries a status code, a short ``error`` string, an optional
human-readable ``message`` and optional extra JSON fields. Handlers render
them as ``{"error": ..., "message": ..., **extra}``.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


logger = logging.getLogger(__name__)


class AcademyError(Exception):
    """Base exception for all application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        error: str,
        message: Optional[str] = None,
        **extra: Any,
    ):
        self.error = error
        self.message = message
        self.extra = extra
        super().__init__(message or error)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.message:
            body["message"] = self.message
        body.update(self.extra)
        return body


class ValidationError(AcademyError):
    """Malformed or missing input."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(AcademyError):
    """No session, or the session could not be validated."""

    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(AcademyError):
    """Authenticated, but lacking rights or inactive."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AcademyError):
    """Unresolved id or token."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AcademyError):
    """Duplicate email, username or pending invitation."""

    status_code = status.HTTP_409_CONFLICT


class RateLimitError(AcademyError):
    """Request repeated before the cool-down elapsed."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class DependencyError(AcademyError):
    """
    Record store or notification failure.

    The detail is logged server-side; callers only see the generic message.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def academy_error_handler(request: Request, exc: AcademyError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.error)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_dict()),
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({"error": "Invalid request", "details": exc.errors()}),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "message": "Please try again later"},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach the JSON error renderers to an application."""
    app.add_exception_handler(AcademyError, academy_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
