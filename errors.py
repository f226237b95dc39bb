"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

Request-validation errors and per-IP limiter rejections are folded into the
same JSON shape. Non-AppError exceptions (store unreachable, etc.) become
500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class InvalidOrExpiredChallengeError(AppError):
    """Covers a missing, expired and mismatching verification code alike."""

    status_code = 400
    error_code = "invalid_or_expired_challenge"

    def __init__(self, message: str = "Invalid or expired verification code.") -> None:
        super().__init__(message)


class MissingCredentialError(AppError):
    status_code = 401
    error_code = "missing_credential"

    def __init__(
        self,
        message: str = "API key required. Provide it via the 'x-api-key' header.",
    ) -> None:
        super().__init__(message)


class InvalidCredentialError(AppError):
    status_code = 403
    error_code = "invalid_credential"

    def __init__(self, message: str = "Invalid or unverified API key.") -> None:
        super().__init__(message)


class CredentialExpiredError(AppError):
    status_code = 403
    error_code = "credential_expired"

    def __init__(
        self,
        message: str = "API key expired due to inactivity. A new key is required.",
    ) -> None:
        super().__init__(message)


class SessionRequiredError(AppError):
    """No signed-in admin user behind the session cookie."""

    status_code = 401
    error_code = "session_required"

    def __init__(self, message: str = "Sign in as an admin user first.") -> None:
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(self, message: str, *, window: Optional[str] = None) -> None:
        super().__init__(message, details={"window": window} if window else None)
        self.window = window


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        field = None
        if errors and errors[0].get("loc"):
            field = str(errors[0]["loc"][-1])
        err = ValidationError("Invalid request body.", field=field)
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    @app.exception_handler(RateLimitExceeded)
    async def ip_rate_limit_handler(
        request: Request, exc: RateLimitExceeded
    ) -> JSONResponse:
        err = RateLimitError(
            f"Too many API key requests from this IP ({exc.detail}), "
            "please try again later.",
            window="ip",
        )
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.error(
            "unhandled_exception",
            method=request.method,
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
