"""Global exception handlers for FastAPI.

Services raise typed exceptions for every expected failure; this module is
the single place they are turned into status codes and error envelopes.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.exceptions import (
    EmailAlreadyRegisteredError,
    GoogleAccountInUseError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidTokenError,
    OTPAttemptsExceededError,
    OTPInvalidError,
    RateLimitedError,
    UserNotFoundError,
)
from core.exceptions import NoteNotFoundError

logger = logging.getLogger(__name__)

# Exception type -> (HTTP status, error code)
_ERROR_MAP: list[tuple[type[Exception], int, str]] = [
    (InvalidInputError, 400, ErrorCodes.VALIDATION_ERROR),
    (InvalidCredentialsError, 401, ErrorCodes.INVALID_CREDENTIALS),
    (InvalidTokenError, 401, ErrorCodes.INVALID_TOKEN),
    (EmailAlreadyRegisteredError, 409, ErrorCodes.ALREADY_EXISTS),
    (GoogleAccountInUseError, 409, ErrorCodes.ALREADY_EXISTS),
    (UserNotFoundError, 404, ErrorCodes.NOT_FOUND),
    (NoteNotFoundError, 404, ErrorCodes.NOT_FOUND),
    (OTPAttemptsExceededError, 400, ErrorCodes.OTP_ATTEMPTS_EXCEEDED),
    (OTPInvalidError, 400, ErrorCodes.OTP_INVALID),
]


def _format_validation_errors(errors) -> str:
    """'field: message' pairs, joined."""
    parts = []
    for error in errors:
        loc = [str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc)
        parts.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


def _json_error(status_code: int, code: str, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content=error_response(code, message).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    for exc_type, status_code, code in _ERROR_MAP:

        async def typed_error_handler(request: Request, exc: Exception, status_code=status_code, code=code):
            return _json_error(status_code, code, str(exc))

        app.add_exception_handler(exc_type, typed_error_handler)

    @app.exception_handler(RateLimitedError)
    async def rate_limited_handler(request: Request, exc: RateLimitedError):
        return _json_error(
            429,
            ErrorCodes.RATE_LIMITED,
            f"Too many requests. Please wait {exc.retry_after_seconds} seconds.",
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _json_error(400, ErrorCodes.VALIDATION_ERROR, _format_validation_errors(exc.errors()))

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        return _json_error(400, ErrorCodes.VALIDATION_ERROR, _format_validation_errors(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json_error(500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
