"""Error taxonomy shared by every module.

Services raise these; the handlers registered in ``main.py`` turn them into
``{"error": {"code": ..., "message": ...}}`` payloads. Messages are user-safe:
storage errors and stack traces never reach the client.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Stable error codes returned to clients."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    MALFORMED_TOKEN = "MALFORMED_TOKEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    ALREADY_VALIDATED = "ALREADY_VALIDATED"
    INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"
    INVALID_BOOKING_STATUS = "INVALID_BOOKING_STATUS"
    ACCESS_DENIED = "ACCESS_DENIED"
    INVALID_ROLE = "INVALID_ROLE"
    BOOKING_MISMATCH = "BOOKING_MISMATCH"
    AUTH_ERROR = "AUTH_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppError(Exception):
    """Base application error with code, HTTP status and user-safe message."""

    code = ErrorCode.INTERNAL_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_payload(self) -> Dict[str, Any]:
        error = {"code": self.code.value, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}


class ValidationError(AppError):
    code = ErrorCode.VALIDATION_ERROR
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request data"


class MalformedTokenError(AppError):
    """Raised when an opaque identifier cannot be decoded."""

    code = ErrorCode.MALFORMED_TOKEN
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or malformed identifier"


class NotFoundError(AppError):
    code = ErrorCode.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ConflictError(AppError):
    code = ErrorCode.CONFLICT
    status_code = status.HTTP_409_CONFLICT
    default_message = "Request conflicts with the current state"


class AlreadyValidatedError(ConflictError):
    code = ErrorCode.ALREADY_VALIDATED
    default_message = "Ticket already validated"


class InsufficientInventoryError(ConflictError):
    code = ErrorCode.INSUFFICIENT_INVENTORY
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Not enough tickets available"


class InvalidBookingStatusError(ConflictError):
    """Raised when a booking is not in a state that allows the operation."""

    code = ErrorCode.INVALID_BOOKING_STATUS
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Booking status does not allow this operation"


class AccessDeniedError(AppError):
    code = ErrorCode.ACCESS_DENIED
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class InvalidRoleError(AccessDeniedError):
    code = ErrorCode.INVALID_ROLE
    default_message = "Invalid token role for this operation"


class BookingMismatchError(AccessDeniedError):
    code = ErrorCode.BOOKING_MISMATCH
    default_message = "Token does not match this booking"


class AuthError(AppError):
    code = ErrorCode.AUTH_ERROR
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials"


class InternalError(AppError):
    pass


def _render(error: AppError) -> JSONResponse:
    headers = None
    if isinstance(error, AuthError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=error.status_code, content=error.to_payload(), headers=headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return _render(exc)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(part) for part in err["loc"] if part != "body") for err in exc.errors()]
    error = ValidationError(
        f"Invalid or missing fields: {', '.join(f for f in fields if f)}",
    )
    return _render(error)


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Storage failure on %s %s", request.method, request.url.path)
    return _render(InternalError())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _render(InternalError())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
