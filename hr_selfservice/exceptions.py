from __future__ import annotations

import enum
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError as PydanticValidationError


class ErrorCategory(enum.StrEnum):
    """User-facing failure category. A UI shows one alert per category."""

    SESSION_EXPIRED = "SESSION_EXPIRED"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    SERVER = "SERVER"
    VALIDATION = "VALIDATION"
    CLIENT = "CLIENT"
    NETWORK = "NETWORK"
    INVALID_TRANSITION = "INVALID_TRANSITION"


USER_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.SESSION_EXPIRED: "Your session has expired. Please log in again.",
    ErrorCategory.UNAUTHORIZED: "You are not authorized. Please log in again.",
    ErrorCategory.NOT_FOUND: "The requested resource was not found.",
    ErrorCategory.SERVER: "Internal server error. Please try again later.",
    ErrorCategory.VALIDATION: "Some fields are invalid. Please review the form.",
    ErrorCategory.CLIENT: "An unexpected error occurred.",
    ErrorCategory.NETWORK: "Unable to reach the server. Check your connection.",
    ErrorCategory.INVALID_TRANSITION: "This request cannot be acted on right now.",
}


class ErrorBody(BaseModel):
    """Error payload returned by the backend (Laravel-style)."""

    message: str | None = None
    errors: dict[str, list[str]] | None = None


class AppError(Exception):
    """Base client exception."""

    category: ErrorCategory = ErrorCategory.CLIENT

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: httpx.Response | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.response = response
        self.notified = False
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.category]


class SessionExpiredError(AppError):
    """Refresh token missing or rejected; the user must log in again."""

    category = ErrorCategory.SESSION_EXPIRED


class UnauthorizedError(AppError):
    """401 that survived the single refresh-and-retry."""

    category = ErrorCategory.UNAUTHORIZED


class NotFoundError(AppError):
    category = ErrorCategory.NOT_FOUND


class ServerError(AppError):
    category = ErrorCategory.SERVER


class ValidationError(AppError):
    """422 from the backend, with field errors flattened into a list."""

    category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        errors: list[str] | None = None,
        status_code: int | None = httpx.codes.UNPROCESSABLE_ENTITY,
        response: httpx.Response | None = None,
    ) -> None:
        self.errors = errors or []
        super().__init__(message, status_code=status_code, response=response)


class ApiError(AppError):
    """Any other unsuccessful response (400, 403, 409...)."""

    category = ErrorCategory.CLIENT


class NetworkError(AppError):
    category = ErrorCategory.NETWORK


class InvalidTransitionError(AppError):
    """No approval stage is actionable for this role and view."""

    category = ErrorCategory.INVALID_TRANSITION


class InsufficientBalanceError(AppError):
    """A vacation request asks for more days than the balance allows."""

    category = ErrorCategory.VALIDATION


def _parse_error_body(response: httpx.Response) -> ErrorBody:
    try:
        data: Any = response.json()
    except ValueError:
        return ErrorBody()
    if not isinstance(data, dict):
        return ErrorBody()
    try:
        return ErrorBody.model_validate(data)
    except PydanticValidationError:
        return ErrorBody(message=data.get("message") if isinstance(data.get("message"), str) else None)


def error_from_response(response: httpx.Response) -> AppError:
    """Classify an unsuccessful response into the matching AppError subclass."""
    code = response.status_code
    body = _parse_error_body(response)
    message = body.message or response.reason_phrase or f"HTTP {code}"

    if code == httpx.codes.UNAUTHORIZED:
        return UnauthorizedError(message, status_code=code, response=response)
    if code == httpx.codes.NOT_FOUND:
        return NotFoundError(message, status_code=code, response=response)
    if code == httpx.codes.UNPROCESSABLE_ENTITY:
        flat = [msg for msgs in (body.errors or {}).values() for msg in msgs]
        return ValidationError(message, errors=flat, status_code=code, response=response)
    if code >= httpx.codes.INTERNAL_SERVER_ERROR:
        return ServerError(message, status_code=code, response=response)
    return ApiError(message, status_code=code, response=response)
