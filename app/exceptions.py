# =============================================================================
# app/exceptions.py - Error Taxonomy + Exception Handlers
# =============================================================================
# Every error the API reports maps to exactly one ErrorKind, and every kind
# maps to exactly one HTTP status:
#
#   CLIENT_INPUT  400   malformed filter/sort/pagination or JSON body
#   VALIDATION    400   write payload fails resource rules (+ messages list)
#   UNAUTHORIZED  401   missing/invalid/expired token, bad credentials
#   FORBIDDEN     403   protected record, insufficient claims
#   NOT_FOUND     404
#   CONFLICT      409   duplicate registration
#   PERSISTENCE   500   record store failure after validation passed
#
# Parsing, validation and storage errors are reported once, where they
# occur, and never retried.
# =============================================================================

import logging
from enum import Enum
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from lib.filters import FilterParseError

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    CLIENT_INPUT = "CLIENT_INPUT"
    VALIDATION = "VALIDATION"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    PERSISTENCE = "PERSISTENCE"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.CLIENT_INPUT: 400,
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.PERSISTENCE: 500,
}


class ApiException(Exception):
    """
    Base exception for the API.

    All custom exceptions inherit from this class. The response body is
    `{"error": message, "code": code}` plus `messages` / `details` when set.
    """

    kind: ErrorKind = ErrorKind.PERSISTENCE

    def __init__(
        self,
        message: str,
        code: str = "API_ERROR",
        messages: list[str] | None = None,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.messages = messages or []
        self.details = details or {}
        self.headers = headers

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result: dict[str, Any] = {
            "error": self.message,
            "code": self.code,
        }
        if self.messages:
            result["messages"] = self.messages
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Error Kinds
# =============================================================================

class ClientInputError(ApiException):
    """Malformed query parameters or request body."""

    kind = ErrorKind.CLIENT_INPUT

    def __init__(self, message: str, code: str = "INVALID_INPUT", **kwargs):
        super().__init__(message, code=code, **kwargs)


class ValidationErrors(ApiException):
    """Write payload failed the resource's rules."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, messages: list[str]):
        super().__init__(message, code="VALIDATION_FAILED", messages=messages)


class UnauthorizedError(ApiException):
    """
    Authentication missing or rejected.

    Token failures always use the same generic message so callers cannot
    learn why a token was refused.
    """

    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message: str = "Authentication required.", code: str = "UNAUTHORIZED"):
        super().__init__(
            message,
            code=code,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(ApiException):
    kind = ErrorKind.FORBIDDEN

    def __init__(self, message: str, code: str = "FORBIDDEN", **kwargs):
        super().__init__(message, code=code, **kwargs)


class ResourceNotFoundError(ApiException):
    """Raised when a record (or a resource type) doesn't exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, label: str, record_id: Any = None):
        details = {"id": record_id} if record_id is not None else None
        super().__init__(
            f"{label} not found",
            code="NOT_FOUND",
            details=details,
        )


class ConflictError(ApiException):
    kind = ErrorKind.CONFLICT

    def __init__(self, message: str, code: str = "CONFLICT"):
        super().__init__(message, code=code)


class PersistenceError(ApiException):
    """Record store failure after validation passed. Never retried."""

    kind = ErrorKind.PERSISTENCE

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="PERSISTENCE_ERROR", details=details)


# =============================================================================
# Exception Handlers
# =============================================================================

async def api_exception_handler(request: Request, exc: ApiException) -> JSONResponse:
    """Convert ApiException to its JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers,
    )


async def filter_parse_exception_handler(request: Request, exc: FilterParseError) -> JSONResponse:
    """Malformed filter/sort/pagination parameters are a client error."""
    error = ClientInputError(
        exc.message,
        code=exc.reason.value,
        details={"parameter": exc.key} if exc.key else None,
    )
    return await api_exception_handler(request, error)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request parsing errors (malformed JSON, wrong path parameter type).

    Reported as a 400 client input error rather than FastAPI's default 422.
    """
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    error = ClientInputError("Malformed request.", code="MALFORMED_REQUEST", messages=messages)
    return await api_exception_handler(request, error)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": "An unexpected error occurred", "code": "INTERNAL_ERROR"},
    )
