# =============================================================================
# app/exceptions.py - Custom Exceptions and Handlers
# =============================================================================
# Centralized exception handling for the API.
# Errors should tell HOW to fix, not just WHAT failed.
#
# Access-control failures fail closed: a lookup that could not complete is
# surfaced as an error and never degrades into "no filter" or "no rows".
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ClientScopeException(Exception):
    """
    Base exception for the Client Scope API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "CLIENT_SCOPE_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        """Server-side failures may succeed on retry; client errors won't."""
        return self.status_code >= 500

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Resolution Exceptions
# =============================================================================

class UserNotFoundError(ClientScopeException):
    """Raised when the authenticated user has no row in the users table."""

    def __init__(self, user_id: str):
        super().__init__(
            message=f"User not found: {user_id}",
            code="USER_NOT_FOUND",
            status_code=404,
            suggestion="Ask an administrator to provision your user profile",
            details={"user_id": user_id}
        )


class GrantLookupFailedError(ClientScopeException):
    """Raised when the user's client grant could not be read."""

    def __init__(self, user_id: str, error: str):
        super().__init__(
            message=f"Failed to read client grant: {error}",
            code="GRANT_LOOKUP_FAILED",
            status_code=503,
            suggestion="Try again later or contact support if the issue persists",
            details={"user_id": user_id, "error": error}
        )


class DirectoryLookupFailedError(ClientScopeException):
    """Raised when the client registry cannot be reached during resolution."""

    def __init__(self, operation: str, error: str):
        super().__init__(
            message=f"Client directory lookup failed during {operation}: {error}",
            code="DIRECTORY_LOOKUP_FAILED",
            status_code=503,
            suggestion="Try again later; access is withheld until the directory responds",
            details={"operation": operation, "error": error}
        )


# =============================================================================
# Query Exceptions
# =============================================================================

class UnknownEntityTypeError(ClientScopeException):
    """Raised when a scoped query names an entity type that isn't registered."""

    def __init__(self, entity_type: str, known: list[str]):
        super().__init__(
            message=f"Unknown entity type: {entity_type}",
            code="UNKNOWN_ENTITY_TYPE",
            status_code=404,
            suggestion=f"Use one of: {', '.join(known)}",
            details={"entity_type": entity_type, "known_types": known}
        )


class FederationTimeoutError(ClientScopeException):
    """Raised when scoped lookups don't finish before the request deadline."""

    def __init__(self, entity_type: str, timeout: float, pending: list[str]):
        super().__init__(
            message=f"Scoped lookups for {entity_type} exceeded {timeout:g}s",
            code="FEDERATION_TIMEOUT",
            status_code=504,
            suggestion="Narrow the date range or try again later",
            details={"entity_type": entity_type, "timeout_seconds": timeout, "pending_subsets": pending}
        )


class EntityLookupFailedError(ClientScopeException):
    """Raised when a scoped read returned no usable data because every lookup failed."""

    def __init__(self, entity_type: str, error: str):
        super().__init__(
            message=f"Failed to read {entity_type}: {error}",
            code="ENTITY_LOOKUP_FAILED",
            status_code=503,
            suggestion="Try again later or contact support if the issue persists",
            details={"entity_type": entity_type, "error": error}
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def client_scope_exception_handler(
    request: Request,
    exc: ClientScopeException
) -> JSONResponse:
    """
    Convert ClientScopeException to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    headers = {"Retry-After": "1"} if exc.status_code == 503 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers,
    )


async def validation_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Converts validation errors to user-friendly messages.
    """
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "code": "VALIDATION_ERROR",
            "errors": str(exc)
        }
    )
