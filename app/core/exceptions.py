"""
Base exception classes for application-wide error handling.

Every domain error raised by a service inherits from BaseApplicationError so
views can turn it into a JSON envelope with a machine-readable code and the
matching HTTP status, without leaking stack traces or internal identifiers.

Exception Hierarchy:
    BaseApplicationError (base, 500)
    ├── ValidationError - Input or business-rule failures (400)
    ├── NotFoundError - Resource not found (404)
    ├── PermissionDeniedError - Operation not allowed for this caller (403)
    ├── ConflictError - State conflicts (duplicates, invalid transitions) (409)
    └── ExternalServiceError - Third-party service failures (502)

Usage:
    from core.exceptions import ConflictError, NotFoundError

    raise NotFoundError("Class not found", error_code="CLASS_NOT_FOUND")

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.status_code)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (ids, amounts, field errors)
        status_code: HTTP status a view should answer with
    """

    default_error_code: str = "APPLICATION_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to the API error envelope.

        Example:
            {
                "success": False,
                "error": "Not enough credits",
                "error_code": "INSUFFICIENT_CREDITS",
                "details": {"required": 2, "available": 1}
            }
        """
        result: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation or a business rule fails.

    For DRF serializer validation, use DRF's built-in validation.
    Use this for service-layer checks (amounts, balances).
    """

    default_error_code: str = "VALIDATION_ERROR"
    status_code: int = 400


class NotFoundError(BaseApplicationError):
    """Raised when a requested resource does not exist."""

    default_error_code: str = "NOT_FOUND"
    status_code: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller may not perform an operation in the current state.

    For authentication failures (missing/invalid token), DRF's
    AuthenticationFailed still applies.
    """

    default_error_code: str = "PERMISSION_DENIED"
    status_code: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for duplicates, exhausted capacity and invalid state transitions.
    """

    default_error_code: str = "CONFLICT"
    status_code: int = 409


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Log the original error for debugging but don't expose
    internal details to clients.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    status_code: int = 502
