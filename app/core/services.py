"""
Base service layer patterns for business logic encapsulation.

- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with logging, transactions and exception conversion

Views handle HTTP concerns, models handle data, services handle logic.
Services raise BaseApplicationError subclasses for expected failures; the
boundary (a view or a task) converts them with ServiceResult.from_exception().

Usage:
    from core.services import BaseService, ServiceResult

    class CreditService(BaseService):
        @classmethod
        def add(cls, account_id, amount):
            with cls.atomic():
                ...
            cls.get_logger().info("Credits added", extra={"amount": amount})

    # In a view
    try:
        balance = CreditService.add(account_id, 5)
    except BaseApplicationError as exc:
        result = ServiceResult.from_exception(exc)
        return Response(result.to_response(), status=exc.status_code)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import DatabaseError, transaction

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Human-readable error message if failed
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures
        message: Optional human-readable message for successful results

    Usage:
        return ServiceResult.success(booking, message="Class booked")
        return ServiceResult.failure("Class is full", "CLASS_FULL")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)
    message: str | None = None

    @classmethod
    def success(cls, data: T, message: str | None = None) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(success=True, data=data, message=message)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """Create a failed result."""
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their own message and code. Anything else
        becomes a generic INTERNAL_ERROR so no internals reach the caller.
        """
        if isinstance(exc, BaseApplicationError):
            return cls(
                success=False,
                error=exc.message,
                error_code=error_code or exc.error_code,
            )
        return cls(
            success=False,
            error="An internal error occurred. Please try again later.",
            error_code=error_code or "INTERNAL_ERROR",
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Returns:
            {"success": True, "data": ..., "message": ...} or
            {"success": False, "error": ..., "error_code": ...}
        """
        if self.success:
            response: dict[str, Any] = {"success": True, "data": self.data}
            if self.message:
                response["message"] = self.message
            return response

        response = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Design Notes:
        - Use @classmethod (no instance state)
        - Raise BaseApplicationError subclasses for expected failures
        - Storage failures are converted by handle_exception()
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get a logger named after the service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Thin wrapper around Django's transaction.atomic(); an exception
        raised inside the block rolls every write back.
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Convert exception to ServiceResult with logging.

        Application errors are expected outcomes and are logged at INFO.
        Database errors and anything unexpected are logged with the stack
        trace and reported as INTERNAL_ERROR.
        """
        logger = cls.get_logger()
        message = f"{context}: {exc}" if context else str(exc)

        if isinstance(exc, BaseApplicationError):
            logger.info(message, extra={"error_code": exc.error_code})
            return ServiceResult.from_exception(exc)

        if isinstance(exc, DatabaseError):
            logger.log(log_level, f"Storage failure - {message}", exc_info=True)
        else:
            logger.log(log_level, message, exc_info=True)
        return ServiceResult.from_exception(exc)
