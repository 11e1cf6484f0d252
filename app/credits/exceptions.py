"""
Ledger-specific exceptions for credit and booking operations.

Every ledger error inherits from LedgerError (and so from
BaseApplicationError) and from the generic core category that fixes its
HTTP status. Validation failures are raised before any write inside the
enclosing transaction, so a raised LedgerError never leaves partial state.

Exception Hierarchy:
    LedgerError (base)
    ├── NotFound (404)
    │   ├── AccountNotFound
    │   ├── ClassNotFound
    │   ├── BookingNotFound
    │   └── PassNotFound
    ├── InsufficientCredits (400)
    ├── InvalidAmount (400)
    ├── AccountFrozen (403)
    ├── ClassFull (409)
    ├── AlreadyBooked (409)
    ├── ClassAlreadyStarted (409)
    ├── InvalidBookingTransition (409)
    ├── PassExhausted (409)
    ├── AlreadyInState (409)
    ├── ImmutableAuditEntry (409)
    ├── PaymentReferenceConflict (409)
    ├── ExternalServiceDegraded (502, caught inside the service)
    └── InternalError (500)

    BillingError (Stripe failures, translated by the adapter)
    ├── BillingCardError
    ├── BillingInvalidRequestError
    ├── BillingRateLimitError (retryable)
    └── BillingUnavailableError (retryable)

Usage:
    from credits.exceptions import InsufficientCredits

    if account.credits < amount:
        raise InsufficientCredits(account.id, required=amount, available=account.credits)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

if TYPE_CHECKING:
    import uuid
    from typing import Any


class LedgerError(BaseApplicationError):
    """Base exception for all credit ledger operations."""

    default_error_code: str = "LEDGER_ERROR"


# =============================================================================
# Not Found
# =============================================================================


class NotFound(LedgerError, NotFoundError):
    """A referenced ledger entity does not exist."""

    default_error_code: str = "NOT_FOUND"


class AccountNotFound(NotFound):
    default_error_code: str = "ACCOUNT_NOT_FOUND"


class ClassNotFound(NotFound):
    default_error_code: str = "CLASS_NOT_FOUND"


class BookingNotFound(NotFound):
    default_error_code: str = "BOOKING_NOT_FOUND"


class PassNotFound(NotFound):
    default_error_code: str = "PASS_NOT_FOUND"


# =============================================================================
# Validation
# =============================================================================


class InsufficientCredits(LedgerError, ValidationError):
    """
    Raised when a debit exceeds the account balance.

    Attributes:
        account_id: The account that was short
        required: Credits the operation needed
        available: Credits the account had
    """

    default_error_code: str = "INSUFFICIENT_CREDITS"

    def __init__(
        self,
        account_id: uuid.UUID,
        required: int,
        available: int,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.account_id = account_id
        self.required = required
        self.available = available

        full_details = {
            "required": required,
            "available": available,
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=f"Not enough credits: {required} required, {available} available",
            error_code=error_code,
            details=full_details,
        )


class InvalidAmount(LedgerError, ValidationError):
    """Raised when a credit amount is zero/negative where it must not be."""

    default_error_code: str = "INVALID_AMOUNT"


# =============================================================================
# Permission
# =============================================================================


class AccountFrozen(LedgerError, PermissionDeniedError):
    """Frozen accounts cannot book, whatever their credits or pass."""

    default_error_code: str = "ACCOUNT_FROZEN"


# =============================================================================
# Conflicts
# =============================================================================


class ClassFull(LedgerError, ConflictError):
    default_error_code: str = "CLASS_FULL"


class AlreadyBooked(LedgerError, ConflictError):
    default_error_code: str = "ALREADY_BOOKED"


class ClassAlreadyStarted(LedgerError, ConflictError):
    default_error_code: str = "CLASS_ALREADY_STARTED"


class InvalidBookingTransition(LedgerError, ConflictError):
    """Raised when a booking is not in a state that allows the transition."""

    default_error_code: str = "INVALID_BOOKING_TRANSITION"


class PassExhausted(LedgerError, ConflictError):
    default_error_code: str = "PASS_EXHAUSTED"


class AlreadyInState(LedgerError, ConflictError):
    """Double freeze or double unfreeze."""

    default_error_code: str = "ALREADY_IN_STATE"


class ImmutableAuditEntry(LedgerError, ConflictError):
    """Audit entries are append-only."""

    default_error_code: str = "IMMUTABLE_AUDIT_ENTRY"


class PaymentReferenceConflict(LedgerError, ConflictError):
    """A payment reference already credited a different account."""

    default_error_code: str = "PAYMENT_REFERENCE_CONFLICT"


# =============================================================================
# External / Internal
# =============================================================================


class ExternalServiceDegraded(LedgerError, ExternalServiceError):
    """
    A best-effort billing call failed.

    Never surfaced to callers: the account state service catches it, logs
    it and flags the account for an out-of-band retry.
    """

    default_error_code: str = "EXTERNAL_SERVICE_DEGRADED"


class InternalError(LedgerError):
    """Storage failure. The transaction has been rolled back."""

    default_error_code: str = "INTERNAL_ERROR"


# =============================================================================
# Billing (Stripe)
# =============================================================================


class BillingError(ExternalServiceError):
    """
    Base exception for Stripe failures.

    Attributes:
        stripe_code: Stripe's error code, if any
        is_retryable: Whether the call is safe to retry later
    """

    default_error_code: str = "BILLING_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code


class BillingCardError(BillingError):
    default_error_code: str = "BILLING_CARD_ERROR"


class BillingInvalidRequestError(BillingError):
    default_error_code: str = "BILLING_INVALID_REQUEST"


class BillingRateLimitError(BillingError):
    default_error_code: str = "BILLING_RATE_LIMITED"
    is_retryable: bool = True


class BillingUnavailableError(BillingError):
    default_error_code: str = "BILLING_UNAVAILABLE"
    is_retryable: bool = True
