"""
State enums for ledger models.

Booking lifecycle (django-fsm, protected field):
    confirmed → cancelled
    confirmed → completed
    cancelled and completed are terminal.

Account lifecycle (frozen flag, see AccountStateService):
    active → frozen → active

Webhook processing:
    pending → processing → processed
    pending → processing → failed → processing (retry)
"""

from django.db import models


class SubscriptionTier(models.TextChoices):
    """Subscription tier recorded on a credit account."""

    FREE = "free", "Free"
    BASIC = "basic", "Basic"
    PREMIUM = "premium", "Premium"
    UNLIMITED = "unlimited", "Unlimited"


class AccountState(models.TextChoices):
    """Derived account state (CreditAccount.frozen)."""

    ACTIVE = "active", "Active"
    FROZEN = "frozen", "Frozen"


class BookingStatus(models.TextChoices):
    """
    States for the Booking model lifecycle.

    Terminal states: CANCELLED, COMPLETED
    """

    CONFIRMED = "confirmed", "Confirmed"
    CANCELLED = "cancelled", "Cancelled"
    COMPLETED = "completed", "Completed"


class AuditAction(models.TextChoices):
    """Kinds of credit-affecting events recorded in the audit log."""

    PURCHASE = "purchase", "Purchase"
    BOOKING_DEBIT = "booking_debit", "Booking Debit"
    BOOKING_REFUND = "booking_refund", "Booking Refund"
    ACCOUNT_FROZEN = "account_frozen", "Account Frozen"
    ACCOUNT_UNFROZEN = "account_unfrozen", "Account Unfrozen"
    MANUAL_ADJUSTMENT = "manual_adjustment", "Manual Adjustment"
    MONTHLY_GRANT = "monthly_grant", "Monthly Grant"


class FundingSource(models.TextChoices):
    """What paid for a booking."""

    CREDITS = "credits", "Credits"
    TOURIST_PASS = "tourist_pass", "Tourist Pass"


class WebhookEventStatus(models.TextChoices):
    """Processing status of a stored Stripe webhook event."""

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
