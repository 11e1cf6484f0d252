"""
State enums for the credit ledger.

Usage:
    from credits.state_machines import BookingStatus, AuditAction
"""

from .states import (
    AccountState,
    AuditAction,
    BookingStatus,
    FundingSource,
    SubscriptionTier,
    WebhookEventStatus,
)

__all__ = [
    "AccountState",
    "AuditAction",
    "BookingStatus",
    "FundingSource",
    "SubscriptionTier",
    "WebhookEventStatus",
]
