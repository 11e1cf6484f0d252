"""
External service adapters for the credit ledger.

Usage:
    from credits.adapters import StripeBillingAdapter, SubscriptionInfo
"""

from credits.adapters.stripe_adapter import StripeBillingAdapter, SubscriptionInfo

__all__ = ["StripeBillingAdapter", "SubscriptionInfo"]
