"""
Credit ledger models.

Models:
    CreditAccount: Member balance, tier, freeze state, billing references
    CreditAuditLogEntry: Append-only history of balance changes
    Booking: Reservation of a class seat (django-fsm lifecycle)
    TouristPass: Time-boxed bundle of classes
    WebhookEvent: Stored Stripe events for idempotent processing
"""

from credits.models.account import CreditAccount
from credits.models.audit import CreditAuditLogEntry
from credits.models.booking import Booking
from credits.models.tourist_pass import TouristPass
from credits.models.webhook_event import WebhookEvent

__all__ = [
    "CreditAccount",
    "CreditAuditLogEntry",
    "Booking",
    "TouristPass",
    "WebhookEvent",
]
