"""
Credit ledger services.

This package provides:
- CreditService: Balances, purchases, debits, refunds, audit log
- BookingCoordinator: Booking, cancellation and completion
- AccountStateService: Freeze / unfreeze and billing plan sync
- TouristPassService: Tourist pass grant and unit tracking

Usage:
    from credits.services import BookingCoordinator, CreditService

    balance = CreditService.get_active_credits(account.id)
    result = BookingCoordinator.attempt_booking(account.id, class_session.id)
"""

from credits.services.account_state import AccountStateService
from credits.services.booking_coordinator import BookingCoordinator
from credits.services.credit_service import CreditService
from credits.services.tourist_pass import TouristPassService

__all__ = [
    "AccountStateService",
    "BookingCoordinator",
    "CreditService",
    "TouristPassService",
]
