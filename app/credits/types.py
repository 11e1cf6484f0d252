"""
Data types returned by the ledger services.

Types:
    CreditBreakdown: Derived split of a balance by where it came from
    BookingResult: Outcome of BookingCoordinator.attempt_booking()
    CancellationResult: Outcome of BookingCoordinator.cancel_booking()
    AccountStateResult: Outcome of a freeze/unfreeze
    ReconciliationResult: Audit-log replay versus materialized balance
    TopUpEligibility: Which credit packs fit under the tier cap
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from credits.models import Booking


@dataclass
class CreditBreakdown:
    """
    Balance split by origin.

    purchased + bonus + promotional == total. Credits never expire, so
    expiring_soon is always 0 and credits_expire is False; both are kept
    so clients can render the fields.
    """

    total: int
    purchased: int
    bonus: int
    promotional: int
    expiring_soon: int = 0
    credits_expire: bool = False


@dataclass
class BookingResult:
    """
    Result of a booking attempt.

    On success booking and remaining_credits are set; on failure error and
    error_code describe the rejected precondition.
    """

    success: bool
    booking: Booking | None = None
    remaining_credits: int | None = None
    funding_source: str | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def failed(cls, exc) -> BookingResult:
        return cls(success=False, error=exc.message, error_code=exc.error_code)


@dataclass
class CancellationResult:
    """What a cancellation gave back."""

    booking: Booking
    refunded_credits: int = 0
    refunded_pass_units: int = 0
    remaining_credits: int = 0


@dataclass
class AccountStateResult:
    """
    Result of freeze/unfreeze.

    billing_synced is False when the plan swap failed or was skipped
    because of a billing error; the account is then flagged for retry.
    """

    account_id: uuid.UUID
    frozen: bool
    frozen_at: datetime | None
    credits: int
    billing_synced: bool = True
    billing_skipped: bool = False


@dataclass
class PackEligibility:
    pack: str
    credits: int
    eligible: bool
    would_have: int


@dataclass
class TopUpEligibility:
    """
    Top-up options for an account.

    A pack is eligible when the balance after buying it, bonus included,
    stays within the tier's credit cap.
    """

    tier: str
    current_credits: int
    tier_cap: int
    packs: list[PackEligibility] = field(default_factory=list)


@dataclass
class ReconciliationResult:
    """Replay of an account's audit log compared with its balance."""

    account_id: uuid.UUID
    balance: int
    replayed_balance: int
    entry_count: int
    broken_entries: list[uuid.UUID] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return self.balance == self.replayed_balance and not self.broken_entries

    @property
    def discrepancy(self) -> int:
        return self.balance - self.replayed_balance

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_id": str(self.account_id),
            "balance": self.balance,
            "replayed_balance": self.replayed_balance,
            "entry_count": self.entry_count,
            "discrepancy": self.discrepancy,
            "is_consistent": self.is_consistent,
        }
