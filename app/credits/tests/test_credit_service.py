"""
Tests for CreditService: balances, purchases, debits, refunds, audit log.
"""

import uuid
from datetime import datetime, timezone as dt_timezone
from unittest.mock import patch

import pytest

from credits.exceptions import (
    AccountNotFound,
    BookingNotFound,
    InsufficientCredits,
    InvalidAmount,
    PaymentReferenceConflict,
)
from credits.models import CreditAccount, CreditAuditLogEntry
from credits.services import CreditService
from credits.state_machines import AuditAction, SubscriptionTier
from credits.tests.factories import BookingFactory, CreditAccountFactory


@pytest.mark.django_db
class TestAccounts:
    def test_get_or_create_account_creates_once(self, user):
        first = CreditService.get_or_create_account(user)
        second = CreditService.get_or_create_account(user)

        assert first.id == second.id
        assert first.credits == 0
        assert CreditAccount.objects.filter(user=user).count() == 1

    def test_unknown_account(self):
        with pytest.raises(AccountNotFound):
            CreditService.get_active_credits(uuid.uuid4())

    def test_malformed_account_id(self):
        with pytest.raises(AccountNotFound):
            CreditService.get_account("not-a-uuid")


@pytest.mark.django_db
class TestAddCredits:
    """Tests for purchases."""

    def test_add_credits(self, account):
        """
        Given an account with 3 credits
        When 20 credits plus 2 bonus are purchased
        Then the balance is 25 and one purchase entry records the change
        """
        CreditService.add_credits(account.id, 3, source="test")

        balance = CreditService.add_credits(
            account.id, 22, source="stripe", bonus_credits=2, payment_reference="pi_123"
        )

        assert balance == 25
        entry = account.audit_entries.get(idempotency_key="purchase:pi_123")
        assert entry.action == AuditAction.PURCHASE
        assert entry.credits_before == 3
        assert entry.credits_after == 25
        assert entry.credits_changed == 22
        assert entry.metadata["bonus_credits"] == 2
        assert entry.created_by == "stripe"

    def test_repeated_payment_reference_applies_once(self, account):
        CreditService.add_credits(account.id, 12, payment_reference="pi_dup")
        balance = CreditService.add_credits(account.id, 12, payment_reference="pi_dup")

        assert balance == 12
        assert account.audit_entries.count() == 1

    def test_payment_reference_of_another_account_rejected(self, account):
        other = CreditAccountFactory()
        CreditService.add_credits(other.id, 10, payment_reference="pi_shared")

        with pytest.raises(PaymentReferenceConflict):
            CreditService.add_credits(account.id, 10, payment_reference="pi_shared")

        account.refresh_from_db()
        assert account.credits == 0
        assert account.audit_entries.count() == 0
        assert CreditService.get_active_credits(other.id) == 10

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount_rejected(self, account, amount):
        with pytest.raises(InvalidAmount):
            CreditService.add_credits(account.id, amount)

        assert account.audit_entries.count() == 0

    @pytest.mark.parametrize("bonus", [-1, 11])
    def test_bonus_outside_amount_rejected(self, account, bonus):
        with pytest.raises(InvalidAmount):
            CreditService.add_credits(account.id, 10, bonus_credits=bonus)

    def test_unknown_account(self):
        with pytest.raises(AccountNotFound):
            CreditService.add_credits(uuid.uuid4(), 5)


@pytest.mark.django_db
class TestDebitAndRefund:
    def test_debit(self, funded_account):
        balance = CreditService.debit_credits(funded_account.id, 4, reason="drop-in")

        assert balance == 6
        entry = funded_account.audit_entries.order_by("-sequence").first()
        assert entry.action == AuditAction.BOOKING_DEBIT
        assert entry.credits_changed == -4
        assert entry.metadata["reason"] == "drop-in"

    def test_overdraft_rejected_without_writes(self, funded_account):
        with pytest.raises(InsufficientCredits) as exc_info:
            CreditService.debit_credits(funded_account.id, 11, reason="too much")

        assert exc_info.value.required == 11
        assert exc_info.value.available == 10
        funded_account.refresh_from_db()
        assert funded_account.credits == 10
        assert funded_account.audit_entries.count() == 1

    def test_zero_debit_writes_nothing(self, funded_account):
        balance = CreditService.debit_credits(funded_account.id, 0, reason="free class")

        assert balance == 10
        assert funded_account.audit_entries.count() == 1

    def test_negative_debit_rejected(self, funded_account):
        with pytest.raises(InvalidAmount):
            CreditService.debit_credits(funded_account.id, -1, reason="sneaky")

    def test_debit_for_booking_links_entry(self, funded_account):
        booking = BookingFactory(account=funded_account)

        CreditService.debit_credits(funded_account.id, 1, reason="class", booking_id=booking.id)

        entry = booking.audit_entries.get()
        assert entry.idempotency_key == f"debit:{booking.id}"

    def test_refund_applied_once_per_booking(self, funded_account):
        booking = BookingFactory(account=funded_account, credits_used=3)

        CreditService.refund_credits(funded_account.id, 3, related_booking_id=booking.id)
        balance = CreditService.refund_credits(funded_account.id, 3, related_booking_id=booking.id)

        assert balance == 13
        assert booking.audit_entries.filter(action=AuditAction.BOOKING_REFUND).count() == 1

    def test_refund_not_capped_by_tier(self, funded_account):
        """Refunds may take the balance past the top-up cap."""
        booking = BookingFactory(account=funded_account, credits_used=5)

        balance = CreditService.refund_credits(funded_account.id, 5, related_booking_id=booking.id)

        assert balance == 15

    def test_refund_for_other_accounts_booking_rejected(self, funded_account):
        booking = BookingFactory()

        with pytest.raises(BookingNotFound):
            CreditService.refund_credits(funded_account.id, 1, related_booking_id=booking.id)


@pytest.mark.django_db
class TestAdjustCredits:
    def test_positive_adjustment(self, funded_account):
        balance = CreditService.adjust_credits(
            funded_account.id, 2, reason="instructor no-show", actor="staff:7"
        )

        assert balance == 12
        entry = funded_account.audit_entries.order_by("-sequence").first()
        assert entry.action == AuditAction.MANUAL_ADJUSTMENT
        assert entry.metadata == {"reason": "instructor no-show", "actor": "staff:7"}

    def test_negative_adjustment_cannot_overdraw(self, funded_account):
        with pytest.raises(InsufficientCredits):
            CreditService.adjust_credits(funded_account.id, -11, reason="fix", actor="staff:7")

    def test_zero_adjustment_rejected(self, funded_account):
        with pytest.raises(InvalidAmount):
            CreditService.adjust_credits(funded_account.id, 0, reason="noop", actor="staff:7")


@pytest.mark.django_db
class TestMonthlyGrant:
    PERIOD = datetime(2026, 4, 1, 0, 5, tzinfo=dt_timezone.utc)

    def test_grant_for_tier(self):
        account = CreditAccountFactory(tier=SubscriptionTier.PREMIUM)

        granted = CreditService.grant_monthly_credits(account.id, period=self.PERIOD)

        assert granted == 12
        entry = account.audit_entries.get()
        assert entry.action == AuditAction.MONTHLY_GRANT
        assert entry.idempotency_key == f"monthly:{account.id}:2026-04"

    def test_grant_once_per_month(self):
        account = CreditAccountFactory(tier=SubscriptionTier.BASIC)

        CreditService.grant_monthly_credits(account.id, period=self.PERIOD)
        again = CreditService.grant_monthly_credits(account.id, period=self.PERIOD)

        assert again == 0
        account.refresh_from_db()
        assert account.credits == 5

    def test_free_tier_gets_nothing(self, account):
        assert CreditService.grant_monthly_credits(account.id, period=self.PERIOD) == 0
        assert account.audit_entries.count() == 0

    def test_frozen_account_skipped(self):
        account = CreditAccountFactory(tier=SubscriptionTier.PREMIUM, is_frozen=True)

        assert CreditService.grant_monthly_credits(account.id, period=self.PERIOD) == 0


@pytest.mark.django_db
class TestQueries:
    def test_breakdown_splits_by_origin(self):
        """
        Given 30+3 purchased, 12 granted and 14 spent
        When the balance is broken down
        Then spending drains promotional credits first, then bonus
        """
        account = CreditAccountFactory(tier=SubscriptionTier.PREMIUM)
        CreditService.add_credits(account.id, 33, bonus_credits=3, payment_reference="pi_pack")
        CreditService.grant_monthly_credits(account.id)
        CreditService.debit_credits(account.id, 14, reason="classes")

        breakdown = CreditService.get_breakdown(account.id)

        assert breakdown.total == 31
        assert breakdown.promotional == 0
        assert breakdown.bonus == 1
        assert breakdown.purchased == 30
        assert breakdown.purchased + breakdown.bonus + breakdown.promotional == breakdown.total
        assert breakdown.expiring_soon == 0
        assert breakdown.credits_expire is False

    def test_breakdown_counts_refunds(self, funded_account):
        booking = BookingFactory(account=funded_account, credits_used=4)
        CreditService.debit_credits(funded_account.id, 4, reason="class", booking_id=booking.id)
        CreditService.refund_credits(funded_account.id, 4, related_booking_id=booking.id)

        breakdown = CreditService.get_breakdown(funded_account.id)

        assert breakdown.total == 10
        assert breakdown.purchased == 10

    def test_audit_log_newest_first_with_paging(self, funded_account):
        for _ in range(3):
            CreditService.debit_credits(funded_account.id, 1, reason="class")

        page = CreditService.get_audit_log(funded_account.id, limit=2, offset=1)

        assert [entry.sequence for entry in page] == [3, 2]

    def test_can_purchase_top_up_respects_cap(self, funded_account):
        # Free tier caps at 10
        assert CreditService.can_purchase_top_up(funded_account.id, 1) is False

        premium = CreditAccountFactory(tier=SubscriptionTier.PREMIUM, credits=20)
        assert CreditService.can_purchase_top_up(premium.id, 4) is True
        assert CreditService.can_purchase_top_up(premium.id, 5) is False
        assert CreditService.can_purchase_top_up(premium.id, 0) is False

    def test_top_up_eligibility_per_pack(self):
        premium = CreditAccountFactory(tier=SubscriptionTier.PREMIUM, credits=10)

        eligibility = CreditService.get_top_up_eligibility(premium.id)

        assert eligibility.tier_cap == 24
        assert eligibility.current_credits == 10
        by_pack = {option.pack: option for option in eligibility.packs}
        assert by_pack["starter"].eligible is True
        assert by_pack["starter"].would_have == 22
        assert by_pack["standard"].eligible is False
        assert by_pack["standard"].would_have == 43
        assert by_pack["premium"].eligible is False

    def test_top_up_eligibility_unknown_pack(self, account):
        with pytest.raises(InvalidAmount):
            CreditService.get_top_up_eligibility(account.id, pack="mega")


@pytest.mark.django_db
class TestReconcile:
    def test_consistent_history(self, funded_account):
        CreditService.debit_credits(funded_account.id, 3, reason="class")
        CreditService.adjust_credits(funded_account.id, 1, reason="fix", actor="staff:1")

        result = CreditService.reconcile(funded_account.id)

        assert result.is_consistent
        assert result.entry_count == 3
        assert result.replayed_balance == 8

    def test_balance_drift_detected_and_logged(self, funded_account):
        CreditAccount.objects.filter(id=funded_account.id).update(credits=50)

        with patch.object(CreditService, "get_logger") as mock_get_logger:
            result = CreditService.reconcile(funded_account.id)

        assert not result.is_consistent
        assert result.discrepancy == 40
        mock_get_logger.return_value.error.assert_called_once()

    def test_factory_balance_without_history_is_inconsistent(self):
        account = CreditAccountFactory(credits=5)

        result = CreditService.reconcile(account.id)

        assert result.balance == 5
        assert result.replayed_balance == 0
        assert not result.is_consistent

    def test_entries_form_a_chain(self, funded_account):
        CreditService.debit_credits(funded_account.id, 2, reason="class")
        CreditService.add_credits(funded_account.id, 5)

        entries = list(
            CreditAuditLogEntry.objects.filter(account=funded_account).order_by("sequence")
        )
        for previous, current in zip(entries, entries[1:]):
            assert current.credits_before == previous.credits_after
        assert entries[-1].credits_after == 13
