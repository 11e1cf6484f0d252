"""
End-to-end ledger scenarios across services.

Each scenario ends with a reconciliation: the audit log must replay to the
stored balance.
"""

import pytest

from credits.exceptions import AlreadyInState, ClassFull
from credits.models import CreditAccount, TouristPass
from credits.services import (
    AccountStateService,
    BookingCoordinator,
    CreditService,
    TouristPassService,
)
from credits.state_machines import BookingStatus, FundingSource
from credits.tests.factories import CreditAccountFactory
from studios.tests.factories import ClassSessionFactory


def assert_reconciles(account_id):
    result = CreditService.reconcile(account_id)
    assert result.is_consistent, result.to_dict()


@pytest.mark.django_db
class TestMemberJourneys:
    def test_booking_the_last_spot(self, account):
        """
        Given a member with 5 credits and a 2-credit class with one spot
        When the member books and a second member tries the same class
        Then the member has 3 credits left and the second member is turned away
        """
        CreditService.add_credits(account.id, 5, payment_reference="pi_journey_1")
        one_spot = ClassSessionFactory(max_capacity=1, credit_cost=2)
        other = CreditAccountFactory()
        CreditService.add_credits(other.id, 5)

        result = BookingCoordinator.attempt_booking(account.id, one_spot.id)
        with pytest.raises(ClassFull):
            BookingCoordinator.attempt_booking(other.id, one_spot.id)

        assert result.remaining_credits == 3
        assert CreditAccount.objects.get(id=other.id).credits == 5
        assert one_spot.bookings.filter(status=BookingStatus.CONFIRMED).count() == 1
        assert_reconciles(account.id)
        assert_reconciles(other.id)

    def test_tourist_with_last_pass_class(self, account):
        """
        Given a visitor with no credits and a pass with one class left
        When the visitor books
        Then the pass pays, credits stay at 0, and the pass is used up
        """
        tourist_pass = TouristPassService.grant_pass(
            account.id, "tourist_3day", payment_reference="pi_journey_pass"
        )
        TouristPass.objects.filter(id=tourist_pass.id).update(classes_used=4)
        class_session = ClassSessionFactory(credit_cost=3)

        result = BookingCoordinator.attempt_booking(account.id, class_session.id)

        assert result.funding_source == FundingSource.TOURIST_PASS
        assert result.remaining_credits == 0
        tourist_pass.refresh_from_db()
        assert tourist_pass.classes_remaining == 0
        assert TouristPassService.get_active_pass(account.id) == tourist_pass
        assert account.audit_entries.count() == 0

    def test_purchase_with_bonus(self, account):
        """
        Given a member with 3 credits
        When a 20-credit purchase with 2 bonus credits is confirmed twice
        Then the balance is 25
        """
        CreditService.add_credits(account.id, 3)

        CreditService.add_credits(account.id, 22, bonus_credits=2, payment_reference="pi_bonus")
        CreditService.add_credits(account.id, 22, bonus_credits=2, payment_reference="pi_bonus")

        assert CreditService.get_active_credits(account.id) == 25
        breakdown = CreditService.get_breakdown(account.id)
        assert (breakdown.purchased, breakdown.bonus) == (23, 2)
        assert_reconciles(account.id)

    def test_freeze_round_trip_is_neutral(self, account, class_session):
        """
        Given a member with a confirmed booking and 8 credits
        When the account is frozen, frozen again, and unfrozen
        Then the second freeze conflicts and the balance never moves
        """
        CreditService.add_credits(account.id, 10)
        booking = BookingCoordinator.attempt_booking(account.id, class_session.id).booking

        AccountStateService.freeze(account.id)
        with pytest.raises(AlreadyInState):
            AccountStateService.freeze(account.id)
        AccountStateService.unfreeze(account.id)

        assert CreditService.get_active_credits(account.id) == 8
        cancellation = BookingCoordinator.cancel_booking(booking.id, account_id=account.id)
        assert cancellation.remaining_credits == 10
        assert_reconciles(account.id)
