"""
Tests for AccountStateService: freeze/unfreeze and the plan swap.

Plan swaps go through FakeBillingAdapter (see conftest).
"""

import pytest
from freezegun import freeze_time

from credits.adapters import SubscriptionInfo
from credits.exceptions import AccountNotFound, AlreadyInState
from credits.models import CreditAccount
from credits.services import AccountStateService
from credits.state_machines import AuditAction
from credits.tests.factories import CreditAccountFactory


@pytest.fixture(autouse=True)
def price_settings(settings):
    settings.STRIPE_PRICE_FREEZE_PLAN = "price_freeze_plan"
    settings.STRIPE_PRICE_TIER_PREMIUM = "price_tier_premium"
    settings.STRIPE_PRICE_TIER_BASIC = "price_tier_basic"
    return settings


@pytest.mark.django_db
class TestFreeze:
    @freeze_time("2026-02-01 08:00:00")
    def test_freeze_keeps_balance(self, funded_account):
        result = AccountStateService.freeze(funded_account.id)

        assert result.frozen is True
        assert result.credits == 10
        assert result.frozen_at.isoformat() == "2026-02-01T08:00:00+00:00"
        assert result.billing_skipped is True

        account = CreditAccount.objects.get(id=funded_account.id)
        assert account.frozen is True
        assert account.credits == 10
        entry = account.audit_entries.order_by("-sequence").first()
        assert entry.action == AuditAction.ACCOUNT_FROZEN
        assert entry.credits_changed == 0

    def test_double_freeze_rejected(self, funded_account):
        AccountStateService.freeze(funded_account.id)

        with pytest.raises(AlreadyInState):
            AccountStateService.freeze(funded_account.id)

        assert funded_account.audit_entries.filter(action=AuditAction.ACCOUNT_FROZEN).count() == 1

    def test_unfreeze_active_account_rejected(self, funded_account):
        with pytest.raises(AlreadyInState):
            AccountStateService.unfreeze(funded_account.id)

    def test_freeze_unfreeze_is_balance_neutral(self, funded_account):
        AccountStateService.freeze(funded_account.id)
        result = AccountStateService.unfreeze(funded_account.id)

        assert result.frozen is False
        assert result.frozen_at is None
        assert result.credits == 10
        actions = list(
            funded_account.audit_entries.order_by("sequence").values_list("action", flat=True)
        )
        assert actions == [
            AuditAction.PURCHASE,
            AuditAction.ACCOUNT_FROZEN,
            AuditAction.ACCOUNT_UNFROZEN,
        ]

    def test_unknown_account(self):
        import uuid

        with pytest.raises(AccountNotFound):
            AccountStateService.freeze(uuid.uuid4())


@pytest.mark.django_db
class TestPlanSwap:
    def test_freeze_moves_subscription_to_freeze_plan(self, subscribed_account, billing_adapter):
        result = AccountStateService.freeze(subscribed_account.id)

        assert result.billing_synced is True
        update = billing_adapter.updates[-1]
        assert update["subscription_id"] == subscribed_account.stripe_subscription_id
        assert update["price_id"] == "price_freeze_plan"
        assert update["metadata"] == {"previous_price_id": "price_tier_premium"}
        assert CreditAccount.objects.get(id=subscribed_account.id).billing_sync_pending is False

    def test_unfreeze_restores_previous_price(self, subscribed_account, billing_adapter):
        billing_adapter.subscriptions[subscribed_account.stripe_subscription_id] = (
            SubscriptionInfo(
                id=subscribed_account.stripe_subscription_id,
                status="active",
                item_id="si_1",
                price_id="price_tier_basic",
            )
        )
        AccountStateService.freeze(subscribed_account.id)

        AccountStateService.unfreeze(subscribed_account.id)

        update = billing_adapter.updates[-1]
        assert update["price_id"] == "price_tier_basic"
        assert update["metadata"] == {"previous_price_id": ""}

    def test_unfreeze_falls_back_to_tier_price(self, billing_adapter):
        account = CreditAccountFactory(subscribed=True, is_frozen=True)
        billing_adapter.subscriptions[account.stripe_subscription_id] = SubscriptionInfo(
            id=account.stripe_subscription_id,
            status="active",
            item_id="si_1",
            price_id="price_freeze_plan",
        )

        result = AccountStateService.unfreeze(account.id)

        assert result.billing_synced is True
        assert billing_adapter.updates[-1]["price_id"] == "price_tier_premium"

    def test_swap_skipped_when_already_on_plan(self, billing_adapter):
        account = CreditAccountFactory(subscribed=True)
        billing_adapter.subscriptions[account.stripe_subscription_id] = SubscriptionInfo(
            id=account.stripe_subscription_id,
            status="active",
            item_id="si_1",
            price_id="price_freeze_plan",
        )

        result = AccountStateService.freeze(account.id)

        assert result.billing_synced is True
        assert billing_adapter.updates == []


@pytest.mark.django_db
class TestBillingDegraded:
    """Stripe failures never undo the state change."""

    def test_freeze_succeeds_when_stripe_is_down(self, subscribed_account, billing_unavailable):
        result = AccountStateService.freeze(subscribed_account.id)

        assert result.frozen is True
        assert result.billing_synced is False
        account = CreditAccount.objects.get(id=subscribed_account.id)
        assert account.frozen is True
        assert account.credits == 12
        assert account.billing_sync_pending is True
        assert account.billing_sync_attempts == 1
        assert "Stripe" in account.billing_sync_error

    def test_sync_retry_clears_pending(self, subscribed_account, billing_unavailable):
        AccountStateService.freeze(subscribed_account.id)
        billing_unavailable.fail_with = None

        synced = AccountStateService.sync_billing_plan(subscribed_account.id)

        assert synced is True
        account = CreditAccount.objects.get(id=subscribed_account.id)
        assert account.billing_sync_pending is False
        assert account.billing_sync_attempts == 0
        assert account.billing_sync_error == ""
        assert billing_unavailable.updates[-1]["price_id"] == "price_freeze_plan"

    def test_missing_freeze_price_is_degraded(self, settings, subscribed_account):
        settings.STRIPE_PRICE_FREEZE_PLAN = ""

        result = AccountStateService.freeze(subscribed_account.id)

        assert result.frozen is True
        assert result.billing_synced is False

    def test_sync_without_subscription_clears_flag(self):
        account = CreditAccountFactory(billing_sync_pending=True, billing_sync_attempts=3)

        assert AccountStateService.sync_billing_plan(account.id) is True
        account.refresh_from_db()
        assert account.billing_sync_pending is False


@pytest.mark.django_db
class TestGetStatus:
    def test_reports_pending_sync(self, subscribed_account, billing_unavailable):
        AccountStateService.freeze(subscribed_account.id)

        status = AccountStateService.get_status(subscribed_account.id)

        assert status.frozen is True
        assert status.billing_synced is False
        assert status.credits == 12
