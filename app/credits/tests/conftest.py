"""
Pytest fixtures for credit ledger tests.

The billing adapter is replaced by FakeBillingAdapter for every test in
this package, so no test reaches Stripe.

Usage:
    def test_freeze_swaps_plan(subscribed_account, billing_adapter):
        AccountStateService.freeze(subscribed_account.id)
        assert billing_adapter.updates[-1]["price_id"] == "price_freeze_plan"
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from credits.adapters import SubscriptionInfo
from credits.exceptions import BillingUnavailableError
from credits.services import AccountStateService, CreditService
from credits.state_machines import SubscriptionTier
from credits.tests.factories import CreditAccountFactory, TouristPassFactory
from studios.tests.factories import ClassSessionFactory


# =============================================================================
# Billing Adapter
# =============================================================================


class FakeBillingAdapter:
    """
    In-memory stand-in for StripeBillingAdapter.

    Subscriptions start on the premium tier price. Set `fail_with` to an
    exception to make every call raise it.
    """

    subscriptions: dict[str, SubscriptionInfo] = {}
    updates: list[dict] = []
    fail_with: Exception | None = None

    @classmethod
    def reset(cls) -> None:
        cls.subscriptions = {}
        cls.updates = []
        cls.fail_with = None

    @classmethod
    def retrieve_subscription(cls, subscription_id: str) -> SubscriptionInfo:
        if cls.fail_with is not None:
            raise cls.fail_with
        return cls.subscriptions.setdefault(
            subscription_id,
            SubscriptionInfo(
                id=subscription_id,
                status="active",
                item_id=f"si_{subscription_id}",
                price_id="price_tier_premium",
            ),
        )

    @classmethod
    def update_subscription_price(cls, subscription_id, price_id, metadata=None):
        current = cls.retrieve_subscription(subscription_id)
        cls.updates.append(
            {"subscription_id": subscription_id, "price_id": price_id, "metadata": metadata}
        )
        updated = SubscriptionInfo(
            id=subscription_id,
            status=current.status,
            item_id=current.item_id,
            price_id=price_id,
            metadata={**current.metadata, **(metadata or {})},
        )
        cls.subscriptions[subscription_id] = updated
        return updated


@pytest.fixture(autouse=True)
def billing_adapter():
    """Inject FakeBillingAdapter into AccountStateService."""
    FakeBillingAdapter.reset()
    AccountStateService.set_billing_adapter(FakeBillingAdapter)
    yield FakeBillingAdapter
    AccountStateService.set_billing_adapter(None)
    FakeBillingAdapter.reset()


@pytest.fixture
def billing_unavailable(billing_adapter):
    billing_adapter.fail_with = BillingUnavailableError(
        "Could not connect to Stripe. Please retry.",
        stripe_code="api_connection_error",
    )
    return billing_adapter


# =============================================================================
# Users & Accounts
# =============================================================================


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def staff_user(db):
    return UserFactory(is_staff=True)


@pytest.fixture
def account(user):
    """Empty free-tier account for `user`."""
    return CreditAccountFactory(user=user)


@pytest.fixture
def funded_account(account):
    """Account with 10 purchased credits recorded in the audit log."""
    CreditService.add_credits(account.id, 10, source="test", payment_reference="pi_seed")
    account.refresh_from_db()
    return account


@pytest.fixture
def subscribed_account(db):
    """Premium account with a Stripe subscription and 12 purchased credits."""
    account = CreditAccountFactory(subscribed=True, tier=SubscriptionTier.PREMIUM)
    CreditService.add_credits(account.id, 12, source="test")
    account.refresh_from_db()
    return account


@pytest.fixture
def tourist_pass(account):
    return TouristPassFactory(account=account)


# =============================================================================
# Classes
# =============================================================================


@pytest.fixture
def class_session(db):
    """Class tomorrow: 20 spots, 2 credits."""
    return ClassSessionFactory(credit_cost=2)


@pytest.fixture
def started_class(db):
    return ClassSessionFactory(start_time=timezone.now() - timedelta(minutes=5))


# =============================================================================
# API
# =============================================================================


def authenticated_client(user) -> APIClient:
    client = APIClient()
    token = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


@pytest.fixture
def api_client(user):
    return authenticated_client(user)


@pytest.fixture
def staff_client(staff_user):
    return authenticated_client(staff_user)
