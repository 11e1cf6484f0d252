"""
Tests for StripeBillingAdapter with the Stripe SDK mocked.
"""

from unittest.mock import MagicMock, patch

import pytest
import stripe

from credits.adapters import StripeBillingAdapter, SubscriptionInfo
from credits.exceptions import (
    BillingCardError,
    BillingInvalidRequestError,
    BillingRateLimitError,
    BillingUnavailableError,
)


def subscription_payload(price_id="price_tier_premium", metadata=None):
    return {
        "id": "sub_123",
        "status": "active",
        "items": {"data": [{"id": "si_123", "price": {"id": price_id}}]},
        "metadata": metadata or {},
    }


class TestSubscriptionInfo:
    def test_from_dict(self):
        info = SubscriptionInfo.from_stripe(
            subscription_payload(metadata={"previous_price_id": "price_old"})
        )

        assert info.id == "sub_123"
        assert info.item_id == "si_123"
        assert info.price_id == "price_tier_premium"
        assert info.metadata == {"previous_price_id": "price_old"}

    def test_without_items(self):
        info = SubscriptionInfo.from_stripe({"id": "sub_1", "items": {"data": []}})

        assert info.item_id is None
        assert info.price_id is None

    def test_from_stripe_object(self):
        obj = MagicMock()
        obj.to_dict.return_value = subscription_payload()

        assert SubscriptionInfo.from_stripe(obj).price_id == "price_tier_premium"


class TestSubscriptionCalls:
    @patch("credits.adapters.stripe_adapter.stripe.Subscription")
    def test_update_subscription_price(self, mock_subscription):
        mock_subscription.retrieve.return_value = subscription_payload()
        mock_subscription.modify.return_value = subscription_payload(price_id="price_freeze")

        info = StripeBillingAdapter.update_subscription_price(
            "sub_123", price_id="price_freeze", metadata={"previous_price_id": "price_tier_premium"}
        )

        assert info.price_id == "price_freeze"
        mock_subscription.modify.assert_called_once_with(
            "sub_123",
            items=[{"id": "si_123", "price": "price_freeze"}],
            proration_behavior="none",
            metadata={"previous_price_id": "price_tier_premium"},
        )

    @patch("credits.adapters.stripe_adapter.stripe.Subscription")
    def test_subscription_without_items(self, mock_subscription):
        mock_subscription.retrieve.return_value = {"id": "sub_123", "items": {"data": []}}

        with pytest.raises(BillingInvalidRequestError):
            StripeBillingAdapter.update_subscription_price("sub_123", price_id="price_freeze")

        mock_subscription.modify.assert_not_called()

    def test_configures_timeout_and_no_retries(self, settings):
        settings.STRIPE_API_TIMEOUT_SECONDS = 7

        with patch("credits.adapters.stripe_adapter.stripe") as mock_stripe:
            StripeBillingAdapter._configure_stripe()

        assert mock_stripe.max_network_retries == 0
        mock_stripe.RequestsClient.assert_called_once_with(timeout=7)


class TestErrorTranslation:
    @pytest.mark.parametrize(
        "error, expected",
        [
            (stripe.CardError("declined", None, "card_declined"), BillingCardError),
            (stripe.InvalidRequestError("No such subscription", "id"), BillingInvalidRequestError),
            (stripe.RateLimitError("slow down"), BillingRateLimitError),
            (stripe.APIConnectionError("timeout"), BillingUnavailableError),
            (stripe.AuthenticationError("bad key"), BillingInvalidRequestError),
            (stripe.APIError("500"), BillingUnavailableError),
            (RuntimeError("surprise"), BillingUnavailableError),
        ],
    )
    @patch("credits.adapters.stripe_adapter.stripe.Subscription")
    def test_sdk_errors_translated(self, mock_subscription, error, expected):
        mock_subscription.retrieve.side_effect = error

        with pytest.raises(expected):
            StripeBillingAdapter.retrieve_subscription("sub_123")

    def test_retryable_flags(self):
        assert BillingUnavailableError("x").is_retryable is True
        assert BillingRateLimitError("x").is_retryable is True
        assert BillingCardError("x").is_retryable is False


class TestWebhookSignature:
    @patch("credits.adapters.stripe_adapter.stripe.Webhook.construct_event")
    def test_bad_signature(self, mock_construct):
        mock_construct.side_effect = stripe.SignatureVerificationError("bad", "sig")

        with pytest.raises(BillingInvalidRequestError):
            StripeBillingAdapter.verify_webhook_signature(b"{}", "sig")

    @patch("credits.adapters.stripe_adapter.stripe.Webhook.construct_event")
    def test_bad_payload(self, mock_construct):
        mock_construct.side_effect = ValueError("not json")

        with pytest.raises(BillingInvalidRequestError):
            StripeBillingAdapter.verify_webhook_signature(b"nope", "sig")

    @patch("credits.adapters.stripe_adapter.stripe.Webhook.construct_event")
    def test_valid_event_returned_as_dict(self, mock_construct):
        mock_construct.return_value.to_dict.return_value = {"id": "evt_1", "type": "x"}

        assert StripeBillingAdapter.verify_webhook_signature(b"{}", "sig") == {
            "id": "evt_1",
            "type": "x",
        }
