"""
Stripe billing adapter for subscription plan swaps and webhook verification.

All Stripe calls made by the ledger go through this adapter so they share
one timeout, no SDK-level retries, structured timing logs and translation
of SDK errors into credits.exceptions.BillingError subclasses.

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from credits.adapters import StripeBillingAdapter

    info = StripeBillingAdapter.update_subscription_price(
        "sub_123",
        price_id=settings.STRIPE_PRICE_FREEZE_PLAN,
        metadata={"previous_price_id": "price_premium"},
    )
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import stripe
from django.conf import settings

from credits.exceptions import (
    BillingCardError,
    BillingInvalidRequestError,
    BillingRateLimitError,
    BillingUnavailableError,
)


@dataclass
class SubscriptionInfo:
    """The parts of a Stripe Subscription the ledger cares about."""

    id: str
    status: str
    item_id: str | None
    price_id: str | None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_stripe(cls, subscription: Any) -> SubscriptionInfo:
        data = subscription.to_dict() if hasattr(subscription, "to_dict") else subscription
        items = (data.get("items") or {}).get("data") or []
        first_item = items[0] if items else {}
        return cls(
            id=data["id"],
            status=data.get("status", ""),
            item_id=first_item.get("id"),
            price_id=(first_item.get("price") or {}).get("id"),
            metadata=dict(data.get("metadata") or {}),
        )


class StripeBillingAdapter:
    """
    Adapter for Stripe subscription operations.

    All methods are classmethods - no instance state is maintained.
    Safe to call from Celery workers.
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure the API key, a bounded timeout and no SDK retries."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.max_network_retries = 0
        stripe.default_http_client = stripe.RequestsClient(
            timeout=settings.STRIPE_API_TIMEOUT_SECONDS
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Subscriptions
    # =========================================================================

    @classmethod
    def retrieve_subscription(cls, subscription_id: str) -> SubscriptionInfo:
        """
        Retrieve a subscription by ID.

        Raises:
            BillingInvalidRequestError: Subscription not found
            BillingUnavailableError: Stripe unreachable
        """
        cls._configure_stripe()
        logger = cls.get_logger()
        log_context = {
            "operation": "retrieve_subscription",
            "subscription_id": subscription_id,
        }

        start_time = time.time()
        logger.debug("Starting Stripe operation", extra=log_context)
        try:
            subscription = stripe.Subscription.retrieve(subscription_id)
        except Exception as e:
            cls._handle_stripe_error(e, log_context, (time.time() - start_time) * 1000)
            raise

        logger.debug(
            "Stripe operation completed",
            extra={**log_context, "duration_ms": (time.time() - start_time) * 1000},
        )
        return SubscriptionInfo.from_stripe(subscription)

    @classmethod
    def update_subscription_price(
        cls,
        subscription_id: str,
        price_id: str,
        metadata: dict[str, str] | None = None,
    ) -> SubscriptionInfo:
        """
        Swap the subscription's item to another price.

        No proration: the new price applies from the next billing period.
        metadata is merged into the subscription's metadata.

        Raises:
            BillingInvalidRequestError: Unknown subscription or price
            BillingRateLimitError / BillingUnavailableError: Retry later
        """
        current = cls.retrieve_subscription(subscription_id)

        cls._configure_stripe()
        logger = cls.get_logger()
        log_context = {
            "operation": "update_subscription_price",
            "subscription_id": subscription_id,
            "from_price_id": current.price_id,
            "to_price_id": price_id,
        }

        if current.item_id is None:
            logger.error("Subscription has no items", extra=log_context)
            raise BillingInvalidRequestError(
                f"Subscription {subscription_id} has no items",
                stripe_code="subscription_without_items",
            )

        start_time = time.time()
        logger.info("Swapping subscription price", extra=log_context)
        try:
            subscription = stripe.Subscription.modify(
                subscription_id,
                items=[{"id": current.item_id, "price": price_id}],
                proration_behavior="none",
                metadata=metadata or {},
            )
        except Exception as e:
            cls._handle_stripe_error(e, log_context, (time.time() - start_time) * 1000)
            raise

        logger.info(
            "Subscription price swapped",
            extra={**log_context, "duration_ms": (time.time() - start_time) * 1000},
        )
        return SubscriptionInfo.from_stripe(subscription)

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(cls, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Raises:
            BillingInvalidRequestError: Invalid signature or payload
        """
        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
        except stripe.SignatureVerificationError as e:
            raise BillingInvalidRequestError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            )
        except ValueError as e:
            raise BillingInvalidRequestError(
                "Invalid webhook payload",
                stripe_code="invalid_payload",
                details={"error": str(e)},
            )
        return event.to_dict()

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to billing exceptions.

        Raises:
            BillingCardError: Card problem on the customer's payment method
            BillingInvalidRequestError: Bad parameters, unknown object, bad key
            BillingRateLimitError: Rate limited
            BillingUnavailableError: Network failure, Stripe 5xx, anything else
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise BillingCardError(
                str(error.user_message or error),
                stripe_code=error.code,
            )

        elif isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise BillingInvalidRequestError(str(error), stripe_code=error.code)

        elif isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise BillingRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            )

        elif isinstance(error, stripe.APIConnectionError):
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            raise BillingUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            )

        elif isinstance(error, stripe.AuthenticationError):
            logger.critical("Stripe authentication failed - check API key", extra=log_context)
            raise BillingInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            )

        elif isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise BillingUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            )

        else:
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise BillingUnavailableError(
                f"Unexpected Stripe error: {error}",
                stripe_code="unknown_error",
            )
