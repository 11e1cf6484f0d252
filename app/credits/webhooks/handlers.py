"""
Webhook event handlers for Stripe payment confirmations.

A confirmed payment either tops up credits or grants a tourist pass,
depending on the `kind` in the payment's metadata:

    kind=topup          pack=<catalog key>  or  credits=<n>, bonus_credits=<n>
    kind=tourist_pass   pass_type=<catalog key>

Every confirmation also carries account_id. The payment reference (the
PaymentIntent id when present) is the idempotency key, so the same payment
seen through checkout.session.completed and payment_intent.succeeded is
applied once.

Usage:
    from credits.webhooks.handlers import dispatch_webhook

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from core.services import ServiceResult

from credits.catalog import get_credit_pack
from credits.exceptions import InvalidAmount, LedgerError
from credits.models import WebhookEvent
from credits.services import CreditService, TouristPassService

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}

KIND_TOPUP = "topup"
KIND_TOURIST_PASS = "tourist_pass"


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("payment_intent.succeeded")
        def handle_payment_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
            ...
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to its handler.

    Unknown event types succeed without doing anything so Stripe stops
    redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return handler(webhook_event)


# =============================================================================
# Payment Confirmation Handlers
# =============================================================================


@register_handler("checkout.session.completed")
def handle_checkout_session_completed(webhook_event: WebhookEvent) -> ServiceResult:
    """Apply a paid Checkout Session. Unpaid sessions are ignored."""
    session = webhook_event.data_object

    if session.get("payment_status") != "paid":
        logger.info(
            "Checkout session not paid, ignoring",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "payment_status": session.get("payment_status"),
            },
        )
        return ServiceResult.success(None)

    payment_reference = session.get("payment_intent") or session.get("id")
    return apply_payment_confirmation(
        webhook_event,
        metadata=session.get("metadata") or {},
        payment_reference=payment_reference,
    )


@register_handler("payment_intent.succeeded")
def handle_payment_intent_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
    """Apply a succeeded PaymentIntent that carries ledger metadata."""
    intent = webhook_event.data_object
    return apply_payment_confirmation(
        webhook_event,
        metadata=intent.get("metadata") or {},
        payment_reference=intent.get("id"),
    )


def apply_payment_confirmation(
    webhook_event: WebhookEvent,
    metadata: dict[str, Any],
    payment_reference: str | None,
) -> ServiceResult:
    """
    Credit a top-up or grant a tourist pass from payment metadata.

    Payments without a ledger `kind` belong to someone else and succeed
    untouched.
    """
    kind = metadata.get("kind")
    log_context = {
        "stripe_event_id": webhook_event.stripe_event_id,
        "payment_reference": payment_reference,
        "kind": kind,
    }

    if kind not in (KIND_TOPUP, KIND_TOURIST_PASS):
        logger.info("Payment has no ledger metadata, ignoring", extra=log_context)
        return ServiceResult.success(None)

    account_id = metadata.get("account_id")
    if not account_id or not payment_reference:
        logger.error("Payment confirmation missing account or reference", extra=log_context)
        return ServiceResult.failure(
            "Payment confirmation missing account_id or payment reference",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    try:
        if kind == KIND_TOPUP:
            credits, bonus_credits = _resolve_top_up(metadata)
            balance = CreditService.add_credits(
                account_id,
                credits + bonus_credits,
                source="stripe",
                bonus_credits=bonus_credits,
                payment_reference=payment_reference,
                metadata={"pack": metadata.get("pack", "")},
            )
            return ServiceResult.success({"balance": balance})

        tourist_pass = TouristPassService.grant_pass(
            account_id,
            metadata.get("pass_type", ""),
            payment_reference=payment_reference,
        )
        return ServiceResult.success({"tourist_pass_id": str(tourist_pass.id)})

    except LedgerError as exc:
        logger.warning(
            f"Payment confirmation rejected: {exc.message}",
            extra={**log_context, "error_code": exc.error_code},
        )
        return ServiceResult.from_exception(exc)


def _resolve_top_up(metadata: dict[str, Any]) -> tuple[int, int]:
    """(credits, bonus_credits) from a catalog pack key or explicit counts."""
    pack_key = metadata.get("pack")
    if pack_key:
        pack = get_credit_pack(pack_key)
        if pack is None:
            raise InvalidAmount(f"Unknown credit pack: {pack_key}", details={"pack": pack_key})
        return pack.credits, pack.bonus_credits

    try:
        return int(metadata.get("credits", 0)), int(metadata.get("bonus_credits", 0))
    except (TypeError, ValueError):
        raise InvalidAmount(
            "Credit counts in payment metadata are not integers",
            details={
                "credits": metadata.get("credits"),
                "bonus_credits": metadata.get("bonus_credits"),
            },
        )
