"""
Celery tasks for the credit ledger.

This module provides async tasks for:
- Processing Stripe webhook events
- Retrying failed or never-queued webhook events
- Retrying owed subscription plan swaps
- Completing bookings whose class has ended
- Granting monthly tier credits
- Reconciling balances against the audit log

Periodic schedules are created by the credits data migration
(django-celery-beat DatabaseScheduler).

Usage:
    from credits.tasks import process_webhook_event

    process_webhook_event.delay(str(webhook_event.id))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from credits.catalog import TIER_PLANS
from credits.models import CreditAccount, WebhookEvent
from credits.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# PENDING events older than this were never queued (broker outage)
UNQUEUED_WEBHOOK_THRESHOLD_MINUTES = 10

# Events re-queued per retry run
WEBHOOK_RETRY_BATCH_SIZE = 100


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a stored Stripe webhook event.

    Handler failures mark the event FAILED for retry_failed_webhooks.
    Unexpected exceptions also mark it FAILED and are re-raised so Celery
    retries with backoff.
    """
    from credits.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        logger.info(
            "WebhookEvent already processed, skipping",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return {"status": "already_processed", "webhook_event_id": str(webhook_event_id)}

    webhook_event.mark_processing()
    webhook_event.save()

    try:
        result = dispatch_webhook(webhook_event)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.exception(
            "Webhook processing failed with exception",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
            },
        )
        raise

    if not result.success:
        error_msg = result.error or "Handler returned failure"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.warning(
            f"Webhook handler failed: {error_msg}",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "error_code": result.error_code,
            },
        )
        return {
            "status": "handler_failed",
            "webhook_event_id": str(webhook_event_id),
            "error": error_msg,
        }

    webhook_event.mark_processed()
    webhook_event.save()
    logger.info(
        "Webhook processed successfully",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "stripe_event_id": webhook_event.stripe_event_id,
        },
    )
    return {
        "status": "processed",
        "webhook_event_id": str(webhook_event_id),
        "stripe_event_id": webhook_event.stripe_event_id,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Re-queue FAILED events with retries left, and PENDING events that were
    stored but never queued.
    """
    unqueued_before = timezone.now() - timedelta(minutes=UNQUEUED_WEBHOOK_THRESHOLD_MINUTES)

    failed = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=settings.WEBHOOK_MAX_RETRIES,
    )
    unqueued = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PENDING,
        created_at__lt=unqueued_before,
    )
    candidates = (failed | unqueued).order_by("created_at")[:WEBHOOK_RETRY_BATCH_SIZE]

    queued_count = 0
    for webhook in candidates:
        process_webhook_event.delay(str(webhook.id))
        queued_count += 1

    if queued_count:
        logger.info(
            f"Queued {queued_count} webhooks for retry",
            extra={"queued_count": queued_count},
        )
    return {"queued_count": queued_count}


# =============================================================================
# Account Tasks
# =============================================================================


@shared_task
def sync_pending_billing_plans() -> dict:
    """Retry subscription plan swaps owed after a freeze or unfreeze."""
    from credits.services import AccountStateService

    account_ids = list(
        CreditAccount.objects.filter(
            billing_sync_pending=True,
            billing_sync_attempts__lt=settings.BILLING_SYNC_MAX_ATTEMPTS,
        ).values_list("id", flat=True)
    )

    synced = failed = 0
    for account_id in account_ids:
        if AccountStateService.sync_billing_plan(account_id):
            synced += 1
        else:
            failed += 1

    if account_ids:
        logger.info(
            "Billing plan sync run finished",
            extra={"synced": synced, "failed": failed},
        )
    return {"synced": synced, "failed": failed}


@shared_task
def grant_monthly_credits_to_subscribers() -> dict:
    """Grant this month's allocation to every active account on a paid tier."""
    from credits.services import CreditService

    paid_tiers = [tier for tier, plan in TIER_PLANS.items() if plan.monthly_credits > 0]
    account_ids = list(
        CreditAccount.objects.filter(tier__in=paid_tiers, frozen=False).values_list(
            "id", flat=True
        )
    )

    granted_accounts = 0
    granted_credits = 0
    now = timezone.now()
    for account_id in account_ids:
        granted = CreditService.grant_monthly_credits(account_id, period=now)
        if granted:
            granted_accounts += 1
            granted_credits += granted

    logger.info(
        "Monthly credit grant finished",
        extra={"accounts": granted_accounts, "credits": granted_credits},
    )
    return {"accounts": granted_accounts, "credits": granted_credits}


# =============================================================================
# Booking & Reconciliation Tasks
# =============================================================================


@shared_task
def complete_finished_bookings() -> dict:
    """Complete confirmed bookings whose class has ended."""
    from credits.services import BookingCoordinator

    return {"completed": BookingCoordinator.complete_finished_bookings()}


@shared_task
def reconcile_credit_balances() -> dict:
    """
    Replay every account's audit log against its balance.

    Mismatches are logged at ERROR by CreditService.reconcile().
    """
    from credits.services import CreditService

    checked = 0
    inconsistent = []
    for account_id in CreditAccount.objects.values_list("id", flat=True).iterator():
        result = CreditService.reconcile(account_id)
        checked += 1
        if not result.is_consistent:
            inconsistent.append(str(account_id))

    return {"checked": checked, "inconsistent": inconsistent}
