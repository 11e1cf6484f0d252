"""
Account freeze / unfreeze with best-effort subscription plan swaps.

The state change and its audit entry commit first. The Stripe plan swap
runs afterwards, outside the transaction, with a bounded timeout and no
synchronous retries. A failed swap never undoes the state change: the
account keeps billing_sync_pending set and the sync_pending_billing_plans
task retries it.

State Flow:
    ACTIVE -> FROZEN -> ACTIVE

Usage:
    from credits.services import AccountStateService

    result = AccountStateService.freeze(account.id)
    if not result.billing_synced:
        ...  # swap is owed, retried out of band
"""

from __future__ import annotations

import uuid

from django.db.models import F
from django.utils import timezone

from core.services import BaseService

from credits.adapters import StripeBillingAdapter
from credits.catalog import get_freeze_price_id, get_tier_plan
from credits.exceptions import AlreadyInState, BillingError, ExternalServiceDegraded
from credits.models import CreditAccount
from credits.services.credit_service import CreditService
from credits.state_machines import AuditAction
from credits.types import AccountStateResult

PREVIOUS_PRICE_KEY = "previous_price_id"


class AccountStateService(BaseService):
    """Service for the account freeze state and its billing side effect."""

    # Billing adapter - can be injected for testing
    _billing_adapter: type | None = None

    @classmethod
    def get_billing_adapter(cls) -> type:
        return cls._billing_adapter or StripeBillingAdapter

    @classmethod
    def set_billing_adapter(cls, adapter: type | None) -> None:
        cls._billing_adapter = adapter

    # =========================================================================
    # Transitions
    # =========================================================================

    @classmethod
    def freeze(cls, account_id: uuid.UUID) -> AccountStateResult:
        """
        Freeze an active account. The balance is untouched.

        Raises:
            AccountNotFound
            AlreadyInState: Account is already frozen
        """
        return cls._transition(account_id, freeze=True)

    @classmethod
    def unfreeze(cls, account_id: uuid.UUID) -> AccountStateResult:
        """
        Unfreeze a frozen account.

        Raises:
            AccountNotFound
            AlreadyInState: Account is not frozen
        """
        return cls._transition(account_id, freeze=False)

    @classmethod
    def _transition(cls, account_id: uuid.UUID, freeze: bool) -> AccountStateResult:
        logger = cls.get_logger()

        with cls.atomic():
            account = CreditService.lock_account(account_id)
            if account.frozen == freeze:
                raise AlreadyInState(
                    "Account is already frozen" if freeze else "Account is not frozen",
                    details={"account_id": str(account.id), "state": account.state},
                )

            account.frozen = freeze
            account.frozen_at = timezone.now() if freeze else None
            account.billing_sync_pending = account.has_subscription
            account.save(
                update_fields=["frozen", "frozen_at", "billing_sync_pending", "updated_at"]
            )
            CreditService.record_entry(
                account,
                AuditAction.ACCOUNT_FROZEN if freeze else AuditAction.ACCOUNT_UNFROZEN,
                0,
                metadata={"tier": account.tier},
                created_by="account_state",
            )

        logger.info(
            "Account frozen" if freeze else "Account unfrozen",
            extra={"account_id": str(account.id), "credits": account.credits},
        )

        billing_skipped = not account.has_subscription
        billing_synced = True if billing_skipped else cls._attempt_billing_sync(account)

        return AccountStateResult(
            account_id=account.id,
            frozen=account.frozen,
            frozen_at=account.frozen_at,
            credits=account.credits,
            billing_synced=billing_synced,
            billing_skipped=billing_skipped,
        )

    @classmethod
    def get_status(cls, account_id: uuid.UUID) -> AccountStateResult:
        account = CreditService.get_account(account_id)
        return AccountStateResult(
            account_id=account.id,
            frozen=account.frozen,
            frozen_at=account.frozen_at,
            credits=account.credits,
            billing_synced=not account.billing_sync_pending,
            billing_skipped=not account.has_subscription,
        )

    # =========================================================================
    # Billing Sync
    # =========================================================================

    @classmethod
    def sync_billing_plan(cls, account_id: uuid.UUID) -> bool:
        """
        Bring the Stripe subscription in line with the account's freeze state.

        Returns:
            True when the subscription is on the right plan (or there is no
            subscription), False when the swap failed and is still owed
        """
        account = CreditService.get_account(account_id)
        if not account.has_subscription:
            CreditAccount.objects.filter(id=account.id).update(
                billing_sync_pending=False,
                billing_sync_error="",
                billing_sync_attempts=0,
                updated_at=timezone.now(),
            )
            return True
        return cls._attempt_billing_sync(account)

    @classmethod
    def _attempt_billing_sync(cls, account: CreditAccount) -> bool:
        try:
            cls._swap_plan(account)
        except ExternalServiceDegraded as exc:
            cls.get_logger().warning(
                "Billing plan swap failed, will retry",
                extra={
                    "account_id": str(account.id),
                    "subscription_id": account.stripe_subscription_id,
                    "frozen": account.frozen,
                    "error": exc.message,
                },
            )
            CreditAccount.objects.filter(id=account.id).update(
                billing_sync_pending=True,
                billing_sync_error=exc.message,
                billing_sync_attempts=F("billing_sync_attempts") + 1,
                updated_at=timezone.now(),
            )
            return False

        CreditAccount.objects.filter(id=account.id).update(
            billing_sync_pending=False,
            billing_sync_error="",
            billing_sync_attempts=0,
            updated_at=timezone.now(),
        )
        return True

    @classmethod
    def _swap_plan(cls, account: CreditAccount) -> None:
        """
        Move the subscription to the freeze plan, or back off it.

        Freezing stores the current price in the subscription metadata;
        unfreezing restores it, falling back to the tier's price.

        Raises:
            ExternalServiceDegraded: Any billing failure
        """
        adapter = cls.get_billing_adapter()
        subscription_id = account.stripe_subscription_id
        freeze_price_id = get_freeze_price_id()

        try:
            current = adapter.retrieve_subscription(subscription_id)

            if account.frozen:
                if not freeze_price_id:
                    raise ExternalServiceDegraded("Freeze plan price is not configured")
                if current.price_id == freeze_price_id:
                    return
                adapter.update_subscription_price(
                    subscription_id,
                    price_id=freeze_price_id,
                    metadata={PREVIOUS_PRICE_KEY: current.price_id or ""},
                )
            else:
                target_price_id = (
                    current.metadata.get(PREVIOUS_PRICE_KEY)
                    or get_tier_plan(account.tier).stripe_price_id
                )
                if not target_price_id:
                    raise ExternalServiceDegraded(
                        f"No price to restore for tier {account.tier}"
                    )
                if current.price_id == target_price_id:
                    return
                adapter.update_subscription_price(
                    subscription_id,
                    price_id=target_price_id,
                    metadata={PREVIOUS_PRICE_KEY: ""},
                )
        except BillingError as exc:
            raise ExternalServiceDegraded(
                exc.message,
                details={"stripe_code": exc.stripe_code, "retryable": exc.is_retryable},
            ) from exc
