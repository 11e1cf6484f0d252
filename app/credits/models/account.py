"""
CreditAccount model: the root of every member's ledger.

One account per authenticated user, created on first access. The
materialized balance lives in `credits`; the audit log holds the history
that must replay to it.

Usage:
    from credits.models import CreditAccount

    account = CreditAccount.objects.select_for_update().get(id=account_id)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from credits.state_machines import AccountState, SubscriptionTier


class CreditAccount(UUIDPrimaryKeyMixin, BaseModel):
    """
    A member's credit balance, freeze state and billing references.

    Fields:
        user: Owning user (the stable identity the account derives from)
        credits: Current balance (never negative)
        tier: Subscription tier
        frozen: Whether bookings are blocked
        frozen_at: When the account was frozen (set iff frozen)
        stripe_customer_id: Stripe Customer (cus_xxx), optional
        stripe_subscription_id: Stripe Subscription (sub_xxx), optional
        billing_sync_pending: A freeze/unfreeze plan swap is owed to Stripe
        billing_sync_error: Last plan swap failure
        billing_sync_attempts: Plan swap attempts since the last success

    Constraints:
        - credits >= 0
        - frozen_at is set exactly when frozen is True

    Note:
        Accounts are never deleted. Bookings, passes and audit entries
        reference them with on_delete=PROTECT.
    """

    # ==========================================================================
    # Identity & Balance
    # ==========================================================================

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="credit_account",
        help_text="Owning user",
    )
    credits = models.PositiveIntegerField(
        default=0,
        help_text="Current credit balance",
    )
    tier = models.CharField(
        max_length=20,
        choices=SubscriptionTier.choices,
        default=SubscriptionTier.FREE,
        db_index=True,
        help_text="Subscription tier",
    )

    # ==========================================================================
    # Freeze State
    # ==========================================================================

    frozen = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Frozen accounts keep their balance but cannot book",
    )
    frozen_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the account was frozen",
    )

    # ==========================================================================
    # Billing
    # ==========================================================================

    stripe_customer_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Stripe Customer ID (cus_xxx)",
    )
    stripe_subscription_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        db_index=True,
        help_text="Stripe Subscription ID (sub_xxx)",
    )
    billing_sync_pending = models.BooleanField(
        default=False,
        db_index=True,
        help_text="A subscription plan swap still has to reach Stripe",
    )
    billing_sync_error = models.TextField(
        blank=True,
        default="",
        help_text="Last plan swap failure",
    )
    billing_sync_attempts = models.PositiveSmallIntegerField(
        default=0,
        help_text="Plan swap attempts since the last success",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(credits__gte=0),
                name="credit_account_credits_non_negative",
            ),
            models.CheckConstraint(
                condition=(
                    Q(frozen=True, frozen_at__isnull=False)
                    | Q(frozen=False, frozen_at__isnull=True)
                ),
                name="credit_account_frozen_at_matches_frozen",
            ),
        ]

    def __str__(self) -> str:
        return f"CreditAccount({self.user_id}, {self.credits} credits, {self.state})"

    @property
    def state(self) -> str:
        return AccountState.FROZEN if self.frozen else AccountState.ACTIVE

    @property
    def has_subscription(self) -> bool:
        return bool(self.stripe_subscription_id)
