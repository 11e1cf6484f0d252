"""
Credit accounting: balances, purchases, debits, refunds and the audit log.

Every balance change goes through this service. A change locks the account
row, writes one CreditAuditLogEntry and updates CreditAccount.credits in the
same transaction, so replaying the audit log always reproduces the balance.

Idempotency keys:
    purchase:<payment_reference>    add_credits()
    debit:<booking_id>              booking debits
    refund:<booking_id>             booking refunds
    monthly:<account_id>:<YYYY-MM>  grant_monthly_credits()

Usage:
    from credits.services import CreditService

    balance = CreditService.add_credits(
        account.id, 22, source="stripe", bonus_credits=2, payment_reference="pi_123"
    )
    breakdown = CreditService.get_breakdown(account.id)
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Max
from django.utils import timezone

from core.services import BaseService

from credits.catalog import CREDIT_PACKS, get_credit_pack, get_tier_plan
from credits.exceptions import (
    AccountNotFound,
    BookingNotFound,
    InsufficientCredits,
    InvalidAmount,
    PaymentReferenceConflict,
)
from credits.models import Booking, CreditAccount, CreditAuditLogEntry
from credits.state_machines import AuditAction
from credits.types import (
    CreditBreakdown,
    PackEligibility,
    ReconciliationResult,
    TopUpEligibility,
)

if TYPE_CHECKING:
    from datetime import datetime
    from typing import Any

    from django.contrib.auth.models import AbstractBaseUser


PROMOTIONAL_ACTIONS = frozenset([AuditAction.MONTHLY_GRANT, AuditAction.MANUAL_ADJUSTMENT])


class CreditService(BaseService):
    """
    Service for credit balance operations.

    Public mutators open their own transaction and lock the account. The
    apply_* / record_entry methods expect the caller to already hold the
    account lock inside an open transaction; the booking coordinator and
    the account state service use them to keep their writes atomic.
    """

    # =========================================================================
    # Accounts
    # =========================================================================

    @classmethod
    def get_or_create_account(cls, user: AbstractBaseUser) -> CreditAccount:
        """Return the user's account, creating an empty one on first access."""
        account, created = CreditAccount.objects.get_or_create(user=user)
        if created:
            cls.get_logger().info(
                "Credit account created",
                extra={"account_id": str(account.id), "user_id": user.pk},
            )
        return account

    @classmethod
    def get_account(cls, account_id: uuid.UUID) -> CreditAccount:
        try:
            return CreditAccount.objects.get(id=account_id)
        except (CreditAccount.DoesNotExist, ValueError, DjangoValidationError):
            raise AccountNotFound(
                f"Account {account_id} not found",
                details={"account_id": str(account_id)},
            )

    @classmethod
    def lock_account(cls, account_id: uuid.UUID) -> CreditAccount:
        """
        Fetch the account with SELECT ... FOR UPDATE.

        Must be called inside a transaction; the lock is held until it ends.
        """
        try:
            return CreditAccount.objects.select_for_update().get(id=account_id)
        except (CreditAccount.DoesNotExist, ValueError, DjangoValidationError):
            raise AccountNotFound(
                f"Account {account_id} not found",
                details={"account_id": str(account_id)},
            )

    # =========================================================================
    # Queries
    # =========================================================================

    @classmethod
    def get_active_credits(cls, account_id: uuid.UUID) -> int:
        return cls.get_account(account_id).credits

    @classmethod
    def get_breakdown(cls, account_id: uuid.UUID) -> CreditBreakdown:
        """
        Split the balance by where the credits came from.

        Purchases are split into purchased and bonus credits using the
        bonus_credits recorded with them; monthly grants and positive manual
        adjustments are promotional. Net consumption (debits, negative
        adjustments, less refunds) is drawn from promotional credits first,
        then bonus, then purchased.
        """
        account = cls.get_account(account_id)

        purchased = bonus = promotional = consumed = 0
        entries = account.audit_entries.order_by("sequence").values_list(
            "action", "credits_changed", "metadata"
        )
        for action, changed, metadata in entries:
            if action == AuditAction.PURCHASE:
                entry_bonus = min(int((metadata or {}).get("bonus_credits", 0)), changed)
                bonus += entry_bonus
                purchased += changed - entry_bonus
            elif action in PROMOTIONAL_ACTIONS and changed > 0:
                promotional += changed
            else:
                consumed -= changed

        consumed = max(consumed, 0)
        buckets = {"promotional": promotional, "bonus": bonus, "purchased": purchased}
        for name in ("promotional", "bonus", "purchased"):
            drawn = min(buckets[name], consumed)
            buckets[name] -= drawn
            consumed -= drawn

        return CreditBreakdown(
            total=account.credits,
            purchased=buckets["purchased"],
            bonus=buckets["bonus"],
            promotional=buckets["promotional"],
        )

    @classmethod
    def get_audit_log(
        cls,
        account_id: uuid.UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CreditAuditLogEntry]:
        """Most recent entries first."""
        account = cls.get_account(account_id)
        queryset = account.audit_entries.order_by("-sequence")
        return list(queryset[offset : offset + limit])

    @classmethod
    def can_purchase_top_up(cls, account_id: uuid.UUID, credits: int) -> bool:
        """Whether buying `credits` keeps the balance within the tier's cap."""
        if credits <= 0:
            return False
        account = cls.get_account(account_id)
        return account.credits + credits <= get_tier_plan(account.tier).credit_cap

    @classmethod
    def get_top_up_eligibility(
        cls,
        account_id: uuid.UUID,
        pack: str | None = None,
    ) -> TopUpEligibility:
        """
        Which credit packs the account may buy right now.

        Checked before a checkout is started; a pack that would take the
        balance over the tier's credit cap is reported as not eligible.

        Raises:
            InvalidAmount: Unknown pack key
        """
        if pack is not None and get_credit_pack(pack) is None:
            raise InvalidAmount(
                f"Unknown credit pack: {pack}",
                details={"pack": pack},
            )

        account = cls.get_account(account_id)
        cap = get_tier_plan(account.tier).credit_cap
        packs = [get_credit_pack(pack)] if pack is not None else list(CREDIT_PACKS.values())
        return TopUpEligibility(
            tier=account.tier,
            current_credits=account.credits,
            tier_cap=cap,
            packs=[
                PackEligibility(
                    pack=credit_pack.key,
                    credits=credit_pack.total_credits,
                    eligible=cls.can_purchase_top_up(account.id, credit_pack.total_credits),
                    would_have=account.credits + credit_pack.total_credits,
                )
                for credit_pack in packs
            ],
        )

    # =========================================================================
    # Mutations
    # =========================================================================

    @classmethod
    def add_credits(
        cls,
        account_id: uuid.UUID,
        amount: int,
        source: str = "purchase",
        bonus_credits: int = 0,
        payment_reference: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> int:
        """
        Credit a purchase to the account.

        Args:
            account_id: Account to credit
            amount: Total credits to add, bonus included (must be > 0)
            source: Where the purchase came from (e.g. "stripe", "staff")
            bonus_credits: Part of amount that is bonus
            payment_reference: Payment id; a repeated reference is a no-op

        Returns:
            The balance after the purchase

        Raises:
            InvalidAmount: amount <= 0 or bonus outside [0, amount]
            AccountNotFound: Unknown account
            PaymentReferenceConflict: Reference already used by another account
        """
        if amount <= 0:
            raise InvalidAmount(
                "Credit amount must be positive",
                details={"amount": amount},
            )
        if bonus_credits < 0 or bonus_credits > amount:
            raise InvalidAmount(
                "Bonus credits must be between 0 and the amount",
                details={"amount": amount, "bonus_credits": bonus_credits},
            )

        idempotency_key = f"purchase:{payment_reference}" if payment_reference else None
        entry_metadata = {
            "source": source,
            "bonus_credits": bonus_credits,
            "payment_reference": payment_reference,
            **(metadata or {}),
        }

        with cls.atomic():
            account = cls.lock_account(account_id)
            entry, created = cls.record_entry(
                account,
                AuditAction.PURCHASE,
                amount,
                metadata=entry_metadata,
                idempotency_key=idempotency_key,
                created_by=source,
            )
            if not created and entry.account_id != account.id:
                raise PaymentReferenceConflict(
                    "Payment reference already credited another account",
                    details={"payment_reference": payment_reference},
                )

        if created:
            cls.get_logger().info(
                "Credits purchased",
                extra={
                    "account_id": str(account.id),
                    "amount": amount,
                    "bonus_credits": bonus_credits,
                    "payment_reference": payment_reference,
                    "balance": account.credits,
                },
            )
        else:
            cls.get_logger().info(
                "Duplicate purchase ignored",
                extra={"account_id": str(account.id), "payment_reference": payment_reference},
            )
        return account.credits

    @classmethod
    def debit_credits(
        cls,
        account_id: uuid.UUID,
        amount: int,
        reason: str,
        booking_id: uuid.UUID | None = None,
    ) -> int:
        """
        Take credits from the account.

        Raises:
            InvalidAmount: amount < 0
            InsufficientCredits: amount > balance
        """
        with cls.atomic():
            account = cls.lock_account(account_id)
            booking = cls._get_booking(account, booking_id) if booking_id else None
            cls.apply_debit(account, amount, reason, booking=booking)
        return account.credits

    @classmethod
    def refund_credits(
        cls,
        account_id: uuid.UUID,
        amount: int,
        related_booking_id: uuid.UUID,
    ) -> int:
        """
        Give credits back for a booking. Never bounded by the balance and
        applied at most once per booking.
        """
        with cls.atomic():
            account = cls.lock_account(account_id)
            booking = cls._get_booking(account, related_booking_id)
            cls.apply_refund(account, amount, booking)
        return account.credits

    @classmethod
    def adjust_credits(
        cls,
        account_id: uuid.UUID,
        delta: int,
        reason: str,
        actor: str,
        idempotency_key: str | None = None,
    ) -> int:
        """
        Staff correction of a balance.

        Raises:
            InvalidAmount: delta == 0
            InsufficientCredits: a negative delta larger than the balance
        """
        if delta == 0:
            raise InvalidAmount("Adjustment must change the balance", details={"delta": delta})

        with cls.atomic():
            account = cls.lock_account(account_id)
            if delta < 0 and account.credits < -delta:
                raise InsufficientCredits(account.id, required=-delta, available=account.credits)
            cls.record_entry(
                account,
                AuditAction.MANUAL_ADJUSTMENT,
                delta,
                metadata={"reason": reason, "actor": actor},
                idempotency_key=idempotency_key,
                created_by=actor,
            )

        cls.get_logger().info(
            "Credits adjusted",
            extra={
                "account_id": str(account.id),
                "delta": delta,
                "actor": actor,
                "balance": account.credits,
            },
        )
        return account.credits

    @classmethod
    def grant_monthly_credits(
        cls,
        account_id: uuid.UUID,
        period: datetime | None = None,
    ) -> int:
        """
        Grant the tier's monthly allocation for the month containing `period`.

        Returns:
            Credits granted: 0 for tiers without an allocation, frozen
            accounts, and months that were already granted
        """
        period = period or timezone.now()
        month = period.strftime("%Y-%m")

        with cls.atomic():
            account = cls.lock_account(account_id)
            plan = get_tier_plan(account.tier)
            if plan.monthly_credits <= 0 or account.frozen:
                return 0
            _, created = cls.record_entry(
                account,
                AuditAction.MONTHLY_GRANT,
                plan.monthly_credits,
                metadata={"tier": account.tier, "month": month},
                idempotency_key=f"monthly:{account.id}:{month}",
                created_by="monthly_grant",
            )

        if not created:
            return 0
        cls.get_logger().info(
            "Monthly credits granted",
            extra={
                "account_id": str(account.id),
                "tier": account.tier,
                "amount": plan.monthly_credits,
                "month": month,
            },
        )
        return plan.monthly_credits

    # =========================================================================
    # Reconciliation
    # =========================================================================

    @classmethod
    def reconcile(cls, account_id: uuid.UUID) -> ReconciliationResult:
        """
        Replay the audit log and compare it with the stored balance.

        An entry is broken when its credits_before does not continue from the
        previous entry's credits_after.
        """
        account = cls.get_account(account_id)

        replayed = 0
        count = 0
        broken = []
        entries = account.audit_entries.order_by("sequence").values_list(
            "id", "credits_before", "credits_after", "credits_changed"
        )
        for entry_id, before, after, changed in entries:
            if before != replayed:
                broken.append(entry_id)
            replayed = after
            count += 1

        result = ReconciliationResult(
            account_id=account.id,
            balance=account.credits,
            replayed_balance=replayed,
            entry_count=count,
            broken_entries=broken,
        )
        if not result.is_consistent:
            cls.get_logger().error(
                "Credit balance does not match audit log",
                extra=result.to_dict(),
            )
        return result

    # =========================================================================
    # Locked helpers (caller holds the account lock)
    # =========================================================================

    @classmethod
    def apply_debit(
        cls,
        account: CreditAccount,
        amount: int,
        reason: str,
        booking: Booking | None = None,
    ) -> CreditAuditLogEntry | None:
        """Debit a locked account. A zero debit writes nothing."""
        if amount < 0:
            raise InvalidAmount("Debit amount cannot be negative", details={"amount": amount})
        if amount > account.credits:
            raise InsufficientCredits(account.id, required=amount, available=account.credits)
        if amount == 0:
            return None

        metadata = {"reason": reason}
        if booking is not None:
            metadata["booking_id"] = str(booking.id)
        entry, _ = cls.record_entry(
            account,
            AuditAction.BOOKING_DEBIT,
            -amount,
            booking=booking,
            metadata=metadata,
            idempotency_key=f"debit:{booking.id}" if booking is not None else None,
            created_by="booking",
        )
        return entry

    @classmethod
    def apply_refund(
        cls,
        account: CreditAccount,
        amount: int,
        booking: Booking,
    ) -> CreditAuditLogEntry:
        """Refund a booking's credits to a locked account."""
        if amount <= 0:
            raise InvalidAmount("Refund amount must be positive", details={"amount": amount})

        entry, created = cls.record_entry(
            account,
            AuditAction.BOOKING_REFUND,
            amount,
            booking=booking,
            metadata={"booking_id": str(booking.id)},
            idempotency_key=f"refund:{booking.id}",
            created_by="booking",
        )
        if created:
            cls.get_logger().info(
                "Booking credits refunded",
                extra={
                    "account_id": str(account.id),
                    "booking_id": str(booking.id),
                    "amount": amount,
                    "balance": account.credits,
                },
            )
        return entry

    @classmethod
    def record_entry(
        cls,
        account: CreditAccount,
        action: str,
        delta: int,
        booking: Booking | None = None,
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
        created_by: str = "",
    ) -> tuple[CreditAuditLogEntry, bool]:
        """
        Write one audit entry and apply its delta to the locked account.

        Returns:
            (entry, created). When idempotency_key already exists the stored
            entry is returned with created=False and nothing changes.
        """
        if idempotency_key:
            existing = CreditAuditLogEntry.objects.filter(
                idempotency_key=idempotency_key
            ).first()
            if existing is not None:
                return existing, False

        credits_before = account.credits
        last_sequence = account.audit_entries.aggregate(last=Max("sequence"))["last"] or 0

        try:
            with transaction.atomic():
                entry = CreditAuditLogEntry.objects.create(
                    account=account,
                    sequence=last_sequence + 1,
                    action=action,
                    credits_before=credits_before,
                    credits_after=credits_before + delta,
                    credits_changed=delta,
                    booking=booking,
                    metadata=metadata or {},
                    idempotency_key=idempotency_key,
                    created_by=created_by,
                )
        except IntegrityError:
            # Same key written by a transaction that did not hold this lock
            if not idempotency_key:
                raise
            return CreditAuditLogEntry.objects.get(idempotency_key=idempotency_key), False

        if delta:
            account.credits = credits_before + delta
            account.save(update_fields=["credits", "updated_at"])
        return entry, True

    @classmethod
    def _get_booking(cls, account: CreditAccount, booking_id: uuid.UUID) -> Booking:
        try:
            return Booking.objects.get(id=booking_id, account=account)
        except (Booking.DoesNotExist, ValueError, DjangoValidationError):
            raise BookingNotFound(
                f"Booking {booking_id} not found",
                details={"booking_id": str(booking_id)},
            )
