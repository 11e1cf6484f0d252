"""
Tourist pass tracking: grant, look up, consume and refund pass units.

Pass units are independent of the credit balance. consume/refund lock the
pass row; the booking coordinator calls the *_locked variants with a pass
it already holds the lock on.
"""

from __future__ import annotations

import uuid
from datetime import timedelta

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from core.services import BaseService

from credits.catalog import get_tourist_pass_plan
from credits.exceptions import (
    AccountFrozen,
    InvalidAmount,
    PassExhausted,
    PassNotFound,
    PaymentReferenceConflict,
)
from credits.models import CreditAccount, TouristPass
from credits.services.credit_service import CreditService


class TouristPassService(BaseService):
    """Service for tourist pass operations."""

    @classmethod
    def get_active_pass(cls, account_id: uuid.UUID) -> TouristPass | None:
        """Most recently created pass that is active and not yet expired."""
        CreditService.get_account(account_id)
        return (
            TouristPass.objects.filter(
                account_id=account_id,
                active=True,
                ends_at__gte=timezone.now(),
            )
            .order_by("-created_at")
            .first()
        )

    @classmethod
    def lock_usable_pass(cls, account: CreditAccount) -> TouristPass | None:
        """
        Lock and return the pass a booking should draw from, if any.

        Usable means active, inside its window and with units left. The
        most recently created usable pass wins.
        """
        now = timezone.now()
        return (
            TouristPass.objects.select_for_update()
            .filter(
                account=account,
                active=True,
                starts_at__lte=now,
                ends_at__gte=now,
                classes_used__lt=F("classes_total"),
            )
            .order_by("-created_at")
            .first()
        )

    @classmethod
    def consume_unit(cls, pass_id: uuid.UUID) -> TouristPass:
        """
        Use one class from a pass.

        Raises:
            PassNotFound: Unknown pass
            PassExhausted: No classes left
        """
        with cls.atomic():
            tourist_pass = cls._lock_pass(pass_id)
            cls.consume_unit_locked(tourist_pass)
        return tourist_pass

    @classmethod
    def consume_unit_locked(cls, tourist_pass: TouristPass) -> None:
        if tourist_pass.classes_remaining <= 0:
            raise PassExhausted(
                "Tourist pass has no classes left",
                details={"pass_id": str(tourist_pass.id)},
            )
        tourist_pass.classes_used += 1
        tourist_pass.save(update_fields=["classes_used", "updated_at"])

    @classmethod
    def refund_unit(cls, pass_id: uuid.UUID) -> TouristPass:
        """Give one class back to a pass. classes_used never drops below 0."""
        with cls.atomic():
            tourist_pass = cls._lock_pass(pass_id)
            cls.refund_unit_locked(tourist_pass)
        return tourist_pass

    @classmethod
    def refund_unit_locked(cls, tourist_pass: TouristPass) -> None:
        if tourist_pass.classes_used == 0:
            cls.get_logger().warning(
                "Pass unit refund with no units used",
                extra={"pass_id": str(tourist_pass.id)},
            )
            return
        tourist_pass.classes_used -= 1
        tourist_pass.save(update_fields=["classes_used", "updated_at"])

    @classmethod
    def grant_pass(
        cls,
        account_id: uuid.UUID,
        pass_type: str,
        payment_reference: str | None = None,
    ) -> TouristPass:
        """
        Create a pass from the catalog, starting now.

        A payment_reference that already bought a pass returns that pass.

        Raises:
            InvalidAmount: Unknown pass type
            AccountFrozen: Frozen accounts cannot receive passes
            PaymentReferenceConflict: Reference bought a pass for another account
        """
        plan = get_tourist_pass_plan(pass_type)
        if plan is None:
            raise InvalidAmount(
                f"Unknown tourist pass type: {pass_type}",
                details={"pass_type": pass_type},
            )

        with cls.atomic():
            account = CreditService.lock_account(account_id)

            if payment_reference:
                existing = TouristPass.objects.filter(
                    payment_reference=payment_reference
                ).first()
                if existing is not None:
                    return cls._check_pass_owner(existing, account)

            if account.frozen:
                raise AccountFrozen(
                    "Frozen accounts cannot receive a tourist pass",
                    details={"account_id": str(account.id)},
                )

            starts_at = timezone.now()
            try:
                with transaction.atomic():
                    tourist_pass = TouristPass.objects.create(
                        account=account,
                        pass_type=plan.key,
                        starts_at=starts_at,
                        ends_at=starts_at + timedelta(days=plan.duration_days),
                        classes_total=plan.classes,
                        payment_reference=payment_reference,
                    )
            except IntegrityError:
                if not payment_reference:
                    raise
                existing = TouristPass.objects.get(payment_reference=payment_reference)
                return cls._check_pass_owner(existing, account)

        cls.get_logger().info(
            "Tourist pass granted",
            extra={
                "account_id": str(account.id),
                "pass_id": str(tourist_pass.id),
                "pass_type": plan.key,
                "payment_reference": payment_reference,
            },
        )
        return tourist_pass

    @classmethod
    def _lock_pass(cls, pass_id: uuid.UUID) -> TouristPass:
        try:
            return TouristPass.objects.select_for_update().get(id=pass_id)
        except (TouristPass.DoesNotExist, ValueError, DjangoValidationError):
            raise PassNotFound(
                f"Tourist pass {pass_id} not found",
                details={"pass_id": str(pass_id)},
            )

    @classmethod
    def _check_pass_owner(cls, tourist_pass: TouristPass, account: CreditAccount) -> TouristPass:
        if tourist_pass.account_id != account.id:
            raise PaymentReferenceConflict(
                "Payment reference already bought a pass for another account",
                details={"payment_reference": tourist_pass.payment_reference},
            )
        return tourist_pass
