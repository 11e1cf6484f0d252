"""
Booking model: a member's reservation in a class session.

A booking is paid either with credits (credits_used = class cost) or with
one tourist pass unit (credits_used = 0, tourist_pass set). Only the
booking coordinator creates or transitions bookings, always under the
account and class session row locks.

Usage:
    from credits.models import Booking

    booking.cancel()   # confirmed -> cancelled
    booking.save()
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from credits.state_machines import BookingStatus, FundingSource


class Booking(UUIDPrimaryKeyMixin, BaseModel):
    """
    A reservation of one seat in a class session.

    State Flow:
        CONFIRMED -> CANCELLED
        CONFIRMED -> COMPLETED

    Fields:
        account: Booking member's credit account
        class_session: Booked class
        status: Current FSM state
        funding_source: credits or tourist_pass
        credits_used: Credits debited (0 when pass-funded)
        tourist_pass: Pass a unit was consumed from, if pass-funded
        cancelled_at / completed_at: Transition timestamps

    Constraints:
        - At most one CONFIRMED booking per (account, class_session)
        - Pass-funded bookings debit no credits and reference their pass
        - Credit-funded bookings reference no pass

    Note:
        status is protected. Never call refresh_from_db() on a booking;
        re-fetch it with Booking.objects.get() instead.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    account = models.ForeignKey(
        "credits.CreditAccount",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    class_session = models.ForeignKey(
        "studios.ClassSession",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    tourist_pass = models.ForeignKey(
        "credits.TouristPass",
        on_delete=models.PROTECT,
        related_name="bookings",
        null=True,
        blank=True,
    )

    # ==========================================================================
    # Funding & State
    # ==========================================================================

    funding_source = models.CharField(
        max_length=20,
        choices=FundingSource.choices,
        default=FundingSource.CREDITS,
    )
    credits_used = models.PositiveIntegerField(
        default=0,
        help_text="Credits debited for this booking",
    )
    status = FSMField(
        default=BookingStatus.CONFIRMED,
        choices=BookingStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current booking state (managed by FSM)",
    )

    cancelled_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["account", "status"], name="booking_account_status_idx"),
            models.Index(
                fields=["class_session", "status"], name="booking_class_status_idx"
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["account", "class_session"],
                condition=Q(status=BookingStatus.CONFIRMED),
                name="booking_one_confirmed_per_account_class",
            ),
            models.CheckConstraint(
                condition=(
                    Q(
                        funding_source=FundingSource.TOURIST_PASS,
                        credits_used=0,
                        tourist_pass__isnull=False,
                    )
                    | Q(funding_source=FundingSource.CREDITS, tourist_pass__isnull=True)
                ),
                name="booking_funding_consistent",
            ),
        ]

    def __str__(self) -> str:
        return f"Booking({self.id}, {self.status})"

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED

    @property
    def is_pass_funded(self) -> bool:
        return self.funding_source == FundingSource.TOURIST_PASS

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=BookingStatus.CONFIRMED,
        target=BookingStatus.CANCELLED,
    )
    def cancel(self):
        """Transition: CONFIRMED -> CANCELLED. Frees the seat."""
        self.cancelled_at = timezone.now()

    @transition(
        field=status,
        source=BookingStatus.CONFIRMED,
        target=BookingStatus.COMPLETED,
    )
    def complete(self):
        """Transition: CONFIRMED -> COMPLETED, once the class has ended."""
        self.completed_at = timezone.now()
