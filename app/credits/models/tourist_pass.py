"""
TouristPass model: a time-boxed bundle of classes.

Pass units are tracked apart from the credit balance, so a pass-funded
booking never touches CreditAccount.credits.
"""

from __future__ import annotations

from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class TouristPass(UUIDPrimaryKeyMixin, BaseModel):
    """
    Classes a visitor can book within [starts_at, ends_at].

    Fields:
        account: Owning credit account
        pass_type: Catalog key (tourist_3day, tourist_7day)
        starts_at / ends_at: Validity window
        classes_total: Units granted
        classes_used: Units consumed by confirmed or completed bookings
        active: Cleared when a pass is revoked
        payment_reference: Payment that bought the pass (unique)

    Constraints:
        - classes_total > 0
        - 0 <= classes_used <= classes_total
        - starts_at < ends_at
    """

    account = models.ForeignKey(
        "credits.CreditAccount",
        on_delete=models.PROTECT,
        related_name="tourist_passes",
    )
    pass_type = models.CharField(max_length=30)
    starts_at = models.DateTimeField()
    ends_at = models.DateTimeField(db_index=True)
    classes_total = models.PositiveIntegerField()
    classes_used = models.PositiveIntegerField(default=0)
    active = models.BooleanField(default=True)
    payment_reference = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Payment that bought the pass (pi_xxx / cs_xxx)",
    )

    class Meta:
        ordering = ["ends_at"]
        indexes = [
            models.Index(
                fields=["account", "active", "ends_at"],
                name="tourist_pass_acct_window_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(classes_total__gt=0),
                name="tourist_pass_classes_total_positive",
            ),
            models.CheckConstraint(
                condition=Q(classes_used__lte=F("classes_total")),
                name="tourist_pass_classes_used_within_total",
            ),
            models.CheckConstraint(
                condition=Q(starts_at__lt=F("ends_at")),
                name="tourist_pass_window_ordered",
            ),
        ]

    def __str__(self) -> str:
        return f"TouristPass({self.pass_type}, {self.classes_used}/{self.classes_total})"

    @property
    def classes_remaining(self) -> int:
        return self.classes_total - self.classes_used

    def is_current(self, at=None) -> bool:
        """Active, inside its window and not exhausted."""
        at = at or timezone.now()
        return (
            self.active
            and self.starts_at <= at <= self.ends_at
            and self.classes_remaining > 0
        )
