"""
Studio and class schedule models.

- Studio: A venue that publishes classes
- ClassSession: One scheduled class with a fixed capacity and credit cost

Capacity invariant:
    The number of confirmed bookings for a ClassSession never exceeds
    max_capacity. BookingCoordinator enforces it by locking the session
    row (select_for_update) before counting and inserting.
"""

from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class DifficultyLevel(models.TextChoices):
    """Difficulty levels a class can be listed under."""

    BEGINNER = "beginner", "Beginner"
    INTERMEDIATE = "intermediate", "Intermediate"
    ADVANCED = "advanced", "Advanced"


class Studio(UUIDPrimaryKeyMixin, BaseModel):
    """
    A fitness studio that hosts classes.

    Fields:
        name: Display name
        owner: Studio owner account (optional)
        description: Free-form description
        address / neighborhood: Where the studio is
        latitude / longitude: Map position
        is_active: Inactive studios keep their history but list no classes
    """

    name = models.CharField(max_length=200)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="owned_studios",
    )
    description = models.TextField(blank=True, default="")
    address = models.CharField(max_length=255, blank=True, default="")
    neighborhood = models.CharField(max_length=120, blank=True, default="")
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class ClassSession(UUIDPrimaryKeyMixin, BaseModel):
    """
    A scheduled class that members book with credits or a tourist pass.

    Fields:
        studio: Hosting studio
        name: Class title
        class_type: Discipline (yoga, pilates, hiit, ...)
        instructor_name: Who teaches it
        start_time: When the class starts
        duration_minutes: Length of the class
        max_capacity: Maximum number of confirmed bookings (> 0)
        credit_cost: Credits debited per booking (>= 0)
        difficulty_level: Listing difficulty
        is_active: Inactive sessions cannot be booked

    Related:
        bookings: credits.Booking rows for this class
    """

    studio = models.ForeignKey(
        Studio,
        on_delete=models.PROTECT,
        related_name="classes",
    )
    name = models.CharField(max_length=200)
    class_type = models.CharField(max_length=50, blank=True, default="")
    description = models.TextField(blank=True, default="")
    instructor_name = models.CharField(max_length=120, blank=True, default="")
    start_time = models.DateTimeField(db_index=True)
    duration_minutes = models.PositiveIntegerField(default=60)
    max_capacity = models.PositiveIntegerField(
        default=20,
        help_text="Maximum number of confirmed bookings",
    )
    credit_cost = models.PositiveIntegerField(
        default=1,
        help_text="Credits debited per booking",
    )
    difficulty_level = models.CharField(
        max_length=20,
        choices=DifficultyLevel.choices,
        default=DifficultyLevel.BEGINNER,
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["start_time"]
        indexes = [
            models.Index(fields=["studio", "start_time"], name="class_studio_start_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(max_capacity__gt=0),
                name="class_session_capacity_positive",
            ),
            models.CheckConstraint(
                condition=Q(credit_cost__gte=0),
                name="class_session_credit_cost_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} @ {self.start_time:%Y-%m-%d %H:%M}"

    @property
    def end_time(self):
        """When the class ends."""
        return self.start_time + timedelta(minutes=self.duration_minutes)

    @property
    def has_started(self) -> bool:
        return timezone.now() >= self.start_time

    @property
    def has_ended(self) -> bool:
        return timezone.now() >= self.end_time
