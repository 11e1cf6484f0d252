"""
Class schedule queries.

Spots remaining is a read-time snapshot; the authoritative capacity check
happens under the class session lock in BookingCoordinator.attempt_booking().
"""

from __future__ import annotations

from django.db.models import Count, Q, QuerySet
from django.utils import timezone

from core.services import BaseService

from studios.models import ClassSession

CONFIRMED = "confirmed"


class ClassScheduleService(BaseService):
    """Read-only schedule listings."""

    @classmethod
    def upcoming_classes(
        cls,
        studio_id=None,
        class_type: str | None = None,
        difficulty_level: str | None = None,
    ) -> QuerySet[ClassSession]:
        """
        Active classes that have not started, soonest first, annotated with
        confirmed_count.
        """
        queryset = (
            ClassSession.objects.filter(
                is_active=True,
                studio__is_active=True,
                start_time__gt=timezone.now(),
            )
            .select_related("studio")
            .annotate(
                confirmed_count=Count("bookings", filter=Q(bookings__status=CONFIRMED)),
            )
            .order_by("start_time")
        )
        if studio_id:
            queryset = queryset.filter(studio_id=studio_id)
        if class_type:
            queryset = queryset.filter(class_type=class_type)
        if difficulty_level:
            queryset = queryset.filter(difficulty_level=difficulty_level)
        return queryset
