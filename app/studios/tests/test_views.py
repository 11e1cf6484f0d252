"""
Tests for the upcoming class list endpoint.
"""

from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from credits.tests.factories import BookingFactory
from studios.models import DifficultyLevel
from studios.tests.factories import ClassSessionFactory, StudioFactory

URL = reverse("studios:class-list")


@pytest.mark.django_db
class TestUpcomingClassList:
    """GET /api/v1/studios/classes/"""

    def test_requires_authentication(self):
        response = APIClient().get(URL)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_lists_only_upcoming_active_classes(self, api_client, studio):
        upcoming = ClassSessionFactory(studio=studio)
        ClassSessionFactory(studio=studio, start_time=timezone.now() - timedelta(hours=1))
        ClassSessionFactory(studio=studio, is_active=False)
        ClassSessionFactory(studio=StudioFactory(is_active=False))

        response = api_client.get(URL)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["success"] is True
        assert [row["id"] for row in response.data["data"]] == [str(upcoming.id)]

    def test_ordered_by_start_time(self, api_client, studio):
        later = ClassSessionFactory(studio=studio, start_time=timezone.now() + timedelta(days=3))
        sooner = ClassSessionFactory(studio=studio, start_time=timezone.now() + timedelta(hours=2))

        response = api_client.get(URL)

        ids = [row["id"] for row in response.data["data"]]
        assert ids == [str(sooner.id), str(later.id)]

    def test_spots_remaining_counts_confirmed_bookings_only(self, api_client, class_session):
        """
        Given a class with 20 spots, two confirmed bookings and one cancelled
        When the schedule is listed
        Then 18 spots remain
        """
        BookingFactory(class_session=class_session)
        BookingFactory(class_session=class_session)
        cancelled = BookingFactory(class_session=class_session)
        cancelled.cancel()
        cancelled.save()

        response = api_client.get(URL)

        row = response.data["data"][0]
        assert row["spots_remaining"] == 18
        assert row["studio_name"] == class_session.studio.name

    def test_filters(self, api_client, studio):
        ClassSessionFactory(studio=studio, class_type="yoga")
        hiit = ClassSessionFactory(
            studio=studio,
            class_type="hiit",
            difficulty_level=DifficultyLevel.ADVANCED,
        )
        ClassSessionFactory(class_type="hiit")

        response = api_client.get(
            URL,
            {"studio": str(studio.id), "class_type": "hiit", "difficulty_level": "advanced"},
        )

        assert [row["id"] for row in response.data["data"]] == [str(hiit.id)]

    def test_invalid_difficulty_rejected(self, api_client):
        response = api_client.get(URL, {"difficulty_level": "extreme"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
