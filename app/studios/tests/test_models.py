"""
Tests for Studio and ClassSession models.
"""

from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.db import IntegrityError
from freezegun import freeze_time

from studios.tests.factories import ClassSessionFactory


@pytest.mark.django_db
class TestClassSessionTiming:
    """Tests for derived start/end state."""

    @freeze_time("2026-03-10 09:00:00")
    def test_not_started_before_start_time(self):
        session = ClassSessionFactory(
            start_time=datetime(2026, 3, 10, 9, 30, tzinfo=dt_timezone.utc)
        )

        assert session.has_started is False
        assert session.has_ended is False

    @freeze_time("2026-03-10 09:30:00")
    def test_started_at_start_time(self):
        session = ClassSessionFactory(
            start_time=datetime(2026, 3, 10, 9, 30, tzinfo=dt_timezone.utc)
        )

        assert session.has_started is True
        assert session.has_ended is False

    @freeze_time("2026-03-10 10:45:00")
    def test_ended_after_duration(self):
        session = ClassSessionFactory(
            start_time=datetime(2026, 3, 10, 9, 30, tzinfo=dt_timezone.utc),
            duration_minutes=75,
        )

        assert session.end_time == datetime(2026, 3, 10, 10, 45, tzinfo=dt_timezone.utc)
        assert session.has_ended is True


@pytest.mark.django_db
class TestClassSessionConstraints:
    def test_zero_capacity_rejected(self):
        with pytest.raises(IntegrityError):
            ClassSessionFactory(max_capacity=0)

    def test_free_class_allowed(self):
        session = ClassSessionFactory(credit_cost=0)

        assert session.credit_cost == 0

    def test_str_includes_name_and_start(self, class_session):
        class_session.start_time = class_session.start_time.replace(
            year=2026, month=5, day=1, hour=7, minute=0
        )

        assert str(class_session).endswith("@ 2026-05-01 07:00")
        assert str(class_session).startswith(class_session.name)


@pytest.mark.django_db
class TestStudio:
    def test_classes_reverse_relation(self, studio):
        ClassSessionFactory(studio=studio)
        ClassSessionFactory(studio=studio, start_time=studio.created_at + timedelta(days=2))

        assert studio.classes.count() == 2
