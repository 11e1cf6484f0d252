"""
Tests for ServiceResult and BaseService.
"""

import logging

import pytest
from django.db import OperationalError

from core.exceptions import ConflictError, NotFoundError
from core.services import BaseService, ServiceResult


class TestServiceResult:
    def test_success_envelope(self):
        result = ServiceResult.success({"credits": 5}, message="Credits added")

        assert result
        assert result.to_response() == {
            "success": True,
            "data": {"credits": 5},
            "message": "Credits added",
        }

    def test_failure_envelope(self):
        result = ServiceResult.failure(
            "Required fields missing",
            error_code="VALIDATION_ERROR",
            errors={"class_id": ["This field is required."]},
        )

        assert not result
        assert result.to_response() == {
            "success": False,
            "error": "Required fields missing",
            "error_code": "VALIDATION_ERROR",
            "errors": {"class_id": ["This field is required."]},
        }

    def test_from_application_error_keeps_code(self):
        result = ServiceResult.from_exception(ConflictError("Class is full", "CLASS_FULL"))

        assert result.error == "Class is full"
        assert result.error_code == "CLASS_FULL"

    def test_from_unexpected_error_hides_details(self):
        result = ServiceResult.from_exception(RuntimeError("password=hunter2"))

        assert result.error_code == "INTERNAL_ERROR"
        assert "hunter2" not in result.error


class TestBaseServiceHandleException:
    def test_application_error_logged_at_info(self, caplog):
        with caplog.at_level(logging.INFO):
            result = BaseService.handle_exception(NotFoundError("gone"), context="lookup")

        assert result.error_code == "NOT_FOUND"
        assert caplog.records[-1].levelno == logging.INFO

    def test_database_error_logged_with_trace(self, caplog):
        with caplog.at_level(logging.ERROR):
            result = BaseService.handle_exception(OperationalError("connection lost"))

        assert result.error_code == "INTERNAL_ERROR"
        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.getMessage().startswith("Storage failure")


@pytest.mark.django_db
class TestBaseServiceAtomic:
    def test_rolls_back_on_error(self):
        from authentication.models import User

        with pytest.raises(ConflictError):
            with BaseService.atomic():
                User.objects.create_user(email="rollback@example.com", password="x" * 12)
                raise ConflictError("abort")

        assert not User.objects.filter(email="rollback@example.com").exists()
