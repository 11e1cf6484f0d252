"""
Tests for UserManager.

Members are created by the manager (or by an upstream identity provider
without a password); operators are created as superusers.
"""

import pytest

from authentication.models import User


class TestUserManagerCreateUser:
    """Tests for UserManager.create_user() method."""

    def test_creates_user_with_email_and_password(self, db):
        """
        Given valid email and password
        When create_user is called
        Then a user is created that can authenticate
        """
        user = User.objects.create_user(
            email="member_create@example.com", password="SecurePass123!"
        )

        assert user.pk is not None
        assert user.check_password("SecurePass123!") is True
        assert user.is_staff is False

    def test_normalizes_email_domain_to_lowercase(self, db):
        """The domain part of the email is lowercased."""
        user = User.objects.create_user(email="Member@EXAMPLE.COM", password="x1!Passw")

        assert user.email == "Member@example.com"

    def test_user_without_password_has_unusable_password(self, db):
        """Members provisioned upstream get an unusable password."""
        user = User.objects.create_user(email="upstream@example.com")

        assert user.has_usable_password() is False

    def test_missing_email_raises_value_error(self, db):
        with pytest.raises(ValueError, match="Email"):
            User.objects.create_user(email="", password="SecurePass123!")


class TestUserManagerCreateSuperuser:
    """Tests for UserManager.create_superuser() method."""

    def test_creates_staff_superuser(self, db):
        admin = User.objects.create_superuser(
            email="ops@example.com", password="AdminPass123!"
        )

        assert admin.is_staff is True
        assert admin.is_superuser is True
        assert admin.email_verified is True

    def test_rejects_superuser_without_staff_flag(self, db):
        with pytest.raises(ValueError, match="is_staff"):
            User.objects.create_superuser(
                email="ops2@example.com", password="AdminPass123!", is_staff=False
            )
