"""
Test configuration and fixtures for studio tests.
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from studios.tests.factories import ClassSessionFactory, StudioFactory


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def api_client(user):
    """APIClient authenticated as `user` with a JWT access token."""
    client = APIClient()
    token = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


@pytest.fixture
def studio(db):
    return StudioFactory()


@pytest.fixture
def class_session(studio):
    return ClassSessionFactory(studio=studio)
