"""Shared fixtures for backend tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from backend.api.rate_limit import limiter
from backend.config import Settings
from backend.main import create_app
from backend.tests.helpers import create_user, login, make_settings


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    limiter.reset()


@pytest.fixture
def user_token(client) -> str:
    create_user(client, "testuser", "testpass123", email="testuser@example.com")
    return login(client, "testuser", "testpass123")


@pytest.fixture
def admin_token(client) -> str:
    create_user(client, "siteadmin", "adminpass", role="admin")
    return login(client, "siteadmin", "adminpass")
