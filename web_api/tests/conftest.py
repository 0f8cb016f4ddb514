# web_api/tests/conftest.py
"""Pytest fixtures for web API tests.

Requests go through the real FastAPI app (without running its lifespan),
with JWT_SECRET and CRON_SECRET pinned to test values. Route tests patch
the database helpers they touch.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

CRON_SECRET = "test-cron-secret"


@pytest.fixture(autouse=True)
def _secrets(monkeypatch):
    """Ensure JWT_SECRET and CRON_SECRET are set so auth can be exercised."""
    monkeypatch.setenv("CRON_SECRET", CRON_SECRET)
    with patch("web_api.auth.JWT_SECRET", "test-secret"):
        yield


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    from main import app

    return TestClient(app)


@pytest.fixture
def auth_client(client):
    """Test client signed in as user 42 on session sess_abc."""
    from web_api.auth import create_jwt

    client.cookies.set("session", create_jwt(42, session_id="sess_abc"))
    return client

