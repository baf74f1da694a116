"""Pytest configuration and fixtures."""

import os
import secrets

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)
# Unit tests always run against the local SQLite store
for _name in ("SUPABASE_URL", "SUPABASE_SECRET_KEY", "SUPABASE_SERVICE_ROLE_KEY"):
    os.environ.pop(_name, None)

from app import database  # noqa: E402
from app.config import get_settings  # noqa: E402
from app.main import app  # noqa: E402
from app.rate_limit import limiter, reset_trusted_networks  # noqa: E402
from app.routes import sync as sync_routes  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402


def _reset_state():
    get_settings.cache_clear()
    database._sqlite_stores.clear()
    sync_routes._orchestrators.clear()
    app.dependency_overrides.clear()
    reset_trusted_networks()


@pytest.fixture(autouse=True)
def isolated_backend(tmp_path, monkeypatch):
    """Point the backend at a fresh SQLite file and disable rate limits."""
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "vocabloop.db"))
    monkeypatch.delenv("REQUIRE_REMOTE_STORE", raising=False)
    _reset_state()
    limiter.enabled = False
    yield
    limiter.enabled = True
    limiter.reset()
    _reset_state()


@pytest.fixture
def client():
    """Create a test client."""
    return TestClient(app)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def register(client):
    """Call ``POST /api/auth`` with action=register."""

    def _register(username="learner1", password="123456"):
        return client.post(
            "/api/auth",
            json={"action": "register", "username": username, "password": password},
        )

    return _register


@pytest.fixture
def token(register):
    """Token for a freshly registered account."""
    response = register()
    assert response.status_code == 200
    return response.json()["token"]
