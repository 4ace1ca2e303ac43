"""
Pytest configuration and fixtures

Tests run against an in-memory SQLite database and the in-process
session store. Tables are created fresh for every test, so nothing
leaks between tests.
"""
import os
import sys

# Settings are read at import time: configure before any app import.
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-checks")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SESSION_BACKEND"] = "memory"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_FORMAT"] = "text"
os.environ["CALENDAR_SYNC_ENABLED"] = "true"

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from cryptography.fernet import Fernet
from fastapi.testclient import TestClient

from core.database import Base, SessionLocal, engine, get_db
from main import app
import models  # noqa: F401  (registers tables)

TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture(autouse=True)
def _ensure_encryption_key(monkeypatch):
    """Fresh Fernet key for token encryption in every test."""
    from core.config import settings
    from services.token_encryption import reset_token_cipher

    monkeypatch.setattr(settings, "TOKEN_ENCRYPTION_KEY", Fernet.generate_key().decode())
    reset_token_cipher()
    yield
    reset_token_cipher()


@pytest.fixture(autouse=True)
def _reset_in_process_state():
    """Fresh session store and login-attempt log for every test."""
    import core.sessions as sessions_mod
    from core.account_security import clear_lockout

    sessions_mod._session_store = None
    clear_lockout()
    yield
    sessions_mod._session_store = None
    clear_lockout()


@pytest.fixture
def db_session():
    """DB session shared between test fixtures and the app via dependency override."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    # Override the app's get_db dependency so it shares this session
    def _override_get_db():
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise

    app.dependency_overrides[get_db] = _override_get_db
    yield session

    app.dependency_overrides.pop(get_db, None)
    session.rollback()
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    """TestClient wired to the overridden DB session."""
    return TestClient(app)


def register(client: TestClient, email: str = "owner@example.com", password: str = TEST_PASSWORD, **extra) -> dict:
    """Register through the API; the client keeps the session cookie."""
    resp = client.post("/api/auth/register", json={"email": email, "password": password, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def auth_client(client):
    """Client logged in as a freshly registered user."""
    register(client)
    return client


@pytest.fixture
def other_client(db_session):
    """Second user with its own cookie jar."""
    other = TestClient(app)
    register(other, email="intruder@example.com")
    return other


@pytest.fixture
def current_user(auth_client, db_session):
    from models import User
    return db_session.query(User).filter(User.email == "owner@example.com").one()


@pytest.fixture
def project(auth_client):
    resp = auth_client.post("/api/projects", json={"name": "Thesis", "hours_per_week": 15, "color": "#3366ff"})
    assert resp.status_code == 201, resp.text
    return resp.json()
