"""
Auth API: registration, session cookie lifecycle, lockout, profile and
account deletion.
"""
from datetime import datetime, timezone
from uuid import UUID

from fastapi.testclient import TestClient

from conftest import TEST_PASSWORD, register
from core.account_security import MAX_FAILED_ATTEMPTS
from core.config import settings
from core.security import get_password_hash, verify_password
from main import app
from models import CalendarEvent, Cycle, Project, Task, TimeEntry, User


class TestPasswordHashing:
    def test_hash_roundtrip(self):
        hashed = get_password_hash("s3cret-passphrase")
        assert hashed != "s3cret-passphrase"
        assert verify_password("s3cret-passphrase", hashed)
        assert not verify_password("wrong", hashed)


class TestRegisterLogin:
    def test_register_sets_session_cookie(self, client):
        body = register(client, email="New.User@Example.com", display_name="New")
        assert body["email"] == "new.user@example.com"
        assert body["calendar_connected"] is False
        assert settings.SESSION_COOKIE_NAME in client.cookies

        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["id"] == body["id"]

    def test_duplicate_email_is_409(self, client):
        register(client)
        resp = client.post("/api/auth/register", json={"email": "owner@example.com", "password": TEST_PASSWORD})
        assert resp.status_code == 409

    def test_short_password_is_422(self, client):
        resp = client.post("/api/auth/register", json={"email": "a@example.com", "password": "short"})
        assert resp.status_code == 422

    def test_login_and_logout(self, client, db_session):
        register(client)
        client.cookies.clear()
        assert client.get("/api/auth/me").status_code == 401

        resp = client.post("/api/auth/login", json={"email": "owner@example.com", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        assert client.get("/api/auth/me").status_code == 200

        assert client.post("/api/auth/logout").status_code == 204
        assert client.get("/api/auth/me").status_code == 401

    def test_bad_credentials_are_401(self, client):
        register(client)
        resp = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "not-the-password"})
        assert resp.status_code == 401
        assert resp.json()["error_code"] == "UNAUTHORIZED"

    def test_lockout_after_repeated_failures(self, client):
        register(client)
        for _ in range(MAX_FAILED_ATTEMPTS):
            client.post("/api/auth/login", json={"email": "owner@example.com", "password": "nope-nope-nope"})

        resp = client.post("/api/auth/login", json={"email": "owner@example.com", "password": TEST_PASSWORD})
        assert resp.status_code == 429
        assert int(resp.headers["Retry-After"]) > 0

    def test_unknown_session_is_401(self, client, db_session):
        client.cookies.set(settings.SESSION_COOKIE_NAME, "forged-session-id")
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401


class TestProfile:
    def test_update_timezone(self, auth_client):
        resp = auth_client.patch("/api/auth/me", json={"timezone": "Europe/Berlin", "display_name": "Owner"})
        assert resp.status_code == 200
        assert resp.json()["timezone"] == "Europe/Berlin"
        assert resp.json()["display_name"] == "Owner"

    def test_unknown_timezone_is_422(self, auth_client):
        resp = auth_client.patch("/api/auth/me", json={"timezone": "Mars/Olympus"})
        assert resp.status_code == 422


class TestDeleteAccount:
    def test_delete_cascades_everything(self, auth_client, db_session, project):
        task = auth_client.post("/api/tasks", json={"title": "t", "project_id": project["id"]}).json()
        auth_client.post("/api/time/start", json={"project_id": project["id"], "task_id": task["id"]})
        auth_client.post("/api/calendar/events", json={
            "title": "Standup",
            "start_time": "2026-10-14T09:00:00Z",
            "end_time": "2026-10-14T09:15:00Z",
        })
        auth_client.post("/api/cycles", json={
            "name": "Week 42",
            "start_date": "2026-10-12",
            "end_date": "2026-10-18",
            "priority_project_ids": [project["id"]],
        })

        # A second user's data must survive
        other = TestClient(app)
        register(other, email="neighbor@example.com")
        other.post("/api/projects", json={"name": "Theirs"})

        assert auth_client.delete("/api/auth/me").status_code == 204
        assert auth_client.get("/api/auth/me").status_code == 401

        owner = db_session.query(User).filter(User.email == "owner@example.com").first()
        assert owner is None
        assert db_session.query(Project).filter(Project.id == UUID(project["id"])).count() == 0
        assert db_session.query(Task).count() == 0
        assert db_session.query(TimeEntry).count() == 0
        assert db_session.query(CalendarEvent).count() == 0
        assert db_session.query(Cycle).count() == 0
        assert db_session.query(Project).count() == 1
