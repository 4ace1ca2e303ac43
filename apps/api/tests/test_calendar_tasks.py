"""
Celery calendar sweep: one user's failure must not stop the others.
"""
from unittest.mock import patch

from core.database import SessionLocal
from models import User
from services import google_calendar
from services.calendar_sync import SyncResult
from services.token_encryption import encrypt_token
from tasks.calendar_tasks import sync_all_calendars_task, sync_user_calendar_task


def connect(db_session, user: User) -> None:
    user.google_refresh_token = encrypt_token("rt")
    db_session.commit()


def test_sweep_continues_after_failures(db_session, current_user, other_client):
    intruder = db_session.query(User).filter(User.email == "intruder@example.com").one()
    connect(db_session, current_user)
    connect(db_session, intruder)
    # Registered but never connected: not part of the sweep
    db_session.add(User(email="idle@example.com", password_hash="x"))
    db_session.commit()

    def fake_sync(db, user, now=None, **kwargs):
        if user.email == "owner@example.com":
            raise RuntimeError("unexpected")
        return SyncResult(created=2)

    with patch("tasks.calendar_tasks.get_db_sync", side_effect=SessionLocal), \
            patch("tasks.calendar_tasks.sync_user_calendar", side_effect=fake_sync):
        summary = sync_all_calendars_task()

    assert summary["total_users"] == 2
    assert summary["failed"] == 1
    by_user = {r["user_id"]: r for r in summary["results"]}
    assert by_user[str(current_user.id)]["status"] == "error"
    assert by_user[str(intruder.id)]["status"] == "success"
    assert by_user[str(intruder.id)]["created"] == 2


def test_provider_error_is_reported_not_raised(db_session, current_user):
    connect(db_session, current_user)
    error = google_calendar.GoogleAuthError("revoked", status_code=401)

    with patch("tasks.calendar_tasks.get_db_sync", side_effect=SessionLocal), \
            patch("tasks.calendar_tasks.sync_user_calendar", side_effect=error):
        result = sync_user_calendar_task(str(current_user.id))

    assert result["status"] == "error"
    assert "revoked" in result["message"]


def test_unconnected_user_is_skipped(db_session, current_user):
    with patch("tasks.calendar_tasks.get_db_sync", side_effect=SessionLocal):
        result = sync_user_calendar_task(str(current_user.id))
    assert result["status"] == "skipped"
