"""
Scheduled Calendar Sync Tasks

Periodic Google Calendar pull for every connected user.
Runs via Celery Beat scheduler.
"""
from datetime import datetime, timezone
from typing import Dict
from uuid import UUID
from celery import Task
from sqlalchemy import or_
from sqlalchemy.orm import Session
from core.database import get_db_sync
from tasks import celery_app
from models import User
from services import google_calendar
from services.calendar_sync import sync_user_calendar
import logging

logger = logging.getLogger(__name__)


def sync_one_user(db: Session, user: User, now: datetime) -> Dict:
    """Sync a single user and commit. Provider errors are reported, not raised."""
    try:
        result = sync_user_calendar(db, user, now=now)
        db.commit()
    except google_calendar.GoogleCalendarError as e:
        db.rollback()
        logger.warning(f"Calendar sync failed for user {user.id}: {e}")
        return {"user_id": str(user.id), "status": "error", "message": str(e)}

    return {
        "user_id": str(user.id),
        "status": "success",
        "created": result.created,
        "updated": result.updated,
        "deleted": result.deleted,
    }


@celery_app.task(name="tasks.sync_user_calendar", bind=True)
def sync_user_calendar_task(self: Task, user_id: str) -> Dict:
    """Sync one user's calendar on demand."""
    db: Session = get_db_sync()
    try:
        user = db.query(User).filter(User.id == UUID(user_id)).first()
        if not user:
            return {"status": "error", "message": "User not found"}
        if not user.calendar_connected:
            return {"status": "skipped", "message": "Calendar not connected"}
        return sync_one_user(db, user, datetime.now(timezone.utc))
    finally:
        db.close()


@celery_app.task(name="tasks.sync_all_calendars")
def sync_all_calendars_task() -> Dict:
    """
    Sync every user with a connected Google Calendar.

    Called by Celery Beat. One user's failure is logged and the sweep
    continues with the next user.
    """
    db: Session = get_db_sync()
    now = datetime.now(timezone.utc)

    try:
        users = db.query(User).filter(
            or_(User.google_refresh_token.isnot(None), User.google_access_token.isnot(None))
        ).all()
        logger.info(f"Syncing calendars for {len(users)} users")

        results = []
        for user in users:
            try:
                results.append(sync_one_user(db, user, now))
            except Exception as e:
                db.rollback()
                logger.error(f"Unexpected error syncing calendar for user {user.id}: {e}", exc_info=True)
                results.append({"user_id": str(user.id), "status": "error", "message": str(e)})

        failed = sum(1 for r in results if r["status"] != "success")
        return {
            "status": "success",
            "total_users": len(users),
            "failed": failed,
            "results": results,
        }
    finally:
        db.close()
