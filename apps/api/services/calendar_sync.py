"""
Calendar sync: pull Google events into CalendarEvent rows.

Rows are keyed by (user_id, external_id), so re-syncing the same provider
event updates the existing row instead of creating a duplicate. Events the
provider reports as cancelled are deleted locally.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from core.config import settings
from models import CalendarEvent, User
from services import google_calendar
from services.periods import day_window

logger = logging.getLogger(__name__)

SOURCE_GOOGLE = "google"

SYNCED_FIELDS = ("title", "description", "location", "start_time", "end_time", "all_day", "color")


@dataclass
class SyncResult:
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0


def _parse_rfc3339(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_boundary(boundary: Dict, tz_name: Optional[str]) -> tuple:
    """(utc datetime, is_all_day) for a Google start/end object."""
    if boundary.get("dateTime"):
        return _parse_rfc3339(boundary["dateTime"]), False
    if boundary.get("date"):
        day = date.fromisoformat(boundary["date"])
        start, _ = day_window(day, boundary.get("timeZone") or tz_name)
        return start, True
    raise ValueError("event boundary has neither dateTime nor date")


def parse_event(item: Dict, tz_name: Optional[str] = None) -> Optional[Dict]:
    """
    Map a Google event resource onto CalendarEvent columns.

    Returns None for items that cannot be placed on the calendar.
    All-day end dates are exclusive in Google, which matches our
    half-open [start, end) convention.
    """
    external_id = item.get("id")
    if not external_id:
        return None
    try:
        start_time, all_day = _parse_boundary(item.get("start") or {}, tz_name)
        end_time, _ = _parse_boundary(item.get("end") or {}, tz_name)
    except ValueError:
        return None
    if end_time < start_time:
        end_time = start_time

    return {
        "external_id": external_id,
        "title": item.get("summary") or "(No title)",
        "description": item.get("description"),
        "location": item.get("location"),
        "start_time": start_time,
        "end_time": end_time,
        "all_day": all_day,
        "color": None,
    }


def apply_events(db: Session, user: User, items: Iterable[Dict]) -> SyncResult:
    """Upsert/delete provider items for one user. Does not commit."""
    result = SyncResult()
    existing: Dict[str, CalendarEvent] = {
        ev.external_id: ev
        for ev in db.query(CalendarEvent).filter(
            CalendarEvent.user_id == user.id,
            CalendarEvent.external_id.isnot(None),
        )
    }

    for item in items:
        external_id = item.get("id")
        if item.get("status") == "cancelled":
            row = existing.pop(external_id, None) if external_id else None
            if row is None:
                continue
            if inspect(row).pending:
                # Created earlier in this same batch; never reached the database
                db.expunge(row)
                result.created -= 1
            else:
                db.delete(row)
                result.deleted += 1
            continue

        fields = parse_event(item, user.timezone)
        if fields is None:
            result.skipped += 1
            continue

        row = existing.get(external_id)
        if row is None:
            row = CalendarEvent(user_id=user.id, source=SOURCE_GOOGLE, **fields)
            db.add(row)
            existing[external_id] = row
            result.created += 1
            continue

        changed = False
        for name in SYNCED_FIELDS:
            if getattr(row, name) != fields[name]:
                setattr(row, name, fields[name])
                changed = True
        if row.source != SOURCE_GOOGLE:
            row.source = SOURCE_GOOGLE
            changed = True
        if changed:
            result.updated += 1

    db.flush()
    return result


def default_sync_range(now: datetime):
    return (
        now - timedelta(days=settings.CALENDAR_SYNC_PAST_DAYS),
        now + timedelta(days=settings.CALENDAR_SYNC_FUTURE_DAYS),
    )


def sync_user_calendar(
    db: Session,
    user: User,
    range_start: Optional[datetime] = None,
    range_end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> SyncResult:
    """
    Pull one user's events in range and upsert them. Does not commit.

    Raises google_calendar.GoogleCalendarError (or GoogleAuthError) when
    the provider cannot be reached or rejects the tokens.
    """
    now = now or datetime.now(timezone.utc)
    if range_start is None or range_end is None:
        default_start, default_end = default_sync_range(now)
        range_start = range_start or default_start
        range_end = range_end or default_end

    access_token = google_calendar.ensure_fresh_token(user, db, now=now)
    items = google_calendar.list_events(
        access_token,
        range_start,
        range_end,
        calendar_id=user.google_calendar_id or "primary",
    )
    result = apply_events(db, user, items)
    user.last_calendar_sync = now
    logger.info(
        f"Calendar sync for user {user.id}: created={result.created} "
        f"updated={result.updated} deleted={result.deleted} skipped={result.skipped}"
    )
    return result
