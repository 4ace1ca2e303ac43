"""
Calendar API Endpoints

Local calendar events plus on-demand Google Calendar sync.

Synced rows carry source="google" and the provider event id in
external_id; local edits to them are overwritten by the next sync.
"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
import logging

from core.auth import get_current_user, get_owned
from core.database import get_db
from core.exceptions import ConflictError, UpstreamError, ValidationError
from models import CalendarEvent, User
from schemas import (
    CalendarEventCreate,
    CalendarEventResponse,
    CalendarEventUpdate,
    CalendarSyncResponse,
)
from services import google_calendar
from services.calendar_sync import default_sync_range, sync_user_calendar

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/calendar", tags=["calendar"])

NOT_NULL_FIELDS = ("title", "start_time", "end_time", "all_day")


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@router.get("/events", response_model=List[CalendarEventResponse])
def list_events(
    start: Optional[datetime] = Query(None, description="Only events ending after this instant"),
    end: Optional[datetime] = Query(None, description="Only events starting before this instant"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Events overlapping [start, end). Either bound may be omitted."""
    start, end = _utc(start), _utc(end)
    if start is not None and end is not None and end < start:
        raise ValidationError("end must not be before start", field="end")

    query = db.query(CalendarEvent).filter(CalendarEvent.user_id == current_user.id)
    if end is not None:
        query = query.filter(CalendarEvent.start_time < end)
    if start is not None:
        query = query.filter(or_(CalendarEvent.end_time > start, CalendarEvent.start_time >= start))
    return query.order_by(CalendarEvent.start_time).all()


@router.post("/events", response_model=CalendarEventResponse, status_code=status.HTTP_201_CREATED)
def create_event(
    event_in: CalendarEventCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if event_in.external_id:
        existing = db.query(CalendarEvent).filter(
            CalendarEvent.user_id == current_user.id,
            CalendarEvent.external_id == event_in.external_id,
        ).first()
        if existing:
            raise ConflictError(f"Event with external_id {event_in.external_id} already exists")

    event = CalendarEvent(user_id=current_user.id, source="local", **event_in.model_dump())
    db.add(event)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"Event with external_id {event_in.external_id} already exists")
    db.refresh(event)
    return event


@router.post("/sync", response_model=CalendarSyncResponse)
def sync_calendar(
    start: Optional[datetime] = Query(None, description="Range start (default: 7 days ago)"),
    end: Optional[datetime] = Query(None, description="Range end (default: 30 days ahead)"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Pull Google Calendar events in range and upsert them.

    Provider failures surface as 502 with retryable=true and leave the
    local calendar untouched.
    """
    if not current_user.calendar_connected:
        raise ConflictError("Google Calendar is not connected")

    now = datetime.now(timezone.utc)
    default_start, default_end = default_sync_range(now)
    range_start = _utc(start) or default_start
    range_end = _utc(end) or default_end
    if range_end < range_start:
        raise ValidationError("end must not be before start", field="end")

    try:
        result = sync_user_calendar(db, current_user, range_start, range_end, now=now)
    except google_calendar.GoogleCalendarError as e:
        db.rollback()
        logger.warning(f"Calendar sync failed for user {current_user.id}: {e}")
        raise UpstreamError(f"Google Calendar sync failed: {e}")
    db.commit()

    return {
        "created": result.created,
        "updated": result.updated,
        "deleted": result.deleted,
        "range_start": range_start,
        "range_end": range_end,
        "synced_at": now,
    }


@router.get("/events/{event_id}", response_model=CalendarEventResponse)
def get_event(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return get_owned(db, CalendarEvent, event_id, current_user, label="Calendar event")


@router.patch("/events/{event_id}", response_model=CalendarEventResponse)
def update_event(
    event_id: UUID,
    changes: CalendarEventUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    event = get_owned(db, CalendarEvent, event_id, current_user, label="Calendar event")
    data = changes.model_dump(exclude_unset=True)
    for key in NOT_NULL_FIELDS:
        if key in data and data[key] is None:
            data.pop(key)
    for key, value in data.items():
        setattr(event, key, value)
    if event.end_time < event.start_time:
        raise ValidationError("end_time must not be before start_time", field="end_time")
    db.commit()
    db.refresh(event)
    return event


@router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    event = get_owned(db, CalendarEvent, event_id, current_user, label="Calendar event")
    db.delete(event)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
