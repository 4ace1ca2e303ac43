"""
Time Tracking API Endpoints

Start/stop timer, manual entries, and hour stats over a range.
"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from core.auth import get_current_user, get_owned
from core.database import get_db
from core.exceptions import ValidationError
from models import Project, TimeEntry, User
from schemas import (
    TimeEntryCreate,
    TimeEntryResponse,
    TimeEntryUpdate,
    TimerStart,
    TimerStop,
    TimeStatsResponse,
)
from services import time_tracking
from services.aggregation import aggregate_projects
from services.dashboard import current_week, entries_in_window

router = APIRouter(prefix="/api/time", tags=["time"])


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@router.post("/start", response_model=TimeEntryResponse, status_code=status.HTTP_201_CREATED)
def start_timer(
    timer: TimerStart,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Start a timer. 409 if one is already running."""
    entry = time_tracking.start_entry(
        db, current_user, timer.project_id, task_id=timer.task_id, notes=timer.notes
    )
    db.commit()
    db.refresh(entry)
    return entry


@router.post("/stop", response_model=TimeEntryResponse)
def stop_timer(
    timer: Optional[TimerStop] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Stop the given entry, or whatever is running when no id is sent."""
    timer = timer or TimerStop()
    entry = time_tracking.stop_entry(db, current_user, entry_id=timer.entry_id, notes=timer.notes)
    db.commit()
    db.refresh(entry)
    return entry


@router.get("/current", response_model=Optional[TimeEntryResponse])
def get_current_timer(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """The running entry, or null."""
    return time_tracking.get_running_entry(db, current_user)


@router.get("/entries", response_model=List[TimeEntryResponse])
def list_entries(
    start: Optional[datetime] = Query(None, description="Only entries ending after this instant"),
    end: Optional[datetime] = Query(None, description="Only entries starting before this instant"),
    project_id: Optional[UUID] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    start, end = _utc(start), _utc(end)
    query = db.query(TimeEntry).filter(TimeEntry.user_id == current_user.id)
    if project_id is not None:
        query = query.filter(TimeEntry.project_id == project_id)
    if end is not None:
        query = query.filter(TimeEntry.start_time < end)
    if start is not None:
        query = query.filter(or_(TimeEntry.end_time.is_(None), TimeEntry.end_time > start))
    return query.order_by(TimeEntry.start_time.desc()).all()


@router.post("/entries", response_model=TimeEntryResponse, status_code=status.HTTP_201_CREATED)
def create_entry(
    entry_in: TimeEntryCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Log a finished block of work after the fact."""
    entry = time_tracking.create_manual_entry(
        db,
        current_user,
        entry_in.project_id,
        entry_in.start_time,
        entry_in.end_time,
        task_id=entry_in.task_id,
        notes=entry_in.notes,
    )
    db.commit()
    db.refresh(entry)
    return entry


@router.get("/entries/{entry_id}", response_model=TimeEntryResponse)
def get_entry(
    entry_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return get_owned(db, TimeEntry, entry_id, current_user, label="Time entry")


@router.patch("/entries/{entry_id}", response_model=TimeEntryResponse)
def update_entry(
    entry_id: UUID,
    changes: TimeEntryUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    entry = get_owned(db, TimeEntry, entry_id, current_user, label="Time entry")
    entry = time_tracking.update_entry(db, current_user, entry, changes.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(entry)
    return entry


@router.delete("/entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_entry(
    entry_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    entry = get_owned(db, TimeEntry, entry_id, current_user, label="Time entry")
    db.delete(entry)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/stats", response_model=TimeStatsResponse)
def get_stats(
    start: Optional[datetime] = Query(None, description="Range start (default: start of this week)"),
    end: Optional[datetime] = Query(None, description="Range end (default: end of this week)"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Total and per-project hours over [start, end)."""
    now = datetime.now(timezone.utc)
    week_start, week_end = current_week(current_user, now)
    range_start = _utc(start) or week_start
    range_end = _utc(end) or week_end
    if range_end < range_start:
        raise ValidationError("end must not be before start", field="end")

    window = (range_start, range_end)
    entries = entries_in_window(db, current_user, window)
    projects = db.query(Project).filter(Project.user_id == current_user.id).all()
    rollups = aggregate_projects(projects, entries, [], range_start, range_end, now)
    by_id = {p.id: p for p in projects}

    rows = []
    for project_id, rollup in rollups.items():
        if rollup.minutes_logged <= 0:
            continue
        project = by_id.get(project_id)
        rows.append({
            "project_id": project_id,
            "name": project.name if project else "",
            "hours": rollup.hours_logged,
            "target": rollup.hours_target,
        })
    rows.sort(key=lambda r: r["hours"], reverse=True)

    return {
        "range_start": range_start,
        "range_end": range_end,
        # Sum of the displayed rows, so the breakdown always adds up
        "total_hours": round(sum(r["hours"] for r in rows), 2),
        "projects": rows,
    }
