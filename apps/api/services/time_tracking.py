"""
Time tracking: start/stop timers and manual entries.

A TimeEntry is either running (end_time IS NULL) or stopped. Stopped is
terminal; there is no resume. A user has at most one running entry:
starting a second one is rejected rather than auto-stopping the first.
The check runs inside the request transaction and is backed by a partial
unique index, so two racing start requests cannot both succeed.
"""
import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.auth import get_owned
from core.exceptions import ConflictError, NotFoundError, ValidationError
from models import Project, Task, TimeEntry, User

logger = logging.getLogger(__name__)


def whole_minutes(start: datetime, end: datetime) -> int:
    """Duration in whole minutes, floored, never negative."""
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // 60)


def get_running_entry(db: Session, user: User) -> Optional[TimeEntry]:
    return (
        db.query(TimeEntry)
        .filter(TimeEntry.user_id == user.id, TimeEntry.end_time.is_(None))
        .first()
    )


def _check_task(db: Session, user: User, task_id: Optional[UUID], project_id: UUID) -> None:
    if task_id is None:
        return
    task = get_owned(db, Task, task_id, user)
    if task.project_id is not None and task.project_id != project_id:
        raise ValidationError("Task belongs to a different project", field="task_id")


def start_entry(
    db: Session,
    user: User,
    project_id: UUID,
    task_id: Optional[UUID] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TimeEntry:
    now = now or datetime.now(timezone.utc)
    project = get_owned(db, Project, project_id, user)
    _check_task(db, user, task_id, project_id)

    running = get_running_entry(db, user)
    if running is not None:
        raise ConflictError(f"A time entry is already running: {running.id}")

    entry = TimeEntry(
        user_id=user.id,
        project=project,
        task_id=task_id,
        start_time=now,
        end_time=None,
        notes=notes,
    )
    db.add(entry)
    try:
        db.flush()
    except IntegrityError:
        # Lost a race with a concurrent start for the same user
        db.rollback()
        raise ConflictError("A time entry is already running")

    logger.info(f"Started time entry {entry.id} for project {project_id}")
    return entry


def _finish(entry: TimeEntry, end_time: datetime) -> None:
    entry.end_time = end_time
    entry.duration_minutes = whole_minutes(entry.start_time, end_time)
    project = entry.project
    if project is not None and (project.last_worked_on is None or project.last_worked_on < end_time):
        project.last_worked_on = end_time


def stop_entry(
    db: Session,
    user: User,
    entry_id: Optional[UUID] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TimeEntry:
    """Stop the given entry, or the running one when no id is passed."""
    now = now or datetime.now(timezone.utc)
    if entry_id is not None:
        entry = get_owned(db, TimeEntry, entry_id, user, label="Time entry")
        if not entry.is_running:
            raise ConflictError(f"Time entry already stopped: {entry.id}")
    else:
        entry = get_running_entry(db, user)
        if entry is None:
            raise NotFoundError("Running time entry", "none")

    # Clock skew between app servers must not yield negative durations
    end_time = max(now, entry.start_time)
    _finish(entry, end_time)
    if notes is not None:
        entry.notes = notes
    db.flush()

    logger.info(f"Stopped time entry {entry.id} after {entry.duration_minutes} min")
    return entry


def create_manual_entry(
    db: Session,
    user: User,
    project_id: UUID,
    start_time: datetime,
    end_time: datetime,
    task_id: Optional[UUID] = None,
    notes: Optional[str] = None,
) -> TimeEntry:
    if end_time < start_time:
        raise ValidationError("end_time must not be before start_time", field="end_time")
    project = get_owned(db, Project, project_id, user)
    _check_task(db, user, task_id, project_id)

    entry = TimeEntry(
        user_id=user.id,
        project=project,
        task_id=task_id,
        start_time=start_time,
        notes=notes,
    )
    db.add(entry)
    _finish(entry, end_time)
    db.flush()
    return entry


def update_entry(db: Session, user: User, entry: TimeEntry, changes: dict) -> TimeEntry:
    """
    Apply a PATCH to an entry. Stopped entries get their duration recomputed;
    a running entry cannot be given an end_time here (use stop).
    """
    if "project_id" in changes:
        if changes["project_id"] is None:
            raise ValidationError("project_id cannot be cleared", field="project_id")
        get_owned(db, Project, changes["project_id"], user)
        if "task_id" not in changes:
            # The kept task must follow the entry to its new project
            _check_task(db, user, entry.task_id, changes["project_id"])
        entry.project_id = changes["project_id"]
    if "task_id" in changes:
        _check_task(db, user, changes["task_id"], entry.project_id)
        entry.task_id = changes["task_id"]
    if "notes" in changes:
        entry.notes = changes["notes"]

    if "start_time" in changes:
        if changes["start_time"] is None:
            raise ValidationError("start_time cannot be cleared", field="start_time")
        entry.start_time = changes["start_time"]
    if "end_time" in changes:
        if entry.is_running:
            raise ConflictError("Stop the running entry instead of setting end_time")
        if changes["end_time"] is None:
            raise ValidationError("end_time cannot be cleared on a stopped entry", field="end_time")
        entry.end_time = changes["end_time"]

    if not entry.is_running:
        if entry.end_time < entry.start_time:
            raise ValidationError("end_time must not be before start_time", field="end_time")
        entry.duration_minutes = whole_minutes(entry.start_time, entry.end_time)

    db.flush()
    return entry
