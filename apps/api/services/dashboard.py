"""
Dashboard read models.

Loads the rows a window needs (scoped to one user) and folds them with
services.aggregation. Routers stay thin: they pick the window and shape
the response.
"""
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from models import CalendarEvent, Cycle, Project, Task, TimeEntry, User
from schemas import TaskResponse
from services.aggregation import ProjectRollup, aggregate_projects
from services.periods import Window, day_window, local_today, week_window
from services.project_status import suggest_status


def entries_in_window(db: Session, user: User, window: Window, project_id=None) -> List[TimeEntry]:
    """Entries overlapping [start, end), running ones included."""
    start, end = window
    query = db.query(TimeEntry).filter(
        TimeEntry.user_id == user.id,
        TimeEntry.start_time < end,
        or_(TimeEntry.end_time.is_(None), TimeEntry.end_time > start),
    )
    if project_id is not None:
        query = query.filter(TimeEntry.project_id == project_id)
    return query.order_by(TimeEntry.start_time).all()


def events_in_window(db: Session, user: User, window: Window) -> List[CalendarEvent]:
    start, end = window
    return (
        db.query(CalendarEvent)
        .filter(
            CalendarEvent.user_id == user.id,
            CalendarEvent.start_time < end,
            # zero-length events sitting on the start boundary still show
            or_(CalendarEvent.end_time > start, CalendarEvent.start_time >= start),
        )
        .order_by(CalendarEvent.start_time)
        .all()
    )


def current_cycle(db: Session, user: User, today: date) -> Optional[Cycle]:
    return (
        db.query(Cycle)
        .filter(Cycle.user_id == user.id, Cycle.start_date <= today, Cycle.end_date >= today)
        .order_by(Cycle.start_date.desc(), Cycle.created_at.desc())
        .first()
    )


def current_week(user: User, now: datetime) -> Window:
    return week_window(local_today(now, user.timezone), user.timezone)


def project_rollups(
    db: Session,
    user: User,
    projects: List[Project],
    window: Window,
    now: datetime,
) -> Dict:
    project_ids = {p.id for p in projects}
    if not project_ids:
        return {}
    entries = [e for e in entries_in_window(db, user, window) if e.project_id in project_ids]
    tasks = (
        db.query(Task)
        .filter(Task.user_id == user.id, Task.project_id.in_(project_ids))
        .all()
    )
    return aggregate_projects(projects, entries, tasks, window[0], window[1], now)


def project_overview(project: Project, rollup: ProjectRollup, week_elapsed: float) -> dict:
    return {
        "project_id": project.id,
        "name": project.name,
        "color": project.color,
        "status": project.status,
        "suggested_status": suggest_status(project.status, rollup, week_elapsed),
        "hours_this_week": rollup.hours_logged,
        "target": rollup.hours_target,
        "progress_pct": rollup.progress_pct,
        "target_met": rollup.target_met,
        "task_count": rollup.task_count,
        "completed_task_count": rollup.completed_task_count,
        "next_action": project.next_action,
        "last_worked_on": project.last_worked_on,
    }


def today_tasks(db: Session, user: User, now: datetime) -> dict:
    """Open tasks due today, open overdue tasks, and tasks completed today."""
    today = local_today(now, user.timezone)
    day_start, day_end = day_window(today, user.timezone)
    base = db.query(Task).filter(Task.user_id == user.id)

    due = (
        base.filter(Task.completed.is_(False), Task.due_date >= day_start, Task.due_date < day_end)
        .order_by(Task.due_date, Task.display_order)
        .all()
    )
    overdue = (
        base.filter(Task.completed.is_(False), Task.due_date < day_start)
        .order_by(Task.due_date, Task.display_order)
        .all()
    )
    completed_today = (
        base.filter(Task.completed.is_(True), Task.completed_at >= day_start, Task.completed_at < day_end)
        .order_by(Task.completed_at)
        .all()
    )
    return {
        "date": today,
        "due": [TaskResponse.model_validate(t) for t in due],
        "overdue": [TaskResponse.model_validate(t) for t in overdue],
        "completed_today": [TaskResponse.model_validate(t) for t in completed_today],
    }
