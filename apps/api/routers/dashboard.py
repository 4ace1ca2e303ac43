"""
Dashboard API Endpoints

Read-only views that fold projects, tasks, time entries, events and
cycles for the current week or day. All windows use the user's timezone.
"""
from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from collections import defaultdict

from core.auth import get_current_user
from core.database import get_db
from models import Project, Task, User
from schemas import (
    CalendarEventResponse,
    CycleResponse,
    DashboardOverview,
    DashboardToday,
    DashboardWeek,
    TimeEntryResponse,
)
from services.aggregation import ProjectRollup, entry_minutes_in_range, total_minutes, total_target_hours
from services.dashboard import (
    current_cycle,
    current_week,
    entries_in_window,
    events_in_window,
    project_overview,
    project_rollups,
    today_tasks,
)
from services.periods import day_window, elapsed_fraction, local_today
from services.time_tracking import get_running_entry

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def _running(db: Session, user: User):
    entry = get_running_entry(db, user)
    return TimeEntryResponse.model_validate(entry) if entry else None


@router.get("/overview", response_model=DashboardOverview)
def get_overview(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Per-project progress for the current week.

    Archived projects are left out. Totals only count time on the listed
    projects; the target total is null when no project has a target.
    """
    now = datetime.now(timezone.utc)
    window = current_week(current_user, now)
    elapsed = elapsed_fraction(window, now)

    projects = (
        db.query(Project)
        .filter(Project.user_id == current_user.id, Project.status != "archived")
        .order_by(Project.display_order, Project.created_at)
        .all()
    )
    rollups = project_rollups(db, current_user, projects, window, now)

    overviews = []
    for project in projects:
        rollup = rollups.get(project.id) or ProjectRollup(project_id=project.id, hours_target=project.hours_per_week)
        overviews.append(project_overview(project, rollup, elapsed))

    listed = [rollups[p.id] for p in projects if p.id in rollups]
    cycle = current_cycle(db, current_user, local_today(now, current_user.timezone))

    return {
        "week_start": window[0],
        "week_end": window[1],
        "week_elapsed_pct": round(elapsed * 100, 1),
        "total_hours_this_week": round(sum(r.minutes_logged for r in listed) / 60.0, 2),
        "total_target_hours": total_target_hours(listed),
        "projects": overviews,
        "running_entry": _running(db, current_user),
        "current_cycle": CycleResponse.model_validate(cycle) if cycle else None,
    }


@router.get("/today", response_model=DashboardToday)
def get_today(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    now = datetime.now(timezone.utc)
    today = local_today(now, current_user.timezone)
    window = day_window(today, current_user.timezone)

    entries = entries_in_window(db, current_user, window)
    events = events_in_window(db, current_user, window)

    return {
        "date": today,
        "tasks": today_tasks(db, current_user, now),
        "events": [CalendarEventResponse.model_validate(e) for e in events],
        "running_entry": _running(db, current_user),
        "minutes_tracked_today": int(total_minutes(entries, window[0], window[1], now)),
    }


@router.get("/week", response_model=DashboardWeek)
def get_week(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Minutes tracked, events and completed tasks for each day of the current week."""
    now = datetime.now(timezone.utc)
    week_start, week_end = current_week(current_user, now)
    first_day = local_today(week_start, current_user.timezone)

    entries = entries_in_window(db, current_user, (week_start, week_end))
    events = events_in_window(db, current_user, (week_start, week_end))
    completed = (
        db.query(Task)
        .filter(
            Task.user_id == current_user.id,
            Task.completed.is_(True),
            Task.completed_at >= week_start,
            Task.completed_at < week_end,
        )
        .all()
    )

    days = []
    week_total = 0.0
    for offset in range(7):
        day = first_day + timedelta(days=offset)
        day_start, day_end = day_window(day, current_user.timezone)

        by_project = defaultdict(float)
        for entry in entries:
            minutes = entry_minutes_in_range(entry, day_start, day_end, now)
            if minutes > 0:
                by_project[str(entry.project_id)] += minutes
        day_total = sum(by_project.values())
        week_total += day_total

        days.append({
            "date": day,
            "minutes_tracked": int(day_total),
            "minutes_by_project": {k: int(v) for k, v in by_project.items()},
            "events": [
                CalendarEventResponse.model_validate(e)
                for e in events
                if e.start_time < day_end and (e.end_time > day_start or e.start_time >= day_start)
            ],
            "tasks_completed": sum(1 for t in completed if day_start <= t.completed_at < day_end),
        })

    return {
        "week_start": week_start,
        "week_end": week_end,
        "days": days,
        "total_minutes": int(week_total),
    }
