"""
Weekly Aggregation

Folds time entries and tasks into per-project rollups for the dashboard:
- hours logged inside a window (entries clipped to the window)
- task counts (total vs completed)
- comparison against the project's weekly-hour target

Missing targets propagate as None ("unknown"), never as 0, so a project
without a target is never reported as behind.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Optional
from uuid import UUID
import logging

logger = logging.getLogger(__name__)


@dataclass
class ProjectRollup:
    project_id: UUID
    minutes_logged: float = 0.0
    hours_target: Optional[float] = None
    task_count: int = 0
    completed_task_count: int = 0

    @property
    def hours_logged(self) -> float:
        return round(self.minutes_logged / 60.0, 2)

    @property
    def progress_pct(self) -> Optional[float]:
        if self.hours_target is None:
            return None
        if self.hours_target == 0:
            return 100.0
        return round(100.0 * self.hours_logged / self.hours_target, 1)

    @property
    def target_met(self) -> Optional[bool]:
        if self.hours_target is None:
            return None
        return self.hours_logged >= self.hours_target


def overlap_minutes(start: datetime, end: Optional[datetime], range_start: datetime,
                    range_end: datetime, now: datetime) -> float:
    """
    Minutes of [start, end) that fall inside [range_start, range_end).

    A running entry (end is None) counts up to `now`.
    """
    effective_end = end if end is not None else now
    lo = max(start, range_start)
    hi = min(effective_end, range_end)
    if hi <= lo:
        return 0.0
    return (hi - lo).total_seconds() / 60.0


def entry_minutes_in_range(entry, range_start: datetime, range_end: datetime, now: datetime) -> float:
    return overlap_minutes(entry.start_time, entry.end_time, range_start, range_end, now)


def aggregate_projects(
    projects: Iterable,
    entries: Iterable,
    tasks: Iterable,
    range_start: datetime,
    range_end: datetime,
    now: datetime,
) -> Dict[UUID, ProjectRollup]:
    """
    Per-project rollup for one user over [range_start, range_end).

    All inputs must already be scoped to the same user. Entries or tasks
    pointing at projects not in `projects` get their own rollup (target
    unknown) so no tracked time silently disappears.
    """
    rollups: Dict[UUID, ProjectRollup] = {}

    for project in projects:
        rollups[project.id] = ProjectRollup(
            project_id=project.id,
            hours_target=project.hours_per_week,
        )

    for entry in entries:
        minutes = entry_minutes_in_range(entry, range_start, range_end, now)
        if minutes <= 0:
            continue
        rollup = rollups.setdefault(entry.project_id, ProjectRollup(project_id=entry.project_id))
        rollup.minutes_logged += minutes

    for task in tasks:
        if task.project_id is None:
            continue
        rollup = rollups.setdefault(task.project_id, ProjectRollup(project_id=task.project_id))
        rollup.task_count += 1
        if task.completed:
            rollup.completed_task_count += 1

    return rollups


def total_minutes(entries: Iterable, range_start: datetime, range_end: datetime, now: datetime) -> float:
    return sum(entry_minutes_in_range(e, range_start, range_end, now) for e in entries)


def total_target_hours(rollups: Iterable[ProjectRollup]) -> Optional[float]:
    """Sum of known targets; None when no project has one."""
    targets = [r.hours_target for r in rollups if r.hours_target is not None]
    if not targets:
        return None
    return round(sum(targets), 2)
