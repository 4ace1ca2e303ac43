"""
Advisory status hint for projects.

Project.status is only ever written by the user. This module computes a
read-only `suggested_status` for the dashboard:

    needs-attention  more than half the week elapsed AND logged hours more
                     than 10% behind the pro-rated weekly target
    on-track         otherwise
    None             no target, or project is blocked/completed/archived
"""
from typing import Optional

from services.aggregation import ProjectRollup

ELAPSED_THRESHOLD = 0.5
BEHIND_TOLERANCE = 0.10

INACTIVE_STATUSES = {"blocked", "completed", "archived"}


def suggest_status(status: str, rollup: ProjectRollup, week_elapsed: float) -> Optional[str]:
    if status in INACTIVE_STATUSES:
        return None
    if rollup.hours_target is None:
        return None
    if week_elapsed <= ELAPSED_THRESHOLD:
        return "on-track"
    expected = rollup.hours_target * week_elapsed
    if rollup.hours_logged < (1 - BEHIND_TOLERANCE) * expected:
        return "needs-attention"
    return "on-track"
