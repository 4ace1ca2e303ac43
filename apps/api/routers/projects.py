"""
Projects API Endpoints

CRUD for projects, manual reordering, and a per-project weekly summary.
Status is only ever changed through PATCH; the summary carries an
advisory suggested_status next to it.
"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from core.auth import get_current_user, get_owned
from core.database import get_db
from models import Cycle, Project, User
from schemas import (
    ProjectCreate,
    ProjectResponse,
    ProjectStatus,
    ProjectSummaryResponse,
    ProjectUpdate,
    ReorderRequest,
)
from services.aggregation import ProjectRollup
from services.dashboard import current_week, project_rollups
from services.ordering import apply_reorder, next_display_order
from services.periods import elapsed_fraction
from services.project_status import suggest_status

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.get("", response_model=List[ProjectResponse])
def list_projects(
    status_filter: Optional[ProjectStatus] = Query(None, alias="status"),
    include_archived: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List projects in display order. Archived ones are hidden unless asked for."""
    query = db.query(Project).filter(Project.user_id == current_user.id)
    if status_filter:
        query = query.filter(Project.status == status_filter)
    elif not include_archived:
        query = query.filter(Project.status != "archived")
    return query.order_by(Project.display_order, Project.created_at).all()


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project(
    project_in: ProjectCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = project_in.model_dump()
    if data.get("display_order") is None:
        data["display_order"] = next_display_order(db, Project, current_user.id)

    project = Project(user_id=current_user.id, **data)
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


@router.post("/reorder", response_model=List[ProjectResponse])
def reorder_projects(
    reorder: ReorderRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ordered = apply_reorder(db, Project, current_user.id, reorder.ids)
    db.commit()
    return ordered


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return get_owned(db, Project, project_id, current_user)


@router.patch("/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: UUID,
    changes: ProjectUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = get_owned(db, Project, project_id, current_user)
    data = changes.model_dump(exclude_unset=True)
    # name, status and display_order are NOT NULL; an explicit null means "leave as is"
    for key in ("name", "status", "display_order"):
        if key in data and data[key] is None:
            data.pop(key)
    for key, value in data.items():
        setattr(project, key, value)
    db.commit()
    db.refresh(project)
    return project


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Delete a project together with its tasks and time entries, and drop it
    from every cycle's priority list.
    """
    project = get_owned(db, Project, project_id, current_user)
    removed = str(project.id)
    for cycle in db.query(Cycle).filter(Cycle.user_id == current_user.id):
        ids = cycle.priority_project_ids or []
        if removed in ids:
            # JSON columns only notice reassignment, not in-place edits
            cycle.priority_project_ids = [i for i in ids if i != removed]
    db.delete(project)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{project_id}/summary", response_model=ProjectSummaryResponse)
def get_project_summary(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Project plus its rollup for the current week."""
    project = get_owned(db, Project, project_id, current_user)
    now = datetime.now(timezone.utc)
    window = current_week(current_user, now)

    rollups = project_rollups(db, current_user, [project], window, now)
    rollup = rollups.get(project.id) or ProjectRollup(project_id=project.id, hours_target=project.hours_per_week)

    return {
        "project": ProjectResponse.model_validate(project),
        "week_start": window[0],
        "week_end": window[1],
        "hours_this_week": rollup.hours_logged,
        "target": rollup.hours_target,
        "progress_pct": rollup.progress_pct,
        "target_met": rollup.target_met,
        "suggested_status": suggest_status(project.status, rollup, elapsed_fraction(window, now)),
        "task_count": rollup.task_count,
        "completed_task_count": rollup.completed_task_count,
        "open_task_count": rollup.task_count - rollup.completed_task_count,
    }
