"""
Cycles API Endpoints

Planning periods (day / week / custom) with goals and a prioritized list
of the user's projects.
"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from core.auth import get_current_user, get_owned
from core.database import get_db
from core.exceptions import NotFoundError, ValidationError
from models import Cycle, Project, User
from schemas import CycleCreate, CycleResponse, CycleUpdate
from services.dashboard import current_cycle
from services.periods import local_today

router = APIRouter(prefix="/api/cycles", tags=["cycles"])

NOT_NULL_FIELDS = ("name", "period", "start_date", "end_date")


def _owned_project_ids(db: Session, user: User, project_ids: List[UUID]) -> List[str]:
    """Validate every id belongs to the user; return them as JSON-ready strings."""
    if not project_ids:
        return []
    found = {
        row.id
        for row in db.query(Project.id).filter(Project.user_id == user.id, Project.id.in_(project_ids))
    }
    for project_id in project_ids:
        if project_id not in found:
            raise NotFoundError("Project", project_id)
    # keep order, drop repeats
    return [str(i) for i in dict.fromkeys(project_ids)]


@router.get("", response_model=List[CycleResponse])
def list_cycles(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return (
        db.query(Cycle)
        .filter(Cycle.user_id == current_user.id)
        .order_by(Cycle.start_date.desc(), Cycle.created_at.desc())
        .all()
    )


@router.post("", response_model=CycleResponse, status_code=status.HTTP_201_CREATED)
def create_cycle(
    cycle_in: CycleCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = cycle_in.model_dump()
    data["priority_project_ids"] = _owned_project_ids(db, current_user, cycle_in.priority_project_ids)

    cycle = Cycle(user_id=current_user.id, **data)
    db.add(cycle)
    db.commit()
    db.refresh(cycle)
    return cycle


@router.get("/current", response_model=CycleResponse)
def get_current_cycle(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Cycle containing the user's local today; the most recently started wins."""
    today = local_today(datetime.now(timezone.utc), current_user.timezone)
    cycle = current_cycle(db, current_user, today)
    if cycle is None:
        raise NotFoundError("Current cycle", today.isoformat())
    return cycle


@router.get("/{cycle_id}", response_model=CycleResponse)
def get_cycle(
    cycle_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return get_owned(db, Cycle, cycle_id, current_user)


@router.patch("/{cycle_id}", response_model=CycleResponse)
def update_cycle(
    cycle_id: UUID,
    changes: CycleUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    cycle = get_owned(db, Cycle, cycle_id, current_user)
    data = changes.model_dump(exclude_unset=True)
    for key in NOT_NULL_FIELDS:
        if key in data and data[key] is None:
            data.pop(key)
    if "priority_project_ids" in data:
        data["priority_project_ids"] = _owned_project_ids(db, current_user, data["priority_project_ids"] or [])
    for key, value in data.items():
        setattr(cycle, key, value)
    if cycle.end_date < cycle.start_date:
        raise ValidationError("end_date must not be before start_date", field="end_date")
    db.commit()
    db.refresh(cycle)
    return cycle


@router.delete("/{cycle_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_cycle(
    cycle_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    cycle = get_owned(db, Cycle, cycle_id, current_user)
    db.delete(cycle)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
