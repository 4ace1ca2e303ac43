"""
Tasks API Endpoints

CRUD, filtering, manual reordering and the "today" view.

completed and completed_at always move together:
- completed=true without completed_at stamps now
- completed=false clears completed_at
- completed_at on its own marks the task completed
"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from core.auth import get_current_user, get_owned
from core.database import get_db
from core.exceptions import ValidationError
from models import Project, Task, User
from schemas import (
    ReorderRequest,
    TaskCreate,
    TaskPriority,
    TaskResponse,
    TaskUpdate,
    TodayTasksResponse,
)
from services.ordering import apply_reorder, next_display_order
from services.dashboard import today_tasks

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

NOT_NULL_FIELDS = ("title", "priority", "display_order")


def _apply_completion(task: Task, completed: Optional[bool], completed_at: Optional[datetime], now: datetime) -> None:
    if completed is False:
        task.mark_completed(False)
    elif completed is True:
        task.mark_completed(True, at=completed_at or task.completed_at or now)
    elif completed_at is not None:
        task.mark_completed(True, at=completed_at)


def _check_times(task: Task) -> None:
    if task.start_time is not None and task.end_time is not None and task.end_time < task.start_time:
        raise ValidationError("end_time must not be before start_time", field="end_time")


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@router.get("", response_model=List[TaskResponse])
def list_tasks(
    project_id: Optional[UUID] = None,
    completed: Optional[bool] = None,
    priority: Optional[TaskPriority] = None,
    due_before: Optional[datetime] = Query(None, description="Tasks due strictly before this instant"),
    due_after: Optional[datetime] = Query(None, description="Tasks due at or after this instant"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Task).filter(Task.user_id == current_user.id)
    if project_id is not None:
        query = query.filter(Task.project_id == project_id)
    if completed is not None:
        query = query.filter(Task.completed == completed)
    if priority:
        query = query.filter(Task.priority == priority)
    if due_before is not None:
        query = query.filter(Task.due_date < _utc(due_before))
    if due_after is not None:
        query = query.filter(Task.due_date >= _utc(due_after))
    return query.order_by(Task.display_order, Task.created_at).all()


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    task_in: TaskCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if task_in.project_id is not None:
        get_owned(db, Project, task_in.project_id, current_user)

    data = task_in.model_dump(exclude={"completed", "completed_at"})
    if data.get("display_order") is None:
        data["display_order"] = next_display_order(db, Task, current_user.id)

    task = Task(user_id=current_user.id, **data)
    task.mark_completed(False)
    _apply_completion(task, task_in.completed, task_in.completed_at, datetime.now(timezone.utc))

    db.add(task)
    db.commit()
    db.refresh(task)
    return task


@router.post("/reorder", response_model=List[TaskResponse])
def reorder_tasks(
    reorder: ReorderRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ordered = apply_reorder(db, Task, current_user.id, reorder.ids)
    db.commit()
    return ordered


@router.get("/today", response_model=TodayTasksResponse)
def get_today_tasks(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Open tasks due today, open tasks already overdue, and tasks completed
    today. "Today" is the user's local day.
    """
    now = datetime.now(timezone.utc)
    return today_tasks(db, current_user, now)


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return get_owned(db, Task, task_id, current_user)


@router.patch("/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: UUID,
    changes: TaskUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = get_owned(db, Task, task_id, current_user)
    data = changes.model_dump(exclude_unset=True)

    if data.get("project_id") is not None:
        get_owned(db, Project, data["project_id"], current_user)

    completed = data.pop("completed", None)
    completed_at = data.pop("completed_at", None)
    for key in NOT_NULL_FIELDS:
        if key in data and data[key] is None:
            data.pop(key)
    for key, value in data.items():
        setattr(task, key, value)

    _apply_completion(task, completed, completed_at, datetime.now(timezone.utc))
    _check_times(task)

    db.commit()
    db.refresh(task)
    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = get_owned(db, Task, task_id, current_user)
    db.delete(task)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
