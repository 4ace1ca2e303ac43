from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from datetime import datetime, date, timezone
from uuid import UUID
from typing import Optional, List, Literal, Dict

ProjectStatus = Literal["on-track", "needs-attention", "blocked", "completed", "archived"]
TaskPriority = Literal["high", "medium", "low"]
CyclePeriod = Literal["day", "week", "custom"]

HEX_COLOR_PATTERN = r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$"
MAX_HOURS_PER_WEEK = 168


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes from clients are taken to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _check_range(start, end, label: str = "end_time"):
    if start is not None and end is not None and end < start:
        raise ValueError(f"{label} must not be before start")


class UTCModel(BaseModel):
    """Normalizes every datetime field to aware UTC on input."""

    @field_validator("*", mode="after")
    @classmethod
    def _normalize_datetimes(cls, value):
        if isinstance(value, datetime):
            return _as_utc(value)
        return value


# =============================================================================
# AUTH / USER
# =============================================================================

class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    display_name: Optional[str] = Field(default=None, max_length=200)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=200)
    timezone: Optional[str] = None
    google_calendar_id: Optional[str] = None


class UserResponse(BaseModel):
    id: UUID
    email: str
    display_name: Optional[str] = None
    timezone: Optional[str] = None
    calendar_connected: bool = False
    google_calendar_id: Optional[str] = None
    last_calendar_sync: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# PROJECTS
# =============================================================================

class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    icon: Optional[str] = None
    status: ProjectStatus = "on-track"
    hours_per_week: Optional[float] = Field(default=None, ge=0, le=MAX_HOURS_PER_WEEK)
    next_action: Optional[str] = None
    next_action_notes: Optional[str] = None
    display_order: Optional[int] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    icon: Optional[str] = None
    status: Optional[ProjectStatus] = None
    hours_per_week: Optional[float] = Field(default=None, ge=0, le=MAX_HOURS_PER_WEEK)
    next_action: Optional[str] = None
    next_action_notes: Optional[str] = None
    display_order: Optional[int] = None


class ProjectResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    status: str
    hours_per_week: Optional[float] = None
    next_action: Optional[str] = None
    next_action_notes: Optional[str] = None
    last_worked_on: Optional[datetime] = None
    display_order: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectSummaryResponse(BaseModel):
    project: ProjectResponse
    week_start: datetime
    week_end: datetime
    hours_this_week: float
    target: Optional[float] = None
    progress_pct: Optional[float] = None
    target_met: Optional[bool] = None
    suggested_status: Optional[str] = None
    task_count: int
    completed_task_count: int
    open_task_count: int


class ReorderRequest(BaseModel):
    """Ids in their new display order (position 0 first)."""
    ids: List[UUID] = Field(min_length=1)

    @field_validator("ids")
    @classmethod
    def _unique(cls, ids):
        if len(set(ids)) != len(ids):
            raise ValueError("ids must be unique")
        return ids


# =============================================================================
# TASKS
# =============================================================================

class TaskCreate(UTCModel):
    title: str = Field(min_length=1, max_length=500)
    description: Optional[str] = None
    project_id: Optional[UUID] = None
    completed: Optional[bool] = None
    completed_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    priority: TaskPriority = "medium"
    estimated_minutes: Optional[int] = Field(default=None, ge=0)
    actual_minutes: Optional[int] = Field(default=None, ge=0)
    display_order: Optional[int] = None

    @model_validator(mode="after")
    def _check_times(self):
        _check_range(self.start_time, self.end_time)
        return self


class TaskUpdate(UTCModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = None
    project_id: Optional[UUID] = None
    completed: Optional[bool] = None
    completed_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    priority: Optional[TaskPriority] = None
    estimated_minutes: Optional[int] = Field(default=None, ge=0)
    actual_minutes: Optional[int] = Field(default=None, ge=0)
    display_order: Optional[int] = None


class TaskResponse(BaseModel):
    id: UUID
    project_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    completed: bool
    completed_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    priority: str
    estimated_minutes: Optional[int] = None
    actual_minutes: Optional[int] = None
    display_order: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TodayTasksResponse(BaseModel):
    date: date
    due: List[TaskResponse]
    overdue: List[TaskResponse]
    completed_today: List[TaskResponse]


# =============================================================================
# CALENDAR
# =============================================================================

class CalendarEventCreate(UTCModel):
    title: str = Field(min_length=1, max_length=500)
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: datetime
    end_time: datetime
    all_day: bool = False
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    external_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_times(self):
        _check_range(self.start_time, self.end_time)
        return self


class CalendarEventUpdate(UTCModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    all_day: Optional[bool] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)


class CalendarEventResponse(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: datetime
    end_time: datetime
    all_day: bool
    color: Optional[str] = None
    source: str
    external_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CalendarSyncResponse(BaseModel):
    created: int
    updated: int
    deleted: int
    range_start: datetime
    range_end: datetime
    synced_at: datetime


# =============================================================================
# TIME TRACKING
# =============================================================================

class TimerStart(BaseModel):
    project_id: UUID
    task_id: Optional[UUID] = None
    notes: Optional[str] = None


class TimerStop(BaseModel):
    entry_id: Optional[UUID] = None
    notes: Optional[str] = None


class TimeEntryCreate(UTCModel):
    """Manually logged (already finished) block of work."""
    project_id: UUID
    task_id: Optional[UUID] = None
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_times(self):
        _check_range(self.start_time, self.end_time)
        return self


class TimeEntryUpdate(UTCModel):
    project_id: Optional[UUID] = None
    task_id: Optional[UUID] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    notes: Optional[str] = None


class TimeEntryResponse(BaseModel):
    id: UUID
    project_id: UUID
    task_id: Optional[UUID] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    notes: Optional[str] = None
    is_running: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectHours(BaseModel):
    project_id: UUID
    name: str
    hours: float
    target: Optional[float] = None


class TimeStatsResponse(BaseModel):
    range_start: datetime
    range_end: datetime
    total_hours: float
    projects: List[ProjectHours]


# =============================================================================
# CYCLES
# =============================================================================

class CycleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    period: CyclePeriod = "week"
    start_date: date
    end_date: date
    goals: Optional[str] = None
    priority_project_ids: List[UUID] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_dates(self):
        _check_range(self.start_date, self.end_date, label="end_date")
        return self


class CycleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    period: Optional[CyclePeriod] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    goals: Optional[str] = None
    priority_project_ids: Optional[List[UUID]] = None


class CycleResponse(BaseModel):
    id: UUID
    name: str
    period: str
    start_date: date
    end_date: date
    goals: Optional[str] = None
    priority_project_ids: List[UUID]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# DASHBOARD
# =============================================================================

class ProjectOverview(BaseModel):
    project_id: UUID
    name: str
    color: Optional[str] = None
    status: str
    suggested_status: Optional[str] = None
    hours_this_week: float
    target: Optional[float] = None
    progress_pct: Optional[float] = None
    target_met: Optional[bool] = None
    task_count: int
    completed_task_count: int
    next_action: Optional[str] = None
    last_worked_on: Optional[datetime] = None


class DashboardOverview(BaseModel):
    week_start: datetime
    week_end: datetime
    week_elapsed_pct: float
    total_hours_this_week: float
    total_target_hours: Optional[float] = None
    projects: List[ProjectOverview]
    running_entry: Optional[TimeEntryResponse] = None
    current_cycle: Optional[CycleResponse] = None


class DashboardToday(BaseModel):
    date: date
    tasks: TodayTasksResponse
    events: List[CalendarEventResponse]
    running_entry: Optional[TimeEntryResponse] = None
    minutes_tracked_today: int


class DaySummary(BaseModel):
    date: date
    minutes_tracked: int
    minutes_by_project: Dict[str, int]
    events: List[CalendarEventResponse]
    tasks_completed: int


class DashboardWeek(BaseModel):
    week_start: datetime
    week_end: datetime
    days: List[DaySummary]
    total_minutes: int
