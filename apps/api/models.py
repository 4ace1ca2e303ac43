from sqlalchemy import Column, Integer, Boolean, CheckConstraint, Float, Date, DateTime, ForeignKey, Text, Index, UniqueConstraint, JSON, Uuid, text
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator
from core.database import Base
import uuid
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamps on every backend.

    PostgreSQL keeps the offset natively; SQLite hands back naive values,
    which are re-tagged as UTC on load.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


JSONType = JSON().with_variant(JSONB(), "postgresql")

PROJECT_STATUSES = ("on-track", "needs-attention", "blocked", "completed", "archived")
TASK_PRIORITIES = ("high", "medium", "low")
CYCLE_PERIODS = ("day", "week", "custom")
EVENT_SOURCES = ("local", "google")


class TimestampMixin:
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)


class User(TimestampMixin, Base):
    __tablename__ = "app_user"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(Text, unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    display_name = Column(Text, nullable=True)
    timezone = Column(Text, nullable=True)  # IANA timezone (e.g. "America/New_York")

    # Google Calendar link (tokens are Fernet-encrypted)
    google_access_token = Column(Text, nullable=True)
    google_refresh_token = Column(Text, nullable=True)
    google_token_expires_at = Column(UTCDateTime, nullable=True)
    google_calendar_id = Column(Text, nullable=False, default="primary")
    last_calendar_sync = Column(UTCDateTime, nullable=True)

    projects = relationship("Project", back_populates="user", cascade="all, delete", passive_deletes=True)
    tasks = relationship("Task", back_populates="user", cascade="all, delete", passive_deletes=True)
    calendar_events = relationship("CalendarEvent", back_populates="user", cascade="all, delete", passive_deletes=True)
    time_entries = relationship("TimeEntry", back_populates="user", cascade="all, delete", passive_deletes=True)
    cycles = relationship("Cycle", back_populates="user", cascade="all, delete", passive_deletes=True)

    @property
    def calendar_connected(self) -> bool:
        return bool(self.google_refresh_token or self.google_access_token)


class Project(TimestampMixin, Base):
    __tablename__ = "project"
    __table_args__ = (
        CheckConstraint(
            "status IN ('on-track', 'needs-attention', 'blocked', 'completed', 'archived')",
            name="ck_project_status",
        ),
        CheckConstraint("hours_per_week IS NULL OR hours_per_week >= 0", name="ck_project_hours_per_week"),
        Index("ix_project_user_order", "user_id", "display_order"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    color = Column(Text, nullable=True)  # "#RRGGBB"
    icon = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="on-track")
    hours_per_week = Column(Float, nullable=True)  # weekly target; NULL = no target
    next_action = Column(Text, nullable=True)
    next_action_notes = Column(Text, nullable=True)
    last_worked_on = Column(UTCDateTime, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)

    user = relationship("User", back_populates="projects")
    tasks = relationship("Task", back_populates="project", cascade="all, delete", passive_deletes=True)
    time_entries = relationship("TimeEntry", back_populates="project", cascade="all, delete", passive_deletes=True)


class Task(TimestampMixin, Base):
    __tablename__ = "task"
    __table_args__ = (
        CheckConstraint("priority IN ('high', 'medium', 'low')", name="ck_task_priority"),
        # completed iff completed_at is set
        CheckConstraint(
            "(completed AND completed_at IS NOT NULL) OR (NOT completed AND completed_at IS NULL)",
            name="ck_task_completed_at",
        ),
        Index("ix_task_user_due", "user_id", "due_date"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("project.id", ondelete="CASCADE"), nullable=True, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(UTCDateTime, nullable=True)
    due_date = Column(UTCDateTime, nullable=True)
    start_time = Column(UTCDateTime, nullable=True)
    end_time = Column(UTCDateTime, nullable=True)
    priority = Column(Text, nullable=False, default="medium")
    estimated_minutes = Column(Integer, nullable=True)
    actual_minutes = Column(Integer, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)

    user = relationship("User", back_populates="tasks")
    project = relationship("Project", back_populates="tasks")

    def mark_completed(self, completed: bool, at: datetime = None) -> None:
        """Keep completed and completed_at in lockstep."""
        if completed:
            self.completed = True
            self.completed_at = at or self.completed_at or utcnow()
        else:
            self.completed = False
            self.completed_at = None


class CalendarEvent(TimestampMixin, Base):
    __tablename__ = "calendar_event"
    __table_args__ = (
        UniqueConstraint("user_id", "external_id", name="uq_calendar_event_user_external_id"),
        CheckConstraint("source IN ('local', 'google')", name="ck_calendar_event_source"),
        Index("ix_calendar_event_user_start", "user_id", "start_time"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    location = Column(Text, nullable=True)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    all_day = Column(Boolean, nullable=False, default=False)
    color = Column(Text, nullable=True)
    source = Column(Text, nullable=False, default="local")
    external_id = Column(Text, nullable=True)  # provider event id for synced rows

    user = relationship("User", back_populates="calendar_events")


class TimeEntry(TimestampMixin, Base):
    __tablename__ = "time_entry"
    __table_args__ = (
        CheckConstraint("duration_minutes IS NULL OR duration_minutes >= 0", name="ck_time_entry_duration"),
        # At most one running entry per user
        Index(
            "uq_time_entry_running_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("end_time IS NULL"),
            sqlite_where=text("end_time IS NULL"),
        ),
        Index("ix_time_entry_user_start", "user_id", "start_time"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("project.id", ondelete="CASCADE"), nullable=False, index=True)
    task_id = Column(Uuid(as_uuid=True), ForeignKey("task.id", ondelete="SET NULL"), nullable=True)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=True)  # NULL while running
    duration_minutes = Column(Integer, nullable=True)  # set when stopped
    notes = Column(Text, nullable=True)

    user = relationship("User", back_populates="time_entries")
    project = relationship("Project", back_populates="time_entries")
    task = relationship("Task")

    @property
    def is_running(self) -> bool:
        return self.end_time is None


class Cycle(TimestampMixin, Base):
    __tablename__ = "cycle"
    __table_args__ = (
        CheckConstraint("period IN ('day', 'week', 'custom')", name="ck_cycle_period"),
        CheckConstraint("end_date >= start_date", name="ck_cycle_dates"),
        Index("ix_cycle_user_dates", "user_id", "start_date", "end_date"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    period = Column(Text, nullable=False, default="week")
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    goals = Column(Text, nullable=True)
    priority_project_ids = Column(JSONType, nullable=False, default=list)  # list of project UUID strings

    user = relationship("User", back_populates="cycles")
