"""initial schema

Revision ID: 001
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    # Create app_user table
    op.create_table(
        'app_user',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('timezone', sa.Text(), nullable=True),
        sa.Column('google_access_token', sa.Text(), nullable=True),
        sa.Column('google_refresh_token', sa.Text(), nullable=True),
        sa.Column('google_token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('google_calendar_id', sa.Text(), server_default='primary', nullable=False),
        sa.Column('last_calendar_sync', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('email', name='app_user_email_key'),
    )

    # Create project table
    op.create_table(
        'project',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('color', sa.Text(), nullable=True),
        sa.Column('icon', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), server_default='on-track', nullable=False),
        sa.Column('hours_per_week', sa.Float(), nullable=True),
        sa.Column('next_action', sa.Text(), nullable=True),
        sa.Column('next_action_notes', sa.Text(), nullable=True),
        sa.Column('last_worked_on', sa.DateTime(timezone=True), nullable=True),
        sa.Column('display_order', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['app_user.id'], ondelete='CASCADE'),
        sa.CheckConstraint(
            "status IN ('on-track', 'needs-attention', 'blocked', 'completed', 'archived')",
            name='ck_project_status',
        ),
        sa.CheckConstraint('hours_per_week IS NULL OR hours_per_week >= 0', name='ck_project_hours_per_week'),
    )
    op.create_index('ix_project_user_id', 'project', ['user_id'])
    op.create_index('ix_project_user_order', 'project', ['user_id', 'display_order'])

    # Create task table
    op.create_table(
        'task',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('completed', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('priority', sa.Text(), server_default='medium', nullable=False),
        sa.Column('estimated_minutes', sa.Integer(), nullable=True),
        sa.Column('actual_minutes', sa.Integer(), nullable=True),
        sa.Column('display_order', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['app_user.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['project_id'], ['project.id'], ondelete='CASCADE'),
        sa.CheckConstraint("priority IN ('high', 'medium', 'low')", name='ck_task_priority'),
        sa.CheckConstraint(
            '(completed AND completed_at IS NOT NULL) OR (NOT completed AND completed_at IS NULL)',
            name='ck_task_completed_at',
        ),
    )
    op.create_index('ix_task_user_id', 'task', ['user_id'])
    op.create_index('ix_task_project_id', 'task', ['project_id'])
    op.create_index('ix_task_user_due', 'task', ['user_id', 'due_date'])

    # Create calendar_event table
    op.create_table(
        'calendar_event',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('location', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('all_day', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('color', sa.Text(), nullable=True),
        sa.Column('source', sa.Text(), server_default='local', nullable=False),
        sa.Column('external_id', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['app_user.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'external_id', name='uq_calendar_event_user_external_id'),
        sa.CheckConstraint("source IN ('local', 'google')", name='ck_calendar_event_source'),
    )
    op.create_index('ix_calendar_event_user_id', 'calendar_event', ['user_id'])
    op.create_index('ix_calendar_event_user_start', 'calendar_event', ['user_id', 'start_time'])

    # Create time_entry table
    op.create_table(
        'time_entry',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('task_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['app_user.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['project_id'], ['project.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['task_id'], ['task.id'], ondelete='SET NULL'),
        sa.CheckConstraint('duration_minutes IS NULL OR duration_minutes >= 0', name='ck_time_entry_duration'),
    )
    op.create_index('ix_time_entry_user_id', 'time_entry', ['user_id'])
    op.create_index('ix_time_entry_project_id', 'time_entry', ['project_id'])
    op.create_index('ix_time_entry_user_start', 'time_entry', ['user_id', 'start_time'])
    # At most one running entry per user
    op.create_index(
        'uq_time_entry_running_per_user',
        'time_entry',
        ['user_id'],
        unique=True,
        postgresql_where=sa.text('end_time IS NULL'),
    )

    # Create cycle table
    op.create_table(
        'cycle',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('period', sa.Text(), server_default='week', nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('goals', sa.Text(), nullable=True),
        sa.Column('priority_project_ids', postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['app_user.id'], ondelete='CASCADE'),
        sa.CheckConstraint("period IN ('day', 'week', 'custom')", name='ck_cycle_period'),
        sa.CheckConstraint('end_date >= start_date', name='ck_cycle_dates'),
    )
    op.create_index('ix_cycle_user_id', 'cycle', ['user_id'])
    op.create_index('ix_cycle_user_dates', 'cycle', ['user_id', 'start_date', 'end_date'])


def downgrade() -> None:
    op.drop_index('ix_cycle_user_dates', table_name='cycle')
    op.drop_index('ix_cycle_user_id', table_name='cycle')
    op.drop_table('cycle')
    op.drop_index('uq_time_entry_running_per_user', table_name='time_entry')
    op.drop_index('ix_time_entry_user_start', table_name='time_entry')
    op.drop_index('ix_time_entry_project_id', table_name='time_entry')
    op.drop_index('ix_time_entry_user_id', table_name='time_entry')
    op.drop_table('time_entry')
    op.drop_index('ix_calendar_event_user_start', table_name='calendar_event')
    op.drop_index('ix_calendar_event_user_id', table_name='calendar_event')
    op.drop_table('calendar_event')
    op.drop_index('ix_task_user_due', table_name='task')
    op.drop_index('ix_task_project_id', table_name='task')
    op.drop_index('ix_task_user_id', table_name='task')
    op.drop_table('task')
    op.drop_index('ix_project_user_order', table_name='project')
    op.drop_index('ix_project_user_id', table_name='project')
    op.drop_table('project')
    op.drop_table('app_user')
