"""
Celery Beat Schedule Configuration

Defines periodic tasks that run on a schedule.
"""
from datetime import timedelta

from core.config import settings

beat_schedule = {}

if settings.CALENDAR_SYNC_ENABLED:
    # Pull Google Calendar events for every connected user.
    beat_schedule['sync-all-calendars'] = {
        'task': 'tasks.sync_all_calendars',
        'schedule': timedelta(minutes=settings.CALENDAR_SYNC_INTERVAL_MINUTES),
    }
