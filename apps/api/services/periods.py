"""
Calendar windows in the user's local timezone.

Every window is returned as a half-open [start, end) pair of aware UTC
datetimes so it can be compared directly against stored timestamps.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
import logging
import zoneinfo

logger = logging.getLogger(__name__)

Window = Tuple[datetime, datetime]


def user_tz(tz_name: Optional[str]):
    """ZoneInfo for an IANA name; UTC when missing or unknown."""
    if not tz_name:
        return timezone.utc
    try:
        return zoneinfo.ZoneInfo(tz_name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {tz_name!r}, falling back to UTC")
        return timezone.utc


def local_today(now: datetime, tz_name: Optional[str] = None) -> date:
    return now.astimezone(user_tz(tz_name)).date()


def day_window(day: date, tz_name: Optional[str] = None) -> Window:
    tz = user_tz(tz_name)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def week_window(day: date, tz_name: Optional[str] = None) -> Window:
    """Monday-to-Monday window of the ISO week containing `day`."""
    monday = day - timedelta(days=day.weekday())
    start, _ = day_window(monday, tz_name)
    end, _ = day_window(monday + timedelta(days=7), tz_name)
    return start, end


def elapsed_fraction(window: Window, now: datetime) -> float:
    """Share of the window already behind `now`, clamped to [0, 1]."""
    start, end = window
    total = (end - start).total_seconds()
    if total <= 0:
        return 1.0
    done = (now - start).total_seconds()
    return max(0.0, min(1.0, done / total))


def is_known_tz(tz_name: str) -> bool:
    try:
        zoneinfo.ZoneInfo(tz_name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        return False
    return True
