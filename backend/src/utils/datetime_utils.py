"""
Datetime utilities for consistent timezone handling across the application.

Scheduling compares naive wall-clock datetimes expressed in each provider's
canonical timezone. Timezone-aware inputs are converted to that zone once,
at the boundary, and then compared naively.
"""

import logging
from datetime import datetime, timezone, timedelta, date
from typing import Iterator, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Get the current timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def get_zone(tz_name: Optional[str]) -> ZoneInfo:
    """
    Resolve an IANA timezone name, falling back to UTC for unknown names.

    Args:
        tz_name: Timezone name such as "Asia/Taipei"

    Returns:
        ZoneInfo object
    """
    try:
        return ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{tz_name}', using UTC")
        return ZoneInfo("UTC")


def to_provider_wall_clock(dt: datetime, tz_name: Optional[str]) -> datetime:
    """
    Express a datetime as naive wall-clock time in the provider's timezone.

    Naive inputs are assumed to already be in the provider's timezone and are
    returned unchanged.

    Args:
        dt: Datetime to normalize (naive or timezone-aware)
        tz_name: Provider's IANA timezone name

    Returns:
        Naive datetime in the provider's timezone
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(get_zone(tz_name)).replace(tzinfo=None)


def iter_dates(start_date: date, end_date: date) -> Iterator[date]:
    """Yield each calendar date from start_date through end_date (inclusive)."""
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def start_of_day(target_date: date) -> datetime:
    return datetime.combine(target_date, datetime.min.time())


def day_bounds(start_date: date, end_date: date) -> Tuple[datetime, datetime]:
    """Half-open datetime window covering start_date through end_date (inclusive)."""
    return start_of_day(start_date), start_of_day(end_date + timedelta(days=1))


def format_time_12h(dt: datetime) -> str:
    """
    Format a datetime's time of day for user-facing messages.

    Formats as "2:00 PM" (12-hour, no leading zero on the hour).
    """
    hour = dt.hour
    period = 'AM' if hour < 12 else 'PM'
    hour_12 = hour % 12 or 12
    return f"{hour_12}:{dt.minute:02d} {period}"

