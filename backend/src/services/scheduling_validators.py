"""
Input validation for scheduling operations.

Every check here runs before the repository is touched and raises
ValidationFailure on malformed input.
"""

from datetime import date as date_type, datetime, time
from typing import Optional, Tuple, Union

from core.config import MAX_RANGE_DAYS
from core.constants import MAX_APPOINTMENT_DURATION_MINUTES
from services.errors import ValidationFailure
from shared_types.scheduling import DayOfWeek, WallClockTime


def validate_duration(minutes: int, field_name: str = "duration_minutes") -> int:
    """
    Validate an appointment or slot duration.

    Raises:
        ValidationFailure: If not an integer in 1..MAX_APPOINTMENT_DURATION_MINUTES
    """
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise ValidationFailure(f"{field_name} must be an integer number of minutes")
    if minutes <= 0:
        raise ValidationFailure(f"{field_name} must be positive, got {minutes}")
    if minutes > MAX_APPOINTMENT_DURATION_MINUTES:
        raise ValidationFailure(
            f"{field_name} must be at most {MAX_APPOINTMENT_DURATION_MINUTES} minutes, got {minutes}"
        )
    return minutes


def validate_non_negative_minutes(minutes: int, field_name: str) -> int:
    if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes < 0:
        raise ValidationFailure(f"{field_name} must be a non-negative integer, got {minutes!r}")
    return minutes


def validate_date_range(
    range_start: Union[date_type, datetime],
    range_end: Union[date_type, datetime],
    max_days: int = MAX_RANGE_DAYS
) -> Tuple[date_type, date_type]:
    """
    Validate an inclusive calendar date range.

    Datetimes are reduced to their date.

    Returns:
        (start_date, end_date)

    Raises:
        ValidationFailure: If end is before start or the range spans more than max_days dates
    """
    start_date = _as_date(range_start, "range_start")
    end_date = _as_date(range_end, "range_end")

    if end_date < start_date:
        raise ValidationFailure(f"range_end ({end_date}) is before range_start ({start_date})")

    span_days = (end_date - start_date).days + 1
    if span_days > max_days:
        raise ValidationFailure(f"Date range spans {span_days} days; at most {max_days} allowed")

    return start_date, end_date


def validate_days_ahead(days: int) -> int:
    if isinstance(days, bool) or not isinstance(days, int) or days < 0:
        raise ValidationFailure(f"max_days_ahead must be a non-negative integer, got {days!r}")
    if days + 1 > MAX_RANGE_DAYS:
        raise ValidationFailure(f"max_days_ahead must be less than {MAX_RANGE_DAYS}, got {days}")
    return days


def validate_start(value: datetime, field_name: str = "proposed_start") -> datetime:
    if not isinstance(value, datetime):
        raise ValidationFailure(f"{field_name} must be a datetime")
    return value


def validate_minute_precision(value: datetime, field_name: str = "proposed_start") -> datetime:
    """Appointments start on whole minutes."""
    if value.second or value.microsecond:
        raise ValidationFailure(f"{field_name} must have minute precision, got {value.isoformat()}")
    return value


def parse_wall_clock(value: Union[str, time, WallClockTime], field_name: str) -> WallClockTime:
    """
    Parse "HH:MM", a time, or a WallClockTime.

    Raises:
        ValidationFailure: If the value is not a valid minute-precision time of day
    """
    if isinstance(value, WallClockTime):
        return value
    try:
        if isinstance(value, time):
            return WallClockTime.from_time(value)
        return WallClockTime.parse(value)
    except ValueError as e:
        raise ValidationFailure(f"Invalid {field_name}: {e}") from e


def parse_day_of_week(value: Union[int, str, DayOfWeek]) -> DayOfWeek:
    """Accepts 0-6 (Monday=0) or a day name such as "monday"."""
    if isinstance(value, DayOfWeek):
        return value
    if isinstance(value, str) and not value.strip().isdigit():
        try:
            return DayOfWeek[value.strip().upper()]
        except KeyError:
            raise ValidationFailure(f"Invalid day of week: {value!r}")
    try:
        return DayOfWeek(int(value))
    except (TypeError, ValueError):
        raise ValidationFailure(f"Invalid day of week: {value!r} (expected 0-6, Monday=0)")


def validate_working_window(
    start: WallClockTime,
    end: WallClockTime,
    break_start: Optional[WallClockTime] = None,
    break_end: Optional[WallClockTime] = None
) -> None:
    """
    Check the weekly rule invariants.

    Raises:
        ValidationFailure: If start >= end, only one break bound is given, or
            the break is empty or not strictly inside the working window
    """
    if start >= end:
        raise ValidationFailure(f"Start time {start} must be before end time {end}")

    if (break_start is None) != (break_end is None):
        raise ValidationFailure("Break start and break end must be given together")

    if break_start is not None and break_end is not None:
        if break_start >= break_end:
            raise ValidationFailure(f"Break start {break_start} must be before break end {break_end}")
        if break_start <= start or break_end >= end:
            raise ValidationFailure(
                f"Break {break_start}-{break_end} must lie strictly within working hours {start}-{end}"
            )


def _as_date(value: Union[date_type, datetime], field_name: str) -> date_type:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date_type):
        return value
    raise ValidationFailure(f"{field_name} must be a date")

