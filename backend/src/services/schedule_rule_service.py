"""
Administration of weekly schedule rules and time-off periods.
"""

import logging
from datetime import date as date_type, time
from typing import Dict, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.exc import IntegrityError

from core.constants import DEFAULT_PROVIDER_TIMEZONE, MAX_REASON_LENGTH, MAX_STRING_LENGTH
from models import Provider, TimeOffPeriod, WeeklyScheduleRule
from services.errors import ValidationFailure
from services.schedule_repository import ScheduleRepository
from services.scheduling_validators import (
    parse_day_of_week,
    parse_wall_clock,
    validate_working_window,
)
from shared_types.scheduling import DayOfWeek, WallClockTime

logger = logging.getLogger(__name__)

TimeInput = Union[str, time, WallClockTime]


class ScheduleRuleService:
    """Service class for weekly rule and time-off management."""

    @staticmethod
    def create_provider(
        repository: ScheduleRepository,
        name: str,
        timezone: str = DEFAULT_PROVIDER_TIMEZONE
    ) -> Provider:
        """
        Register a provider whose times are all expressed in `timezone`.

        Raises:
            ValidationFailure: If the name is empty or the timezone is not a known IANA name
        """
        name = (name or "").strip()
        if not name or len(name) > MAX_STRING_LENGTH:
            raise ValidationFailure(f"name must be 1-{MAX_STRING_LENGTH} characters")
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValidationFailure(f"Unknown timezone: {timezone!r}")

        try:
            provider = repository.create_provider(name, timezone)
            repository.commit()
        except Exception:
            repository.rollback()
            raise

        logger.info(f"Created provider {provider.id} ({timezone})")
        return provider

    @staticmethod
    def upsert_weekly_rule(
        repository: ScheduleRepository,
        provider_id: int,
        day_of_week: Union[int, str, DayOfWeek],
        start_time: TimeInput,
        end_time: TimeInput,
        is_available: bool = True,
        break_start: Optional[TimeInput] = None,
        break_end: Optional[TimeInput] = None
    ) -> WeeklyScheduleRule:
        """
        Create or replace the provider's rule for one day of week.

        Args:
            repository: Schedule repository
            provider_id: Provider ID
            day_of_week: 0-6 (Monday=0) or a day name
            start_time: Start of the working window ("HH:MM")
            end_time: End of the working window ("HH:MM")
            is_available: False marks the day as not worked
            break_start: Optional break start ("HH:MM")
            break_end: Optional break end ("HH:MM")

        Returns:
            The stored rule

        Raises:
            ValidationFailure: If a time is malformed or the break is not inside the window
            NotFound: If the provider does not exist
        """
        day = parse_day_of_week(day_of_week)
        start = parse_wall_clock(start_time, "start_time")
        end = parse_wall_clock(end_time, "end_time")
        parsed_break_start = parse_wall_clock(break_start, "break_start") if break_start is not None else None
        parsed_break_end = parse_wall_clock(break_end, "break_end") if break_end is not None else None
        validate_working_window(start, end, parsed_break_start, parsed_break_end)

        # Second attempt runs as an update if another request created the rule first
        for attempt in range(2):
            try:
                repository.get_provider(provider_id)
                rule = repository.upsert_weekly_rule(
                    provider_id, day, start, end, is_available, parsed_break_start, parsed_break_end
                )
                repository.commit()
                break
            except IntegrityError:
                repository.rollback()
                if attempt:
                    raise
                logger.info(f"{day.label} rule for provider {provider_id} created concurrently, retrying as update")
            except Exception:
                repository.rollback()
                raise

        logger.info(
            f"Set {day.label} schedule for provider {provider_id}: {start}-{end}"
            + (f", break {parsed_break_start}-{parsed_break_end}" if parsed_break_start else "")
            + ("" if is_available else " (unavailable)")
        )
        return rule

    @staticmethod
    def add_time_off(
        repository: ScheduleRepository,
        provider_id: int,
        start_date: date_type,
        end_date: date_type,
        reason: Optional[str] = None
    ) -> TimeOffPeriod:
        """
        Block every date from start_date through end_date (inclusive).

        Raises:
            ValidationFailure: If end_date is before start_date or the reason is too long
            NotFound: If the provider does not exist
        """
        if end_date < start_date:
            raise ValidationFailure(f"end_date ({end_date}) is before start_date ({start_date})")
        if reason is not None and len(reason) > MAX_REASON_LENGTH:
            raise ValidationFailure(f"reason must be at most {MAX_REASON_LENGTH} characters")

        try:
            repository.get_provider(provider_id)
            period = repository.add_time_off(provider_id, start_date, end_date, reason)
            repository.commit()
        except Exception:
            repository.rollback()
            raise

        logger.info(f"Added time off for provider {provider_id}: {start_date} to {end_date}")
        return period

    @staticmethod
    def get_weekly_schedule(
        repository: ScheduleRepository,
        provider_id: int
    ) -> Dict[DayOfWeek, WeeklyScheduleRule]:
        """Get the provider's rules keyed by day of week; days without a rule are absent."""
        def load() -> Dict[DayOfWeek, WeeklyScheduleRule]:
            repository.get_provider(provider_id)
            return repository.get_weekly_rules(provider_id)

        return repository.run_read(f"weekly schedule for provider {provider_id}", load)
