"""
Availability service for slot generation and schedule views.

Turns a provider's weekly rules, time-off periods and active appointments into
open slots. Read-only: nothing here mutates the repository.
"""

import logging
from collections import defaultdict
from datetime import datetime, date as date_type, timedelta
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from core.config import BUFFER_MINUTES, NEXT_SLOT_MAX_DAYS_AHEAD, SCHEDULE_GRID_MINUTES
from models import Appointment, TimeOffPeriod, WeeklyScheduleRule
from services.schedule_repository import ScheduleRepository
from services.scheduling_validators import (
    validate_date_range,
    validate_days_ahead,
    validate_duration,
    validate_non_negative_minutes,
    validate_start,
)
from shared_types.scheduling import (
    SLOT_STATUS_AVAILABLE,
    SLOT_STATUS_BREAK,
    SLOT_STATUS_OCCUPIED,
    AvailabilitySlot,
    DayOfWeek,
    ScheduleTimeSlot,
    WorkingDay,
)
from utils.datetime_utils import day_bounds, iter_dates, to_provider_wall_clock
from utils.intervals import overlaps

logger = logging.getLogger(__name__)


class ScheduleData:
    """Rules, time-off and appointments for one provider over a date range, fetched once."""

    def __init__(
        self,
        rules: Dict[DayOfWeek, WeeklyScheduleRule],
        time_off_periods: List[TimeOffPeriod],
        appointments: List[Appointment],
        buffer_minutes: int = 0,
    ):
        self.rules = rules
        self.time_off_periods = time_off_periods
        self.appointments = appointments
        self.buffer = timedelta(minutes=buffer_minutes)
        self._appointments_by_date: Dict[date_type, List[Appointment]] = defaultdict(list)

        # Bucket each appointment under every date its buffered interval touches
        for appointment in appointments:
            first = (appointment.scheduled_at - self.buffer).date()
            last = (appointment.ends_at + self.buffer - timedelta(microseconds=1)).date()
            for day in iter_dates(first, last):
                self._appointments_by_date[day].append(appointment)

    def working_day(self, target_date: date_type) -> Optional[WorkingDay]:
        return AvailabilityService.resolve_working_day(
            self.rules.get(DayOfWeek.of(target_date)), target_date, self.time_off_periods
        )

    def appointments_on(self, target_date: date_type) -> List[Appointment]:
        return self._appointments_by_date.get(target_date, [])


class AvailabilityService:
    """
    Service class for availability operations.

    All methods take a ScheduleRepository so the same logic runs against any
    session-backed store.
    """

    @staticmethod
    def resolve_working_day(
        rule: Optional[WeeklyScheduleRule],
        target_date: date_type,
        time_off_periods: Sequence[TimeOffPeriod]
    ) -> Optional[WorkingDay]:
        """
        Resolve the working window for one date.

        Returns None when there is no rule for the weekday, the rule is marked
        unavailable, or any time-off period covers the date.
        """
        if rule is None or not rule.is_available:
            return None
        if any(period.covers(target_date) for period in time_off_periods):
            return None

        window = rule.break_window
        return WorkingDay(
            date=target_date,
            start=rule.start.on(target_date),
            end=rule.end.on(target_date),
            break_start=window[0].on(target_date) if window else None,
            break_end=window[1].on(target_date) if window else None,
        )

    @staticmethod
    def _generate_candidate_slots(
        working_day: WorkingDay,
        duration_minutes: int
    ) -> List[Tuple[datetime, datetime]]:
        """
        Generate candidate slots inside a working window.

        Slots start at the window start and advance by the slot duration, so
        candidates never overlap each other. A slot extending past the window
        end is never produced, and slots overlapping the break are skipped.

        Returns:
            List of (start, end) tuples in chronological order
        """
        duration = timedelta(minutes=duration_minutes)
        candidate_slots: List[Tuple[datetime, datetime]] = []

        current = working_day.start
        while current + duration <= working_day.end:
            slot_end = current + duration
            in_break = (
                working_day.has_break
                and overlaps(current, slot_end, working_day.break_start, working_day.break_end)
            )
            if not in_break:
                candidate_slots.append((current, slot_end))
            current = slot_end

        return candidate_slots

    @staticmethod
    def has_slot_conflicts(
        appointments: Sequence[Appointment],
        slot_start: datetime,
        slot_end: datetime,
        buffer: timedelta = timedelta(0)
    ) -> bool:
        """
        Check if a slot overlaps any appointment widened by the buffer.

        Pure function - no database queries. Uses pre-fetched data.
        """
        for appointment in appointments:
            if overlaps(slot_start, slot_end, appointment.scheduled_at - buffer, appointment.ends_at + buffer):
                return True
        return False

    @staticmethod
    def fetch_schedule_data(
        repository: ScheduleRepository,
        provider_id: int,
        start_date: date_type,
        end_date: date_type,
        buffer_minutes: int = 0
    ) -> ScheduleData:
        """
        Fetch everything slot generation needs for a date range in three queries.

        Raises:
            NotFound: If the provider does not exist
            RepositoryUnavailable: If reads keep failing after retries
        """
        window_start, window_end = day_bounds(start_date, end_date)

        def load() -> ScheduleData:
            repository.get_provider(provider_id)
            return ScheduleData(
                rules=repository.get_weekly_rules(provider_id),
                time_off_periods=repository.get_time_off_periods(provider_id, start_date, end_date),
                appointments=repository.get_active_appointments(
                    provider_id, window_start, window_end, buffer_minutes=buffer_minutes
                ),
                buffer_minutes=buffer_minutes,
            )

        return repository.run_read(f"schedule data for provider {provider_id}", load)

    @staticmethod
    def iter_available_slots(
        repository: ScheduleRepository,
        provider_id: int,
        range_start: date_type,
        range_end: date_type,
        slot_duration_minutes: int,
        buffer_minutes: int = BUFFER_MINUTES
    ) -> Iterator[AvailabilitySlot]:
        """
        Lazily yield open slots over [range_start, range_end] in chronological order.

        Validation and the repository fetch happen on the first next() call.
        """
        validate_duration(slot_duration_minutes, "slot_duration_minutes")
        validate_non_negative_minutes(buffer_minutes, "buffer_minutes")
        start_date, end_date = validate_date_range(range_start, range_end)

        data = AvailabilityService.fetch_schedule_data(
            repository, provider_id, start_date, end_date, buffer_minutes
        )

        for current_date in iter_dates(start_date, end_date):
            working_day = data.working_day(current_date)
            if working_day is None:
                continue

            day_appointments = data.appointments_on(current_date)
            candidate_slots = AvailabilityService._generate_candidate_slots(
                working_day, slot_duration_minutes
            )
            for slot_start, slot_end in candidate_slots:
                if not AvailabilityService.has_slot_conflicts(
                    day_appointments, slot_start, slot_end, data.buffer
                ):
                    yield AvailabilitySlot(
                        start=slot_start,
                        end=slot_end,
                        duration_minutes=slot_duration_minutes,
                    )

    @staticmethod
    def generate_availability(
        repository: ScheduleRepository,
        provider_id: int,
        range_start: date_type,
        range_end: date_type,
        slot_duration_minutes: int,
        buffer_minutes: int = BUFFER_MINUTES
    ) -> List[AvailabilitySlot]:
        """
        Generate open slots of the requested duration for a provider.

        Args:
            repository: Schedule repository
            provider_id: Provider ID
            range_start: First date (inclusive)
            range_end: Last date (inclusive)
            slot_duration_minutes: Length of each slot
            buffer_minutes: Minutes kept free around each active appointment

        Returns:
            Slots in chronological order

        Raises:
            ValidationFailure: If the duration or range is malformed
            NotFound: If the provider does not exist
            RepositoryUnavailable: If the repository keeps failing
        """
        slots = list(AvailabilityService.iter_available_slots(
            repository, provider_id, range_start, range_end,
            slot_duration_minutes, buffer_minutes
        ))
        logger.debug(
            f"Generated {len(slots)} slots for provider {provider_id} "
            f"from {range_start} to {range_end} ({slot_duration_minutes} min)"
        )
        return slots

    @staticmethod
    def next_available_slot(
        repository: ScheduleRepository,
        provider_id: int,
        slot_duration_minutes: int,
        search_from: datetime,
        max_days_ahead: int = NEXT_SLOT_MAX_DAYS_AHEAD,
        buffer_minutes: int = BUFFER_MINUTES
    ) -> Optional[AvailabilitySlot]:
        """
        Find the earliest open slot starting at or after search_from.

        Searches search_from's date through max_days_ahead days later. Returns
        None when nothing is open in that horizon.
        """
        validate_duration(slot_duration_minutes, "slot_duration_minutes")
        validate_start(search_from, "search_from")
        validate_days_ahead(max_days_ahead)
        validate_non_negative_minutes(buffer_minutes, "buffer_minutes")

        if search_from.tzinfo is not None:
            provider = repository.run_read(
                f"provider {provider_id}", lambda: repository.get_provider(provider_id)
            )
            search_from = to_provider_wall_clock(search_from, provider.timezone)

        start_date = search_from.date()
        end_date = start_date + timedelta(days=max_days_ahead)

        for slot in AvailabilityService.iter_available_slots(
            repository, provider_id, start_date, end_date,
            slot_duration_minutes, buffer_minutes=buffer_minutes
        ):
            if slot.start >= search_from:
                return slot

        logger.info(
            f"No open {slot_duration_minutes}-minute slot for provider {provider_id} "
            f"within {max_days_ahead} days of {search_from.isoformat()}"
        )
        return None

    @staticmethod
    def get_provider_schedule(
        repository: ScheduleRepository,
        provider_id: int,
        range_start: date_type,
        range_end: date_type,
        grid_minutes: int = SCHEDULE_GRID_MINUTES
    ) -> List[ScheduleTimeSlot]:
        """
        Build the day-schedule grid for every working date in the range.

        Each cell covers grid_minutes of the working window (the last cell of a
        day is cut at the window end) and is marked available, break, or
        occupied by the first active appointment covering the cell start.
        """
        validate_duration(grid_minutes, "grid_minutes")
        start_date, end_date = validate_date_range(range_start, range_end)

        data = AvailabilityService.fetch_schedule_data(repository, provider_id, start_date, end_date)
        step = timedelta(minutes=grid_minutes)
        cells: List[ScheduleTimeSlot] = []

        for current_date in iter_dates(start_date, end_date):
            working_day = data.working_day(current_date)
            if working_day is None:
                continue

            day_appointments = data.appointments_on(current_date)
            current = working_day.start
            while current < working_day.end:
                cell_end = min(current + step, working_day.end)
                cells.append(AvailabilityService._grid_cell(working_day, day_appointments, current, cell_end))
                current = cell_end

        return cells

    @staticmethod
    def _grid_cell(
        working_day: WorkingDay,
        appointments: Sequence[Appointment],
        cell_start: datetime,
        cell_end: datetime
    ) -> ScheduleTimeSlot:
        if (
            working_day.has_break
            and working_day.break_start <= cell_start < working_day.break_end
        ):
            return ScheduleTimeSlot(start=cell_start, end=cell_end, status=SLOT_STATUS_BREAK)

        for appointment in appointments:
            if appointment.scheduled_at <= cell_start < appointment.ends_at:
                return ScheduleTimeSlot(
                    start=cell_start,
                    end=cell_end,
                    status=SLOT_STATUS_OCCUPIED,
                    appointment_id=appointment.id,
                    label=appointment.display_label,
                )

        return ScheduleTimeSlot(start=cell_start, end=cell_end, status=SLOT_STATUS_AVAILABLE)
