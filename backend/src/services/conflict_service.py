"""
Conflict detection for proposed appointment intervals.

Every constraint source is checked independently and every applicable reason
is reported. A busy slot is data, returned as a ConflictReport, not an error.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from core.config import BUFFER_MINUTES
from models import Appointment, Provider, TimeOffPeriod, WeeklyScheduleRule
from services.errors import NotFound
from services.schedule_repository import ScheduleRepository
from services.scheduling_validators import (
    validate_duration,
    validate_minute_precision,
    validate_non_negative_minutes,
    validate_start,
)
from shared_types.scheduling import Conflict, ConflictKind, ConflictReport, DayOfWeek
from utils.datetime_utils import format_time_12h, to_provider_wall_clock
from utils.intervals import contains, overlaps

logger = logging.getLogger(__name__)


class ConflictService:
    """
    Service class for conflict detection.

    detect_conflicts is the standalone preview; evaluate_conflicts is the
    same check run inside the booking transaction.
    """

    @staticmethod
    def detect_conflicts(
        repository: ScheduleRepository,
        provider_id: int,
        proposed_start: datetime,
        duration_minutes: int,
        exclude_appointment_id: Optional[int] = None,
        buffer_minutes: int = BUFFER_MINUTES
    ) -> ConflictReport:
        """
        Report every reason the proposed interval cannot be booked.

        Args:
            repository: Schedule repository
            provider_id: Provider ID
            proposed_start: Start of the proposed appointment (naive means provider-local)
            duration_minutes: Length of the proposed appointment
            exclude_appointment_id: Appointment to ignore in the overlap check (reschedules)
            buffer_minutes: Minutes kept free around each active appointment

        Returns:
            ConflictReport; empty means bookable

        Raises:
            ValidationFailure: If the input is malformed
            NotFound: If the provider or the excluded appointment does not exist
            RepositoryUnavailable: If the repository keeps failing
        """
        validate_start(proposed_start)
        validate_duration(duration_minutes)
        validate_non_negative_minutes(buffer_minutes, "buffer_minutes")

        def load() -> ConflictReport:
            provider = repository.get_provider(provider_id)
            start = validate_minute_precision(to_provider_wall_clock(proposed_start, provider.timezone))

            if exclude_appointment_id is not None:
                ConflictService.get_provider_appointment(repository, provider.id, exclude_appointment_id)

            return ConflictService.evaluate_conflicts(
                repository, provider, start, duration_minutes, exclude_appointment_id, buffer_minutes
            )

        report = repository.run_read(f"conflict check for provider {provider_id}", load)
        if report.has_conflicts:
            logger.debug(
                f"Conflicts for provider {provider_id} at {proposed_start.isoformat()}: "
                f"{[kind.value for kind in report.kinds]}"
            )
        return report

    @staticmethod
    def get_provider_appointment(
        repository: ScheduleRepository,
        provider_id: int,
        appointment_id: int,
        for_update: bool = False
    ) -> Appointment:
        """
        Get an appointment that must belong to the provider.

        Raises:
            NotFound: If the appointment does not exist or belongs to another provider
        """
        appointment = repository.get_appointment(appointment_id, for_update=for_update)
        if appointment is None or appointment.provider_id != provider_id:
            raise NotFound(f"Appointment {appointment_id} not found for provider {provider_id}")
        return appointment

    @staticmethod
    def evaluate_conflicts(
        repository: ScheduleRepository,
        provider: Provider,
        start: datetime,
        duration_minutes: int,
        exclude_appointment_id: Optional[int] = None,
        buffer_minutes: int = 0
    ) -> ConflictReport:
        """
        Fetch the constraint sources for the interval and build the report.

        Expects validated, provider-local input. Runs inside the caller's
        transaction and does not retry.
        """
        end = start + timedelta(minutes=duration_minutes)
        target_date = start.date()

        rule = repository.get_weekly_rule(provider.id, DayOfWeek.of(target_date))
        time_off_periods = repository.get_time_off_periods(provider.id, target_date, target_date)
        appointments = repository.get_active_appointments(
            provider.id, start, end,
            exclude_appointment_id=exclude_appointment_id,
            buffer_minutes=buffer_minutes,
        )

        return ConflictService.build_conflict_report(
            start, end, rule, time_off_periods, appointments,
            exclude_appointment_id=exclude_appointment_id,
            buffer_minutes=buffer_minutes,
        )

    @staticmethod
    def build_conflict_report(
        start: datetime,
        end: datetime,
        rule: Optional[WeeklyScheduleRule],
        time_off_periods: Sequence[TimeOffPeriod],
        appointments: Sequence[Appointment],
        exclude_appointment_id: Optional[int] = None,
        buffer_minutes: int = 0
    ) -> ConflictReport:
        """
        Build the ordered conflict report from pre-fetched data.

        Pure function - no database queries. Order: unavailable (rule, then
        time-off periods by start date), outside hours, break time, then one
        overlap per appointment by start time.
        """
        target_date = start.date()
        conflicts: List[Conflict] = []

        if rule is None or not rule.is_available:
            conflicts.append(Conflict(
                kind=ConflictKind.UNAVAILABLE,
                message=f"Provider is not available on {DayOfWeek.of(target_date).label}s",
            ))

        for period in sorted(time_off_periods, key=lambda p: (p.start_date, p.id or 0)):
            if period.covers(target_date):
                conflicts.append(Conflict(
                    kind=ConflictKind.UNAVAILABLE,
                    message=(
                        f"Provider is unavailable from {period.start_date.isoformat()} to "
                        f"{period.end_date.isoformat()}: {period.reason or 'time off'}"
                    ),
                ))

        if rule is not None and rule.is_available:
            window_start = rule.start.on(target_date)
            window_end = rule.end.on(target_date)
            if not contains(window_start, window_end, start, end):
                conflicts.append(Conflict(
                    kind=ConflictKind.OUTSIDE_HOURS,
                    message=f"Appointment must be between {rule.start} and {rule.end}",
                ))

            window = rule.break_window
            if window is not None:
                break_start, break_end = window[0].on(target_date), window[1].on(target_date)
                if overlaps(start, end, break_start, break_end):
                    conflicts.append(Conflict(
                        kind=ConflictKind.BREAK_TIME,
                        message=f"Appointment conflicts with break time ({window[0]} - {window[1]})",
                    ))

        buffer = timedelta(minutes=buffer_minutes)
        colliding = [
            appointment for appointment in appointments
            if appointment.id != exclude_appointment_id
            and appointment.is_active
            and overlaps(start, end, appointment.scheduled_at - buffer, appointment.ends_at + buffer)
        ]
        for appointment in sorted(colliding, key=lambda a: (a.scheduled_at, a.id)):
            conflicts.append(Conflict(
                kind=ConflictKind.OVERLAP,
                message=(
                    f"Occupied by {appointment.display_label} from "
                    f"{format_time_12h(appointment.scheduled_at)} to {format_time_12h(appointment.ends_at)}"
                ),
                appointment_id=appointment.id,
                appointment_start=appointment.scheduled_at,
                appointment_end=appointment.ends_at,
                appointment_label=appointment.display_label,
            ))

        return ConflictReport(conflicts=conflicts)
