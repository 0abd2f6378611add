"""
Workload service for provider utilization reporting.

Read-only and tolerant of slightly stale data: it is a reporting view, not a
booking gate.
"""

import logging
from datetime import date as date_type
from typing import List, Tuple

from models import Appointment
from services.availability_service import ScheduleData
from services.schedule_repository import ScheduleRepository
from services.scheduling_validators import validate_date_range
from shared_types.scheduling import UtilizationSummary
from utils.datetime_utils import day_bounds, iter_dates

logger = logging.getLogger(__name__)


class WorkloadService:
    """Service class for utilization calculations."""

    @staticmethod
    def compute_utilization(
        repository: ScheduleRepository,
        provider_id: int,
        range_start: date_type,
        range_end: date_type
    ) -> UtilizationSummary:
        """
        Compare working minutes with booked minutes over [range_start, range_end].

        Working minutes are the rule's window minus its break for every date
        with an available rule and no time-off. Booked minutes sum the
        durations of active appointments starting within the range.
        utilization_percent is 0 when there are no working minutes.

        Raises:
            ValidationFailure: If the range is malformed
            NotFound: If the provider does not exist
            RepositoryUnavailable: If the repository keeps failing
        """
        start_date, end_date = validate_date_range(range_start, range_end)
        window_start, window_end = day_bounds(start_date, end_date)

        def load() -> Tuple[ScheduleData, List[Appointment]]:
            repository.get_provider(provider_id)
            data = ScheduleData(
                rules=repository.get_weekly_rules(provider_id),
                time_off_periods=repository.get_time_off_periods(provider_id, start_date, end_date),
                appointments=[],
            )
            appointments = repository.get_active_appointments_starting_between(
                provider_id, window_start, window_end
            )
            return data, appointments

        data, appointments = repository.run_read(f"utilization for provider {provider_id}", load)

        working_minutes = 0
        for current_date in iter_dates(start_date, end_date):
            working_day = data.working_day(current_date)
            if working_day is not None:
                working_minutes += working_day.working_minutes

        booked_minutes = sum(appointment.duration_minutes for appointment in appointments)
        utilization_percent = (booked_minutes / working_minutes * 100) if working_minutes else 0.0

        logger.debug(
            f"Utilization for provider {provider_id} {start_date}..{end_date}: "
            f"{booked_minutes}/{working_minutes} min"
        )

        return UtilizationSummary(
            working_minutes=working_minutes,
            booked_minutes=booked_minutes,
            utilization_percent=round(utilization_percent, 2),
            appointment_count=len(appointments),
        )
