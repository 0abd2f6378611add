"""
Schedule repository backed by a SQLAlchemy session.

This is the only place scheduling code touches the database. Services receive
a repository instance per request, so the same scheduling logic runs against
PostgreSQL in production and SQLite in tests.
"""

import logging
from datetime import date as date_type, datetime, timedelta
from typing import Callable, Dict, List, Optional, TypeVar

from sqlalchemy import select, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from core.config import READ_MAX_RETRIES, REPOSITORY_TIMEOUT_SECONDS, RETRY_BASE_DELAY_SECONDS
from core.constants import (
    ACTIVE_APPOINTMENT_STATUSES,
    APPOINTMENT_STATUS_CANCELLED,
    APPOINTMENT_STATUS_SCHEDULED,
    MAX_APPOINTMENT_DURATION_MINUTES,
)
from models import Appointment, Provider, TimeOffPeriod, WeeklyScheduleRule
from services.errors import NotFound, RepositoryUnavailable
from shared_types.scheduling import DayOfWeek, WallClockTime
from utils.datetime_utils import utc_now
from utils.intervals import overlaps
from utils.retry import call_with_retries

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ScheduleRepository:
    """
    Transactional access to weekly rules, time-off periods and appointments.

    Mutating methods only flush; callers decide when to commit so that
    detect-then-write runs as a single transaction.
    """

    def __init__(
        self,
        db: Session,
        timeout_seconds: float = REPOSITORY_TIMEOUT_SECONDS,
        read_max_retries: int = READ_MAX_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY_SECONDS,
    ):
        self.db = db
        self.timeout_seconds = timeout_seconds
        self.read_max_retries = read_max_retries
        self.retry_base_delay = retry_base_delay

    # ===== Transaction control =====

    @property
    def dialect_name(self) -> str:
        bind = self.db.get_bind()
        return bind.dialect.name

    def apply_timeout(self, timeout_seconds: Optional[float] = None) -> None:
        """
        Bound lock waits and statements for the current transaction.

        PostgreSQL honours SET LOCAL until commit/rollback. SQLite has no
        per-statement timeout; its busy timeout is fixed at connect time.
        """
        seconds = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        if seconds is None or self.dialect_name != "postgresql":
            return
        milliseconds = max(1, int(seconds * 1000))
        self.db.execute(text(f"SET LOCAL lock_timeout = {milliseconds}"))
        self.db.execute(text(f"SET LOCAL statement_timeout = {milliseconds}"))

    def run_read(self, description: str, operation: Callable[[], T]) -> T:
        """
        Run a read-only unit with bounded retries on transient failures.

        Not for use inside a locked write transaction: a failed attempt rolls
        the session back, which releases row locks.
        """
        def attempt() -> T:
            self.apply_timeout()
            return operation()

        try:
            return call_with_retries(
                attempt,
                max_retries=self.read_max_retries,
                base_delay=self.retry_base_delay,
                description=description,
                on_failure=self.db.rollback,
            )
        except DBAPIError as e:
            logger.error(f"Schedule repository unavailable during {description}: {e}")
            raise RepositoryUnavailable(f"Schedule data is temporarily unavailable ({description})") from e

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # ===== Providers =====

    def get_provider(self, provider_id: int) -> Provider:
        """
        Get an active provider.

        Raises:
            NotFound: If the provider does not exist or is inactive
        """
        provider = self.db.execute(
            select(Provider).where(Provider.id == provider_id, Provider.is_active == True)  # noqa: E712
        ).scalar_one_or_none()
        if provider is None:
            raise NotFound(f"Provider {provider_id} not found")
        return provider

    def lock_provider(self, provider_id: int) -> Provider:
        """
        Get an active provider and lock its row until the transaction ends.

        The row lock serializes bookings per provider across processes;
        bookings for other providers are not blocked.

        Raises:
            NotFound: If the provider does not exist or is inactive
        """
        provider = self.db.execute(
            select(Provider)
            .where(Provider.id == provider_id, Provider.is_active == True)  # noqa: E712
            .with_for_update()
        ).scalar_one_or_none()
        if provider is None:
            raise NotFound(f"Provider {provider_id} not found")
        return provider

    def create_provider(self, name: str, timezone: str = "UTC") -> Provider:
        provider = Provider(name=name, timezone=timezone, is_active=True)
        self.db.add(provider)
        self.db.flush()
        return provider

    # ===== Weekly rules =====

    def get_weekly_rules(self, provider_id: int) -> Dict[DayOfWeek, WeeklyScheduleRule]:
        """Get the provider's weekly rules keyed by day of week."""
        rules = self.db.execute(
            select(WeeklyScheduleRule)
            .where(WeeklyScheduleRule.provider_id == provider_id)
            .order_by(WeeklyScheduleRule.day_of_week)
        ).scalars().all()
        return {DayOfWeek(rule.day_of_week): rule for rule in rules}

    def get_weekly_rule(self, provider_id: int, day: DayOfWeek) -> Optional[WeeklyScheduleRule]:
        return self.db.execute(
            select(WeeklyScheduleRule).where(
                WeeklyScheduleRule.provider_id == provider_id,
                WeeklyScheduleRule.day_of_week == int(day),
            )
        ).scalar_one_or_none()

    def upsert_weekly_rule(
        self,
        provider_id: int,
        day: DayOfWeek,
        start: WallClockTime,
        end: WallClockTime,
        is_available: bool,
        break_start: Optional[WallClockTime] = None,
        break_end: Optional[WallClockTime] = None,
    ) -> WeeklyScheduleRule:
        """
        Create the rule for (provider, day) or replace the existing one.

        A concurrent insert for the same day surfaces as an IntegrityError
        on flush.
        """
        values = {
            "start_time": start.to_time(),
            "end_time": end.to_time(),
            "is_available": is_available,
            "break_start": break_start.to_time() if break_start else None,
            "break_end": break_end.to_time() if break_end else None,
        }

        rule = self.get_weekly_rule(provider_id, day)
        if rule is None:
            rule = WeeklyScheduleRule(provider_id=provider_id, day_of_week=int(day), **values)
            self.db.add(rule)
            self.db.flush()
            return rule

        for key, value in values.items():
            setattr(rule, key, value)
        self.db.flush()
        return rule

    # ===== Time off =====

    def get_time_off_periods(
        self,
        provider_id: int,
        start_date: date_type,
        end_date: date_type
    ) -> List[TimeOffPeriod]:
        """Get time-off periods overlapping [start_date, end_date] (inclusive)."""
        return list(self.db.execute(
            select(TimeOffPeriod)
            .where(
                TimeOffPeriod.provider_id == provider_id,
                TimeOffPeriod.start_date <= end_date,
                TimeOffPeriod.end_date >= start_date,
            )
            .order_by(TimeOffPeriod.start_date, TimeOffPeriod.id)
        ).scalars().all())

    def add_time_off(
        self,
        provider_id: int,
        start_date: date_type,
        end_date: date_type,
        reason: Optional[str] = None
    ) -> TimeOffPeriod:
        period = TimeOffPeriod(
            provider_id=provider_id,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
        )
        self.db.add(period)
        self.db.flush()
        return period

    # ===== Appointments =====

    def get_active_appointments(
        self,
        provider_id: int,
        window_start: datetime,
        window_end: datetime,
        exclude_appointment_id: Optional[int] = None,
        buffer_minutes: int = 0,
    ) -> List[Appointment]:
        """
        Get active appointments whose (buffered) interval overlaps [window_start, window_end).

        The database narrows candidates by start time only; the exact overlap
        test is the shared half-open overlaps() check.

        Returns:
            Appointments ordered by start time, then id
        """
        buffer = timedelta(minutes=buffer_minutes)
        lookback = timedelta(minutes=MAX_APPOINTMENT_DURATION_MINUTES) + buffer

        query = select(Appointment).where(
            Appointment.provider_id == provider_id,
            Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
            Appointment.scheduled_at < window_end + buffer,
            Appointment.scheduled_at >= window_start - lookback,
        )
        if exclude_appointment_id is not None:
            query = query.where(Appointment.id != exclude_appointment_id)

        candidates = self.db.execute(
            query.order_by(Appointment.scheduled_at, Appointment.id)
        ).scalars().all()

        return [
            appointment for appointment in candidates
            if overlaps(
                appointment.scheduled_at - buffer, appointment.ends_at + buffer,
                window_start, window_end
            )
        ]

    def get_active_appointments_starting_between(
        self,
        provider_id: int,
        range_start: datetime,
        range_end: datetime
    ) -> List[Appointment]:
        """Get active appointments with range_start <= scheduled_at < range_end."""
        return list(self.db.execute(
            select(Appointment)
            .where(
                Appointment.provider_id == provider_id,
                Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
                Appointment.scheduled_at >= range_start,
                Appointment.scheduled_at < range_end,
            )
            .order_by(Appointment.scheduled_at, Appointment.id)
        ).scalars().all())

    def get_appointment(self, appointment_id: int, for_update: bool = False) -> Optional[Appointment]:
        query = select(Appointment).where(Appointment.id == appointment_id)
        if for_update:
            query = query.with_for_update()
        return self.db.execute(query).scalar_one_or_none()

    def create_appointment(
        self,
        provider_id: int,
        scheduled_at: datetime,
        duration_minutes: int,
        label: Optional[str] = None,
        status: str = APPOINTMENT_STATUS_SCHEDULED,
    ) -> Appointment:
        appointment = Appointment(
            provider_id=provider_id,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            status=status,
            label=label,
        )
        self.db.add(appointment)
        self.db.flush()  # Get appointment.id
        return appointment

    def update_appointment_interval(
        self,
        appointment: Appointment,
        scheduled_at: datetime,
        duration_minutes: int
    ) -> Appointment:
        appointment.scheduled_at = scheduled_at
        appointment.duration_minutes = duration_minutes
        self.db.flush()
        return appointment

    def set_appointment_status(self, appointment: Appointment, status: str) -> Appointment:
        appointment.status = status
        if status == APPOINTMENT_STATUS_CANCELLED and appointment.cancelled_at is None:
            appointment.cancelled_at = utc_now()
        self.db.flush()
        return appointment
