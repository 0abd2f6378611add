"""
Booking coordinator: atomic reserve, reschedule and cancel.

Conflict detection and the appointment write run as one unit while holding
both an in-process lock and the provider's database row lock, so two
concurrent reservations for overlapping intervals cannot both succeed.
Locks are per provider; different providers never wait on each other.
"""

import logging
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterator, Optional, Tuple

from sqlalchemy.exc import DBAPIError, IntegrityError

from core.config import (
    BUFFER_MINUTES,
    REPOSITORY_TIMEOUT_SECONDS,
    RESERVE_MAX_RETRIES,
    RETRY_BASE_DELAY_SECONDS,
)
from core.constants import APPOINTMENT_STATUS_CANCELLED, MAX_LABEL_LENGTH
from models import Appointment
from services.conflict_service import ConflictService
from services.errors import NotFound, RepositoryUnavailable, ValidationFailure
from services.schedule_repository import ScheduleRepository
from services.scheduling_validators import (
    validate_duration,
    validate_minute_precision,
    validate_non_negative_minutes,
    validate_start,
)
from shared_types.scheduling import (
    RESERVATION_OUTCOME_REJECTED,
    RESERVATION_OUTCOME_RESERVED,
    Reservation,
    ReservationEvent,
    ReservationOutcome,
)
from utils.datetime_utils import to_provider_wall_clock
from utils.retry import backoff_delay, is_transient_db_error

logger = logging.getLogger(__name__)

ReservationEventSink = Callable[[ReservationEvent], None]


def log_reservation_event(event: ReservationEvent) -> None:
    """Default event sink: one INFO line per reserve outcome, identifiers only."""
    if event.outcome == RESERVATION_OUTCOME_RESERVED:
        logger.info(
            f"Reservation {event.outcome}: provider={event.provider_id} "
            f"appointment={event.appointment_id} interval=[{event.start.isoformat()}, {event.end.isoformat()})"
        )
    else:
        logger.info(
            f"Reservation {event.outcome}: provider={event.provider_id} "
            f"interval=[{event.start.isoformat()}, {event.end.isoformat()}) "
            f"conflicts={','.join(event.conflict_kinds)}"
        )


class ProviderLockRegistry:
    """
    One mutex per provider, created on first use.

    Serializes reservations for a provider inside this process. The database
    row lock taken by ScheduleRepository.lock_provider does the same across
    processes.
    """

    def __init__(self) -> None:
        # Never evicted; bounded by the number of providers
        self._locks: Dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, provider_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(provider_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[provider_id] = lock
            return lock

    @contextmanager
    def hold(self, provider_id: int, timeout_seconds: float) -> Iterator[None]:
        """
        Hold the provider's lock.

        Raises:
            RepositoryUnavailable: If the lock is not acquired within timeout_seconds
        """
        lock = self.lock_for(provider_id)
        if not lock.acquire(timeout=max(timeout_seconds, 0)):
            raise RepositoryUnavailable(
                f"Timed out after {timeout_seconds:.2f}s waiting to book provider {provider_id}"
            )
        try:
            yield
        finally:
            lock.release()


class BookingCoordinator:
    """
    Coordinates atomic bookings.

    One instance is shared by all requests of an application (see main.py);
    it owns no database state, only the per-provider locks.
    """

    def __init__(
        self,
        lock_registry: Optional[ProviderLockRegistry] = None,
        event_sink: ReservationEventSink = log_reservation_event,
        max_retries: int = RESERVE_MAX_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY_SECONDS,
        timeout_seconds: float = REPOSITORY_TIMEOUT_SECONDS,
        buffer_minutes: int = BUFFER_MINUTES,
    ):
        self.locks = lock_registry or ProviderLockRegistry()
        self.event_sink = event_sink
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.timeout_seconds = timeout_seconds
        self.buffer_minutes = validate_non_negative_minutes(buffer_minutes, "buffer_minutes")

    def reserve(
        self,
        repository: ScheduleRepository,
        provider_id: int,
        proposed_start: datetime,
        duration_minutes: int,
        appointment_id: Optional[int] = None,
        label: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ) -> ReservationOutcome:
        """
        Atomically check for conflicts and create or move an appointment.

        With appointment_id set this is a reschedule: the appointment is
        excluded from its own overlap check and updated in place.

        Args:
            repository: Schedule repository for this request
            provider_id: Provider ID
            proposed_start: Start of the appointment (naive means provider-local)
            duration_minutes: Length of the appointment
            appointment_id: Existing appointment to move, if any
            label: Display label for a new appointment
            timeout_seconds: Bound for the whole operation (defaults to the configured timeout)

        Returns:
            ReservationOutcome holding either the Reservation or a non-empty ConflictReport

        Raises:
            ValidationFailure: If the input is malformed
            NotFound: If the provider or appointment does not exist
            RepositoryUnavailable: If the timeout expires or transient failures exhaust the retries;
                nothing is written in that case
        """
        validate_start(proposed_start)
        validate_duration(duration_minutes)
        if label is not None and len(label) > MAX_LABEL_LENGTH:
            raise ValidationFailure(f"label must be at most {MAX_LABEL_LENGTH} characters")

        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        deadline = time.monotonic() + timeout

        with self.locks.hold(provider_id, timeout):
            outcome, start = self._reserve_with_retries(
                repository, provider_id, proposed_start, duration_minutes,
                appointment_id, label, deadline
            )

        self._emit(provider_id, start, duration_minutes, outcome)
        return outcome

    def reschedule(
        self,
        repository: ScheduleRepository,
        appointment_id: int,
        new_start: datetime,
        duration_minutes: Optional[int] = None,
        timeout_seconds: Optional[float] = None
    ) -> ReservationOutcome:
        """
        Move an appointment, keeping its duration unless a new one is given.

        Raises:
            NotFound: If the appointment does not exist
        """
        appointment = repository.run_read(
            f"appointment {appointment_id}", lambda: repository.get_appointment(appointment_id)
        )
        if appointment is None:
            raise NotFound(f"Appointment {appointment_id} not found")

        return self.reserve(
            repository,
            appointment.provider_id,
            new_start,
            duration_minutes if duration_minutes is not None else appointment.duration_minutes,
            appointment_id=appointment_id,
            timeout_seconds=timeout_seconds,
        )

    def cancel(
        self,
        repository: ScheduleRepository,
        appointment_id: int,
        timeout_seconds: Optional[float] = None
    ) -> Appointment:
        """
        Cancel an appointment, freeing its time. Cancelling twice is a no-op.

        Returns:
            The cancelled appointment

        Raises:
            NotFound: If the appointment does not exist
            ValidationFailure: If the appointment is completed or a no-show
        """
        appointment = repository.run_read(
            f"appointment {appointment_id}", lambda: repository.get_appointment(appointment_id)
        )
        if appointment is None:
            raise NotFound(f"Appointment {appointment_id} not found")
        if appointment.status == APPOINTMENT_STATUS_CANCELLED:
            return appointment
        if not appointment.is_active:
            raise ValidationFailure(f"Cannot cancel an appointment that is {appointment.status}")

        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        with self.locks.hold(appointment.provider_id, timeout):
            try:
                repository.apply_timeout(timeout)
                repository.set_appointment_status(appointment, APPOINTMENT_STATUS_CANCELLED)
                repository.commit()
            except DBAPIError as e:
                repository.rollback()
                logger.exception(f"Failed to cancel appointment {appointment_id}: {e}")
                raise RepositoryUnavailable(f"Could not cancel appointment {appointment_id}") from e

        logger.info(f"Cancelled appointment {appointment_id} for provider {appointment.provider_id}")
        return appointment

    def _reserve_with_retries(
        self,
        repository: ScheduleRepository,
        provider_id: int,
        proposed_start: datetime,
        duration_minutes: int,
        appointment_id: Optional[int],
        label: Optional[str],
        deadline: float
    ) -> Tuple[ReservationOutcome, datetime]:
        attempt = 0
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise RepositoryUnavailable(f"Timed out booking provider {provider_id}")

            try:
                return self._reserve_once(
                    repository, provider_id, proposed_start, duration_minutes,
                    appointment_id, label, remaining
                )
            except IntegrityError as e:
                # A competing writer committed first; the next attempt sees it as an overlap
                repository.rollback()
                error: DBAPIError = e
            except DBAPIError as e:
                repository.rollback()
                if not is_transient_db_error(e):
                    logger.exception(f"Reservation for provider {provider_id} failed: {e}")
                    raise RepositoryUnavailable(f"Could not book provider {provider_id}") from e
                error = e
            except Exception:
                repository.rollback()
                raise

            if attempt >= self.max_retries:
                logger.error(
                    f"Reservation for provider {provider_id} failed after {attempt + 1} attempts: {error}"
                )
                raise RepositoryUnavailable(f"Could not book provider {provider_id}, please retry") from error

            delay = min(backoff_delay(attempt, self.retry_base_delay), max(deadline - time.monotonic(), 0))
            logger.warning(
                f"Reservation for provider {provider_id} hit {type(error).__name__} "
                f"(attempt {attempt + 1}/{self.max_retries + 1}), retrying in {delay:.2f} seconds"
            )
            time.sleep(delay)
            attempt += 1

    def _reserve_once(
        self,
        repository: ScheduleRepository,
        provider_id: int,
        proposed_start: datetime,
        duration_minutes: int,
        appointment_id: Optional[int],
        label: Optional[str],
        timeout_seconds: float
    ) -> Tuple[ReservationOutcome, datetime]:
        """Detect-then-write in a single transaction. Commits on success, rolls back on conflict."""
        repository.apply_timeout(timeout_seconds)
        provider = repository.lock_provider(provider_id)
        start = validate_minute_precision(to_provider_wall_clock(proposed_start, provider.timezone))

        appointment = None
        if appointment_id is not None:
            appointment = ConflictService.get_provider_appointment(
                repository, provider.id, appointment_id, for_update=True
            )
            if not appointment.is_active:
                raise ValidationFailure(f"Cannot reschedule an appointment that is {appointment.status}")

        report = ConflictService.evaluate_conflicts(
            repository, provider, start, duration_minutes,
            exclude_appointment_id=appointment_id,
            buffer_minutes=self.buffer_minutes,
        )
        if report.has_conflicts:
            repository.rollback()
            return ReservationOutcome(conflicts=report), start

        if appointment is None:
            appointment = repository.create_appointment(provider.id, start, duration_minutes, label=label)
        else:
            repository.update_appointment_interval(appointment, start, duration_minutes)
        repository.commit()

        reservation = Reservation(
            appointment_id=appointment.id,
            provider_id=provider.id,
            start=start,
            duration_minutes=duration_minutes,
            rescheduled=appointment_id is not None,
        )
        return ReservationOutcome(reservation=reservation), start

    def _emit(
        self,
        provider_id: int,
        start: datetime,
        duration_minutes: int,
        outcome: ReservationOutcome
    ) -> None:
        event = ReservationEvent(
            provider_id=provider_id,
            start=start,
            end=start + timedelta(minutes=duration_minutes),
            outcome=RESERVATION_OUTCOME_RESERVED if outcome.succeeded else RESERVATION_OUTCOME_REJECTED,
            appointment_id=outcome.reservation.appointment_id if outcome.reservation else None,
            conflict_kinds=tuple(kind.value for kind in outcome.conflicts.kinds),
        )
        try:
            self.event_sink(event)
        except Exception as e:
            # The booking is already committed at this point
            logger.exception(f"Reservation event sink failed: {e}")
