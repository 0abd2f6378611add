"""
Test configuration and shared fixtures for the scheduling test suite.

Every test gets its own SQLite database file created from the SQLAlchemy
metadata, so tests are isolated and threads can open their own sessions
against the same data.
"""

from datetime import date, datetime, time
from typing import Callable, Generator, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from core.constants import APPOINTMENT_STATUS_SCHEDULED
from core.database import build_engine_kwargs, create_tables, drop_tables
from models import Appointment, Provider, TimeOffPeriod, WeeklyScheduleRule
from services import BookingCoordinator, ScheduleRepository
from shared_types.scheduling import DayOfWeek, ReservationEvent


@pytest.fixture
def db_engine(tmp_path) -> Generator[Engine, None, None]:
    """Create a fresh SQLite database file with all tables."""
    url = f"sqlite:///{tmp_path / 'scheduling_test.db'}"
    engine = create_engine(url, **build_engine_kwargs(url))
    create_tables(bind=engine)

    yield engine

    drop_tables(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker:
    """Session factory bound to the test database (one session per thread in concurrency tests)."""
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    """Provide a database session for a test."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repository(db_session) -> ScheduleRepository:
    """Schedule repository with retries kept fast for tests."""
    return ScheduleRepository(db_session, retry_base_delay=0.001)


@pytest.fixture
def reservation_events() -> list:
    """Collects events emitted by the coordinator fixture."""
    return []


@pytest.fixture
def coordinator(reservation_events) -> BookingCoordinator:
    """Booking coordinator recording its reservation events."""
    def sink(event: ReservationEvent) -> None:
        reservation_events.append(event)

    return BookingCoordinator(event_sink=sink, retry_base_delay=0.001)


@pytest.fixture
def provider(db_session) -> Provider:
    """An active provider in UTC."""
    provider = Provider(name="Dr. Test", timezone="UTC", is_active=True)
    db_session.add(provider)
    db_session.commit()
    return provider


@pytest.fixture
def make_rule(db_session) -> Callable[..., WeeklyScheduleRule]:
    """Factory for weekly schedule rules."""
    def _make_rule(
        provider: Provider,
        day: DayOfWeek,
        start: time,
        end: time,
        break_start: Optional[time] = None,
        break_end: Optional[time] = None,
        is_available: bool = True,
    ) -> WeeklyScheduleRule:
        rule = WeeklyScheduleRule(
            provider_id=provider.id,
            day_of_week=int(day),
            start_time=start,
            end_time=end,
            break_start=break_start,
            break_end=break_end,
            is_available=is_available,
        )
        db_session.add(rule)
        db_session.commit()
        return rule

    return _make_rule


@pytest.fixture
def make_appointment(db_session) -> Callable[..., Appointment]:
    """Factory for appointments."""
    def _make_appointment(
        provider: Provider,
        start: datetime,
        duration_minutes: int = 30,
        status: str = APPOINTMENT_STATUS_SCHEDULED,
        label: Optional[str] = None,
    ) -> Appointment:
        appointment = Appointment(
            provider_id=provider.id,
            scheduled_at=start,
            duration_minutes=duration_minutes,
            status=status,
            label=label,
        )
        db_session.add(appointment)
        db_session.commit()
        return appointment

    return _make_appointment


@pytest.fixture
def make_time_off(db_session) -> Callable[..., TimeOffPeriod]:
    """Factory for time-off periods."""
    def _make_time_off(
        provider: Provider,
        start_date: date,
        end_date: date,
        reason: Optional[str] = None,
    ) -> TimeOffPeriod:
        period = TimeOffPeriod(
            provider_id=provider.id,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
        )
        db_session.add(period)
        db_session.commit()
        return period

    return _make_time_off


@pytest.fixture
def weekday_provider(provider, make_rule) -> Provider:
    """Provider working Mon-Fri 09:00-17:00 with a 12:00-13:00 break."""
    for day in (DayOfWeek.MONDAY, DayOfWeek.TUESDAY, DayOfWeek.WEDNESDAY, DayOfWeek.THURSDAY, DayOfWeek.FRIDAY):
        make_rule(provider, day, time(9, 0), time(17, 0), time(12, 0), time(13, 0))
    return provider
