"""
Scheduling API endpoints.

Provides:
- Provider registration and weekly schedule management
- Time-off management
- Available slots, next available slot and the day schedule grid
- Conflict preview, atomic booking, reschedule and cancel
- Provider utilization
"""

import logging
from datetime import date as date_type, datetime
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from core.config import MAX_RANGE_DAYS, NEXT_SLOT_MAX_DAYS_AHEAD, SCHEDULE_GRID_MINUTES
from core.constants import MAX_APPOINTMENT_DURATION_MINUTES, MAX_LABEL_LENGTH, MAX_REASON_LENGTH
from core.database import get_db
from models import Appointment, Provider, TimeOffPeriod, WeeklyScheduleRule
from services import (
    AvailabilityService,
    BookingCoordinator,
    ConflictService,
    NotFound,
    RepositoryUnavailable,
    ScheduleRepository,
    ScheduleRuleService,
    SchedulingError,
    ValidationFailure,
    WorkloadService,
)
from shared_types.scheduling import AvailabilitySlot, ConflictReport, ReservationOutcome
from api.responses import (
    AppointmentResponse,
    AvailableSlotResponse,
    AvailableSlotsResponse,
    ConflictReportResponse,
    NextAvailableSlotResponse,
    ProviderResponse,
    ProviderScheduleResponse,
    ReservationResponse,
    ScheduleCellResponse,
    TimeOffResponse,
    UtilizationResponse,
    WeeklyRuleResponse,
    WeeklyScheduleResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# Request Models

class ProviderCreateRequest(BaseModel):
    """Request model for registering a provider."""
    name: str = Field(..., min_length=1)
    timezone: str = "UTC"  # IANA name; all of the provider's times are wall-clock in this zone


class WeeklyRuleRequest(BaseModel):
    """Request model for setting one day's weekly rule."""
    start_time: str  # Format: "HH:MM"
    end_time: str    # Format: "HH:MM"
    break_start: Optional[str] = None
    break_end: Optional[str] = None
    is_available: bool = True


class TimeOffRequest(BaseModel):
    """Request model for adding a time-off period."""
    start_date: date_type
    end_date: date_type
    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)


class ConflictCheckRequest(BaseModel):
    """Request model for a conflict preview."""
    start: datetime
    duration_minutes: int = Field(..., gt=0, le=MAX_APPOINTMENT_DURATION_MINUTES)
    exclude_appointment_id: Optional[int] = None


class ReserveRequest(BaseModel):
    """Request model for booking a new appointment."""
    start: datetime
    duration_minutes: int = Field(..., gt=0, le=MAX_APPOINTMENT_DURATION_MINUTES)
    label: Optional[str] = Field(None, max_length=MAX_LABEL_LENGTH)


class RescheduleRequest(BaseModel):
    """Request model for moving an appointment (duration defaults to the current one)."""
    start: datetime
    duration_minutes: Optional[int] = Field(None, gt=0, le=MAX_APPOINTMENT_DURATION_MINUTES)


# Helpers

def get_repository(db: Session = Depends(get_db)) -> ScheduleRepository:
    """FastAPI dependency providing a schedule repository bound to the request session."""
    return ScheduleRepository(db)


def get_booking_coordinator(request: Request) -> BookingCoordinator:
    """FastAPI dependency returning the application's shared booking coordinator."""
    return request.app.state.booking_coordinator


def _raise_scheduling_error(e: SchedulingError) -> NoReturn:
    """Map a scheduling error onto its HTTP status."""
    if isinstance(e, ValidationFailure):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, NotFound):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, RepositoryUnavailable):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scheduling is temporarily unavailable, please try again",
        )
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


def _conflict_report_response(report: ConflictReport) -> ConflictReportResponse:
    return ConflictReportResponse.model_validate(report.to_dict())


def _raise_conflict(report: ConflictReport) -> NoReturn:
    """Reject a booking with 409 and the full, ordered conflict list."""
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "message": "; ".join(conflict.message for conflict in report),
            **report.to_dict(),
        },
    )


def _reservation_response(outcome: ReservationOutcome) -> ReservationResponse:
    if outcome.reservation is None:
        _raise_conflict(outcome.conflicts)
    return ReservationResponse.model_validate(outcome.reservation.to_dict())


def _slot_response(slot: AvailabilitySlot) -> AvailableSlotResponse:
    return AvailableSlotResponse(start=slot.start, end=slot.end, duration_minutes=slot.duration_minutes)


def _rule_response(rule: WeeklyScheduleRule) -> WeeklyRuleResponse:
    window = rule.break_window
    return WeeklyRuleResponse(
        day_of_week=rule.day_of_week,
        day_name=rule.day.label,
        start_time=str(rule.start),
        end_time=str(rule.end),
        break_start=str(window[0]) if window else None,
        break_end=str(window[1]) if window else None,
        is_available=rule.is_available,
    )


def _provider_response(provider: Provider) -> ProviderResponse:
    return ProviderResponse(
        id=provider.id, name=provider.name, timezone=provider.timezone, is_active=provider.is_active
    )


def _time_off_response(period: TimeOffPeriod) -> TimeOffResponse:
    return TimeOffResponse(
        id=period.id,
        provider_id=period.provider_id,
        start_date=period.start_date,
        end_date=period.end_date,
        reason=period.reason,
    )


def _appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        provider_id=appointment.provider_id,
        scheduled_at=appointment.scheduled_at,
        duration_minutes=appointment.duration_minutes,
        status=appointment.status,
        label=appointment.label,
    )


# Providers and weekly schedule

@router.post("/providers", response_model=ProviderResponse, status_code=status.HTTP_201_CREATED)
async def create_provider(
    request: ProviderCreateRequest,
    repository: ScheduleRepository = Depends(get_repository),
) -> ProviderResponse:
    """Register a provider."""
    try:
        provider = ScheduleRuleService.create_provider(repository, request.name, request.timezone)
        return _provider_response(provider)
    except HTTPException:
        raise
    except SchedulingError as e:
        _raise_scheduling_error(e)
    except Exception as e:
        logger.exception(f"Failed to create provider: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create provider",
        )


@router.get("/providers/{provider_id}/weekly-schedule", response_model=WeeklyScheduleResponse)
async def get_weekly_schedule(
    provider_id: int,
    repository: ScheduleRepository = Depends(get_repository),
) -> WeeklyScheduleResponse:
    """Get the provider's weekly rules, Monday first."""
    try:
        rules = ScheduleRuleService.get_weekly_schedule(repository, provider_id)
        return WeeklyScheduleResponse(
            provider_id=provider_id,
            rules=[_rule_response(rules[day]) for day in sorted(rules)],
        )
    except HTTPException:
        raise
    except SchedulingError as e:
        _raise_scheduling_error(e)
    except Exception as e:
        logger.exception(f"Failed to fetch weekly schedule for provider {provider_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch weekly schedule",
        )


@router.put("/providers/{provider_id}/weekly-schedule/{day_of_week}", response_model=WeeklyRuleResponse)
async def set_weekly_rule(
    provider_id: int,
    day_of_week: str,
    request: WeeklyRuleRequest,
    repository: ScheduleRepository = Depends(get_repository),
) -> WeeklyRuleResponse:
    """
    Create or replace the rule for one day of week.

    day_of_week accepts 0-6 (Monday=0) or a day name.
    """
    try:
        rule = ScheduleRuleService.upsert_weekly_rule(
            repository,
            provider_id,
            day_of_week,
            request.start_time,
            request.end_time,
            is_available=request.is_available,
            break_start=request.break_start,
            break_end=request.break_end,
        )
        return _rule_response(rule)
    except HTTPException:
        raise
    except SchedulingError as e:
        _raise_scheduling_error(e)
    except Exception as e:
        logger.exception(f"Failed to update weekly rule for provider {provider_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update weekly schedule",
        )


@router.post(
    "/providers/{provider_id}/time-off",
    response_model=TimeOffResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_time_off(
    provider_id: int,
    request: TimeOffRequest,
    repository: ScheduleRepository = Depends(get_repository),
) -> TimeOffResponse:
    """Mark the provider unavailable for a date range (inclusive)."""
    try:
        period = ScheduleRuleService.add_time_off(
            repository, provider_id, request.start_date, request.end_date, request.reason
        )
        return _time_off_response(period)
    except HTTPException:
        raise
    except SchedulingError as e:
        _raise_scheduling_error(e)
    except Exception as e:
        logger.exception(f"Failed to add time off for provider {provider_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add time off",
        )


# Availability

@router.get("/providers/{provider_id}/availability", response_model=AvailableSlotsResponse)
async def get_availability(
    provider_id: int,
    start_date: date_type = Query(..., description="First date (YYYY-MM-DD)"),
    end_date: date_type = Query(..., description="Last date, inclusive (YYYY-MM-DD)"),
    duration_minutes: int = Query(..., gt=0, le=MAX_APPOINTMENT_DURATION_MINUTES),
    repository: ScheduleRepository = Depends(get_repository),
) -> AvailableSlotsResponse:
    """List open slots in chronological order."""
    try:
        slots = AvailabilityService.generate_availability(
            repository, provider_id, start_date, end_date, duration_minutes
        )
        return AvailableSlotsResponse(provider_id=provider_id, slots=[_slot_response(s) for s in slots])
    except HTTPException:
        raise
    except SchedulingError as e:
        _raise_scheduling_error(e)
    except Exception as e:
        logger.exception(f"Failed to generate availability for provider {provider_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch available slots",
        )


@router.get("/providers/{provider_id}/next-available", response_model=NextAvailableSlotResponse)
async def get_next_available_slot(
    provider_id: int,
    duration_minutes: int = Query(..., gt=0, le=MAX_APPOINTMENT_DURATION_MINUTES),
    search_from: datetime = Query(..., description="ISO datetime; naive values are provider-local"),
    max_days_ahead: int = Query(NEXT_SLOT_MAX_DAYS_AHEAD, ge=0, lt=MAX_RANGE_DAYS),
    repository: ScheduleRepository = Depends(get_repository),
) -> NextAvailableSlotResponse:
    """Find the earliest open slot at or after search_from."""
    try:
        slot = AvailabilityService.next_available_slot(
            repository, provider_id, duration_minutes, search_from, max_days_ahead
        )
        return NextAvailableSlotResponse(
            provider_id=provider_id,
            slot=_slot_response(slot) if slot else None,
        )
    except HTTPException:
        raise
    except SchedulingError as e:
        _raise_scheduling_error(e)
    except Exception as e:
        logger.exception(f"Failed to find next slot for provider {provider_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to find next available slot",
        )


@router.get("/providers/{provider_id}/schedule", response_model=ProviderScheduleResponse)
async def get_provider_schedule(
    provider_id: int,
    start_date: date_type = Query(...),
    end_date: date_type = Query(...),
    grid_minutes: int = Query(SCHEDULE_GRID_MINUTES, gt=0),
    repository: ScheduleRepository = Depends(get_repository),
) -> ProviderScheduleResponse:
    """Get the day schedule grid for each working date."""
    try:
        cells = AvailabilityService.get_provider_schedule(
            repository, provider_id, start_date, end_date, grid_minutes
        )
        return ProviderScheduleResponse(
            provider_id=provider_id,
            cells=[ScheduleCellResponse.model_validate(cell.to_dict()) for cell in cells],
        )
    except HTTPException:
        raise
    except SchedulingError as e:
        _raise_scheduling_error(e)
    except Exception as e:
        logger.exception(f"Failed to build schedule for provider {provider_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch schedule",
        )


# Conflicts and bookings

@router.post("/providers/{provider_id}/conflicts", response_model=ConflictReportResponse)
async def check_conflicts(
    provider_id: int,
    request: ConflictCheckRequest,
    repository: ScheduleRepository = Depends(get_repository),
) -> ConflictReportResponse:
    """
    Preview whether an interval is bookable.

    Always 200: a busy interval is reported in the body, not as an error.
    """
    try:
        report = ConflictService.detect_conflicts(
            repository,
            provider_id,
            request.start,
            request.duration_minutes,
            exclude_appointment_id=request.exclude_appointment_id,
        )
        return _conflict_report_response(report)
    except HTTPException:
        raise
    except SchedulingError as e:
        _raise_scheduling_error(e)
    except Exception as e:
        logger.exception(f"Failed to check conflicts for provider {provider_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check conflicts",
        )


@router.post(
    "/providers/{provider_id}/appointments",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Interval not bookable; body lists every conflict"}},
)
def reserve_appointment(
    provider_id: int,
    request: ReserveRequest,
    repository: ScheduleRepository = Depends(get_repository),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> ReservationResponse:
    """Atomically book an interval for the provider."""
    # Sync handler: the coordinator blocks on locks, so it runs in the threadpool
    try:
        outcome = coordinator.reserve(
            repository, provider_id, request.start, request.duration_minutes, label=request.label
        )
        return _reservation_response(outcome)
    except HTTPException:
        raise
    except SchedulingError as e:
        _raise_scheduling_error(e)
    except Exception as e:
        logger.exception(f"Failed to reserve for provider {provider_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to book appointment",
        )


@router.put(
    "/appointments/{appointment_id}/reschedule",
    response_model=ReservationResponse,
    responses={409: {"description": "New interval not bookable; body lists every conflict"}},
)
def reschedule_appointment(
    appointment_id: int,
    request: RescheduleRequest,
    repository: ScheduleRepository = Depends(get_repository),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> ReservationResponse:
    """Move an appointment atomically; it never conflicts with itself."""
    try:
        outcome = coordinator.reschedule(
            repository, appointment_id, request.start, request.duration_minutes
        )
        return _reservation_response(outcome)
    except HTTPException:
        raise
    except SchedulingError as e:
        _raise_scheduling_error(e)
    except Exception as e:
        logger.exception(f"Failed to reschedule appointment {appointment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reschedule appointment",
        )


@router.post("/appointments/{appointment_id}/cancel", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    repository: ScheduleRepository = Depends(get_repository),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> AppointmentResponse:
    """Cancel an appointment. Cancelling an already cancelled appointment succeeds."""
    try:
        appointment = coordinator.cancel(repository, appointment_id)
        return _appointment_response(appointment)
    except HTTPException:
        raise
    except SchedulingError as e:
        _raise_scheduling_error(e)
    except Exception as e:
        logger.exception(f"Failed to cancel appointment {appointment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel appointment",
        )


# Workload

@router.get("/providers/{provider_id}/utilization", response_model=UtilizationResponse)
async def get_utilization(
    provider_id: int,
    start_date: date_type = Query(...),
    end_date: date_type = Query(...),
    repository: ScheduleRepository = Depends(get_repository),
) -> UtilizationResponse:
    """Working vs. booked minutes over a date range."""
    try:
        summary = WorkloadService.compute_utilization(repository, provider_id, start_date, end_date)
        return UtilizationResponse(
            provider_id=provider_id,
            start_date=start_date,
            end_date=end_date,
            **summary.to_dict(),
        )
    except HTTPException:
        raise
    except SchedulingError as e:
        _raise_scheduling_error(e)
    except Exception as e:
        logger.exception(f"Failed to compute utilization for provider {provider_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute utilization",
        )
