"""
Shared response models for API endpoints.

This module contains Pydantic response models for the scheduling endpoints
so request handlers stay thin and the JSON shape stays consistent.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel


class ProviderResponse(BaseModel):
    """Response model for provider information."""
    id: int
    name: str
    timezone: str
    is_active: bool


class WeeklyRuleResponse(BaseModel):
    """Response model for one weekly schedule rule."""
    day_of_week: int  # 0=Monday ... 6=Sunday
    day_name: str
    start_time: str  # Format: "HH:MM"
    end_time: str    # Format: "HH:MM"
    break_start: Optional[str] = None
    break_end: Optional[str] = None
    is_available: bool


class WeeklyScheduleResponse(BaseModel):
    """Response model for a provider's weekly schedule (days without a rule are omitted)."""
    provider_id: int
    rules: List[WeeklyRuleResponse]


class TimeOffResponse(BaseModel):
    """Response model for a time-off period."""
    id: int
    provider_id: int
    start_date: date
    end_date: date
    reason: Optional[str] = None


class AvailableSlotResponse(BaseModel):
    """Response model for one open slot."""
    start: datetime
    end: datetime
    duration_minutes: int


class AvailableSlotsResponse(BaseModel):
    """Response model for slot listings."""
    provider_id: int
    slots: List[AvailableSlotResponse]


class NextAvailableSlotResponse(BaseModel):
    """Response model for the earliest open slot (slot is null when none is found)."""
    provider_id: int
    slot: Optional[AvailableSlotResponse] = None


class ScheduleCellResponse(BaseModel):
    """Response model for one cell of the day schedule grid."""
    start: datetime
    end: datetime
    status: str  # "available" | "break" | "occupied"
    available: bool
    appointment_id: Optional[int] = None
    label: Optional[str] = None


class ProviderScheduleResponse(BaseModel):
    """Response model for the schedule grid."""
    provider_id: int
    cells: List[ScheduleCellResponse]


class ConflictingAppointmentResponse(BaseModel):
    """The appointment an overlap conflict refers to."""
    id: int
    start: datetime
    end: datetime
    label: Optional[str] = None


class ConflictResponse(BaseModel):
    """Response model for one conflict."""
    kind: str  # "unavailable" | "outside_hours" | "break_time" | "overlap"
    message: str
    conflicting_appointment: Optional[ConflictingAppointmentResponse] = None


class ConflictReportResponse(BaseModel):
    """Response model for a conflict check; bookable is true when conflicts is empty."""
    bookable: bool
    conflicts: List[ConflictResponse]


class ReservationResponse(BaseModel):
    """Response model for a successful reservation or reschedule."""
    appointment_id: int
    provider_id: int
    start: datetime
    end: datetime
    duration_minutes: int
    rescheduled: bool


class AppointmentResponse(BaseModel):
    """Response model for appointment state after cancel."""
    id: int
    provider_id: int
    scheduled_at: datetime
    duration_minutes: int
    status: str
    label: Optional[str] = None


class UtilizationResponse(BaseModel):
    """Response model for provider utilization."""
    provider_id: int
    start_date: date
    end_date: date
    working_minutes: int
    booked_minutes: int
    utilization_percent: float
    appointment_count: int
