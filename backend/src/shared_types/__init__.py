"""
Shared type definitions for the clinic scheduling backend.

This module contains dataclasses and value objects that are used across
multiple services.
"""

from shared_types.scheduling import (
    DayOfWeek,
    WallClockTime,
    WorkingDay,
    AvailabilitySlot,
    ScheduleTimeSlot,
    ConflictKind,
    Conflict,
    ConflictReport,
    Reservation,
    ReservationOutcome,
    ReservationEvent,
    UtilizationSummary,
)

__all__ = [
    "DayOfWeek",
    "WallClockTime",
    "WorkingDay",
    "AvailabilitySlot",
    "ScheduleTimeSlot",
    "ConflictKind",
    "Conflict",
    "ConflictReport",
    "Reservation",
    "ReservationOutcome",
    "ReservationEvent",
    "UtilizationSummary",
]
