"""
Shared types for scheduling functionality.

Typed value objects replace ad hoc "HH:MM" string handling and bare weekday
integers. Everything here is pure data: no database access.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum, IntEnum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from utils.intervals import subtract


_TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


class DayOfWeek(IntEnum):
    """Day of week using Python's weekday() numbering (Monday=0)."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def of(cls, target_date: date) -> "DayOfWeek":
        return cls(target_date.weekday())

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True, order=True)
class WallClockTime:
    """
    Local wall-clock time with minute precision.

    Validated at construction so an instance is always a real time of day.
    """

    hour: int
    minute: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.hour, int) or not isinstance(self.minute, int):
            raise ValueError("hour and minute must be integers")
        if not 0 <= self.hour <= 23:
            raise ValueError(f"hour out of range: {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"minute out of range: {self.minute}")

    @classmethod
    def parse(cls, value: str) -> "WallClockTime":
        """Parse an "HH:MM" (24-hour) string."""
        match = _TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
        if not match:
            raise ValueError(f"Invalid time format: {value!r} (expected HH:MM)")
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def from_time(cls, value: time) -> "WallClockTime":
        if value.second or value.microsecond:
            raise ValueError(f"Time must have minute precision: {value}")
        return cls(value.hour, value.minute)

    @classmethod
    def from_minutes(cls, minutes: int) -> "WallClockTime":
        return cls(minutes // 60, minutes % 60)

    @property
    def minutes_since_midnight(self) -> int:
        return self.hour * 60 + self.minute

    def to_time(self) -> time:
        return time(self.hour, self.minute)

    def on(self, target_date: date) -> datetime:
        """Combine with a calendar date into a naive datetime."""
        return datetime.combine(target_date, self.to_time())

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class WorkingDay:
    """
    A provider's resolved working window for one calendar date.

    Produced from the weekly rule only when the rule is available and no
    time-off period covers the date.
    """

    date: date
    start: datetime
    end: datetime
    break_start: Optional[datetime] = None
    break_end: Optional[datetime] = None

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None

    @property
    def open_windows(self) -> List[Tuple[datetime, datetime]]:
        """The working window with the break carved out."""
        if self.break_start is None or self.break_end is None:
            return [(self.start, self.end)]
        return subtract((self.start, self.end), [(self.break_start, self.break_end)])

    @property
    def working_minutes(self) -> int:
        return sum(int((end - start).total_seconds() // 60) for start, end in self.open_windows)


@dataclass(frozen=True)
class AvailabilitySlot:
    """An open, unbooked candidate appointment interval [start, end)."""

    start: datetime
    end: datetime
    duration_minutes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration_minutes": self.duration_minutes,
        }


SLOT_STATUS_AVAILABLE = "available"
SLOT_STATUS_BREAK = "break"
SLOT_STATUS_OCCUPIED = "occupied"


@dataclass(frozen=True)
class ScheduleTimeSlot:
    """One cell of the day schedule grid."""

    start: datetime
    end: datetime
    status: str  # "available" | "break" | "occupied"
    appointment_id: Optional[int] = None
    label: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.status == SLOT_STATUS_AVAILABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "status": self.status,
            "available": self.available,
            "appointment_id": self.appointment_id,
            "label": self.label,
        }


class ConflictKind(str, Enum):
    """Reasons a proposed interval cannot be booked, in reporting order."""

    UNAVAILABLE = "unavailable"
    OUTSIDE_HOURS = "outside_hours"
    BREAK_TIME = "break_time"
    OVERLAP = "overlap"


@dataclass(frozen=True)
class Conflict:
    """
    A single reason the proposed interval is not bookable.

    Overlap conflicts carry the conflicting appointment's id, interval and
    label; the other kinds leave those fields empty.
    """

    kind: ConflictKind
    message: str
    appointment_id: Optional[int] = None
    appointment_start: Optional[datetime] = None
    appointment_end: Optional[datetime] = None
    appointment_label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.appointment_id is not None:
            result["conflicting_appointment"] = {
                "id": self.appointment_id,
                "start": self.appointment_start.isoformat() if self.appointment_start else None,
                "end": self.appointment_end.isoformat() if self.appointment_end else None,
                "label": self.appointment_label,
            }
        return result


@dataclass
class ConflictReport:
    """
    Ordered list of conflicts for a proposed interval.

    An empty report means the interval is bookable as-is.
    """

    conflicts: List[Conflict] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def kinds(self) -> List[ConflictKind]:
        return [conflict.kind for conflict in self.conflicts]

    def of_kind(self, kind: ConflictKind) -> List[Conflict]:
        return [conflict for conflict in self.conflicts if conflict.kind == kind]

    def __len__(self) -> int:
        return len(self.conflicts)

    def __iter__(self) -> Iterator[Conflict]:
        return iter(self.conflicts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bookable": not self.has_conflicts,
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
        }


@dataclass(frozen=True)
class Reservation:
    """Successful result of an atomic booking."""

    appointment_id: int
    provider_id: int
    start: datetime
    duration_minutes: int
    rescheduled: bool = False

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "appointment_id": self.appointment_id,
            "provider_id": self.provider_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration_minutes": self.duration_minutes,
            "rescheduled": self.rescheduled,
        }


@dataclass
class ReservationOutcome:
    """
    Result of a reserve call: either a reservation or a non-empty conflict report.

    Infrastructure failures are raised, never returned here.
    """

    reservation: Optional[Reservation] = None
    conflicts: ConflictReport = field(default_factory=ConflictReport)

    @property
    def succeeded(self) -> bool:
        return self.reservation is not None


RESERVATION_OUTCOME_RESERVED = "reserved"
RESERVATION_OUTCOME_REJECTED = "rejected"


@dataclass(frozen=True)
class ReservationEvent:
    """Observability record for one reserve attempt. Identifiers only, no PHI."""

    provider_id: int
    start: datetime
    end: datetime
    outcome: str  # "reserved" | "rejected"
    appointment_id: Optional[int] = None
    conflict_kinds: Tuple[str, ...] = ()


@dataclass(frozen=True)
class UtilizationSummary:
    """Working vs. booked minutes for a provider over a date range."""

    working_minutes: int
    booked_minutes: int
    utilization_percent: float
    appointment_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "working_minutes": self.working_minutes,
            "booked_minutes": self.booked_minutes,
            "utilization_percent": self.utilization_percent,
            "appointment_count": self.appointment_count,
        }
