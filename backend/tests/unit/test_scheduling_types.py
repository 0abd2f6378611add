"""
Unit tests for scheduling value objects.
"""

import pytest
from datetime import date, datetime, time

from shared_types.scheduling import (
    Conflict,
    ConflictKind,
    ConflictReport,
    DayOfWeek,
    Reservation,
    ReservationOutcome,
    WallClockTime,
    WorkingDay,
)


class TestDayOfWeek:
    """Test DayOfWeek enum."""

    def test_of_uses_monday_zero(self):
        assert DayOfWeek.of(date(2030, 1, 7)) == DayOfWeek.MONDAY
        assert DayOfWeek.of(date(2030, 1, 13)) == DayOfWeek.SUNDAY
        assert int(DayOfWeek.MONDAY) == 0

    def test_label(self):
        assert DayOfWeek.WEDNESDAY.label == "Wednesday"


class TestWallClockTime:
    """Test WallClockTime parsing and validation."""

    def test_parse(self):
        assert WallClockTime.parse("09:30") == WallClockTime(9, 30)
        assert WallClockTime.parse("9:05") == WallClockTime(9, 5)
        assert WallClockTime.parse(" 23:59 ") == WallClockTime(23, 59)

    @pytest.mark.parametrize("value", ["24:00", "12:60", "9", "09:3", "ab:cd", "", "09:30:00"])
    def test_parse_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            WallClockTime.parse(value)

    def test_constructor_validates(self):
        with pytest.raises(ValueError):
            WallClockTime(25, 0)
        with pytest.raises(ValueError):
            WallClockTime(10, -1)

    def test_from_time_requires_minute_precision(self):
        assert WallClockTime.from_time(time(8, 15)) == WallClockTime(8, 15)
        with pytest.raises(ValueError):
            WallClockTime.from_time(time(8, 15, 30))

    def test_ordering_and_str(self):
        assert WallClockTime(9, 0) < WallClockTime(9, 30) < WallClockTime(10, 0)
        assert str(WallClockTime(7, 5)) == "07:05"

    def test_minutes_round_trip(self):
        assert WallClockTime(13, 45).minutes_since_midnight == 825
        assert WallClockTime.from_minutes(825) == WallClockTime(13, 45)

    def test_on_combines_with_date(self):
        assert WallClockTime(9, 0).on(date(2030, 1, 7)) == datetime(2030, 1, 7, 9, 0)


class TestWorkingDay:
    """Test WorkingDay."""

    def test_working_minutes_subtracts_break(self):
        day = WorkingDay(
            date=date(2030, 1, 7),
            start=datetime(2030, 1, 7, 9),
            end=datetime(2030, 1, 7, 17),
            break_start=datetime(2030, 1, 7, 12),
            break_end=datetime(2030, 1, 7, 13),
        )
        assert day.has_break
        assert day.open_windows == [
            (datetime(2030, 1, 7, 9), datetime(2030, 1, 7, 12)),
            (datetime(2030, 1, 7, 13), datetime(2030, 1, 7, 17)),
        ]
        assert day.working_minutes == 420

    def test_working_minutes_without_break(self):
        day = WorkingDay(date=date(2030, 1, 7), start=datetime(2030, 1, 7, 9), end=datetime(2030, 1, 7, 10))
        assert not day.has_break
        assert day.open_windows == [(datetime(2030, 1, 7, 9), datetime(2030, 1, 7, 10))]
        assert day.working_minutes == 60


class TestConflictReport:
    """Test ConflictReport helpers."""

    def test_empty_report_is_bookable(self):
        report = ConflictReport()
        assert not report.has_conflicts
        assert len(report) == 0
        assert report.to_dict() == {"bookable": True, "conflicts": []}

    def test_kinds_and_of_kind(self):
        report = ConflictReport(conflicts=[
            Conflict(kind=ConflictKind.UNAVAILABLE, message="off"),
            Conflict(kind=ConflictKind.OVERLAP, message="busy", appointment_id=3),
        ])
        assert report.kinds == [ConflictKind.UNAVAILABLE, ConflictKind.OVERLAP]
        assert [c.appointment_id for c in report.of_kind(ConflictKind.OVERLAP)] == [3]

    def test_overlap_to_dict_carries_appointment(self):
        conflict = Conflict(
            kind=ConflictKind.OVERLAP,
            message="Occupied",
            appointment_id=7,
            appointment_start=datetime(2030, 1, 7, 10),
            appointment_end=datetime(2030, 1, 7, 10, 30),
            appointment_label="Follow-up",
        )
        assert conflict.to_dict() == {
            "kind": "overlap",
            "message": "Occupied",
            "conflicting_appointment": {
                "id": 7,
                "start": "2030-01-07T10:00:00",
                "end": "2030-01-07T10:30:00",
                "label": "Follow-up",
            },
        }

    def test_non_overlap_to_dict_has_no_appointment(self):
        assert "conflicting_appointment" not in Conflict(kind=ConflictKind.BREAK_TIME, message="x").to_dict()


class TestReservation:
    """Test Reservation and ReservationOutcome."""

    def test_end_is_start_plus_duration(self):
        reservation = Reservation(appointment_id=1, provider_id=2, start=datetime(2030, 1, 7, 9), duration_minutes=45)
        assert reservation.end == datetime(2030, 1, 7, 9, 45)

    def test_outcome_succeeded(self):
        reservation = Reservation(appointment_id=1, provider_id=2, start=datetime(2030, 1, 7, 9), duration_minutes=30)
        assert ReservationOutcome(reservation=reservation).succeeded
        rejected = ReservationOutcome(conflicts=ConflictReport([Conflict(ConflictKind.OVERLAP, "busy")]))
        assert not rejected.succeeded
