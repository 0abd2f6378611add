"""
Integration tests for availability generation against a real database.

Covers slot generation with rules, breaks, time-off and existing appointments,
next-available-slot search and the day schedule grid.
"""

import pytest
from datetime import date, datetime, time, timedelta, timezone

from core.constants import APPOINTMENT_STATUS_CANCELLED, APPOINTMENT_STATUS_COMPLETED
from services import AvailabilityService, NotFound, ValidationFailure
from shared_types.scheduling import DayOfWeek
from utils.intervals import overlaps

MONDAY = date(2030, 1, 7)
TUESDAY = MONDAY + timedelta(days=1)
SATURDAY = MONDAY + timedelta(days=5)


def slot_starts(slots):
    return [slot.start for slot in slots]


class TestGenerateAvailability:
    """Test generate_availability end to end."""

    def test_monday_with_lunch_break(self, repository, weekday_provider):
        slots = AvailabilityService.generate_availability(repository, weekday_provider.id, MONDAY, MONDAY, 30)
        starts = [slot.start.time() for slot in slots]

        assert slots[0].start == datetime(2030, 1, 7, 9, 0)
        assert slots[0].end == datetime(2030, 1, 7, 9, 30)
        assert time(12, 0) not in starts
        assert time(12, 30) not in starts
        assert starts[-1] == time(16, 30)
        assert len(slots) == 14

    def test_days_without_rule_yield_nothing(self, repository, weekday_provider):
        assert AvailabilityService.generate_availability(repository, weekday_provider.id, SATURDAY, SATURDAY, 30) == []

    def test_unavailable_rule_yields_nothing(self, repository, provider, make_rule):
        make_rule(provider, DayOfWeek.MONDAY, time(9), time(17), is_available=False)
        assert AvailabilityService.generate_availability(repository, provider.id, MONDAY, MONDAY, 30) == []

    def test_time_off_removes_whole_day(self, repository, weekday_provider, make_time_off):
        make_time_off(weekday_provider, MONDAY, MONDAY, reason="Training")

        slots = AvailabilityService.generate_availability(repository, weekday_provider.id, MONDAY, TUESDAY, 30)

        assert slots
        assert all(slot.start.date() == TUESDAY for slot in slots)

    def test_active_appointment_removes_overlapping_slots(self, repository, weekday_provider, make_appointment):
        make_appointment(weekday_provider, datetime(2030, 1, 7, 10, 15), duration_minutes=30)

        slots = AvailabilityService.generate_availability(repository, weekday_provider.id, MONDAY, MONDAY, 30)
        starts = slot_starts(slots)

        assert datetime(2030, 1, 7, 10, 0) not in starts
        assert datetime(2030, 1, 7, 10, 30) not in starts
        assert datetime(2030, 1, 7, 9, 30) in starts
        assert datetime(2030, 1, 7, 11, 0) in starts
        assert len(slots) == 12

    def test_inactive_appointments_do_not_block(self, repository, weekday_provider, make_appointment):
        make_appointment(weekday_provider, datetime(2030, 1, 7, 9), status=APPOINTMENT_STATUS_CANCELLED)
        make_appointment(weekday_provider, datetime(2030, 1, 7, 10), status=APPOINTMENT_STATUS_COMPLETED)

        slots = AvailabilityService.generate_availability(repository, weekday_provider.id, MONDAY, MONDAY, 30)
        assert len(slots) == 14

    def test_other_providers_appointments_do_not_block(
        self, repository, db_session, weekday_provider, make_appointment
    ):
        from models import Provider

        other = Provider(name="Dr. Other", timezone="UTC", is_active=True)
        db_session.add(other)
        db_session.commit()
        make_appointment(other, datetime(2030, 1, 7, 9))

        slots = AvailabilityService.generate_availability(repository, weekday_provider.id, MONDAY, MONDAY, 30)
        assert slots[0].start == datetime(2030, 1, 7, 9)

    def test_buffer_keeps_time_free_around_appointments(self, repository, weekday_provider, make_appointment):
        make_appointment(weekday_provider, datetime(2030, 1, 7, 10), duration_minutes=30)

        slots = AvailabilityService.generate_availability(
            repository, weekday_provider.id, MONDAY, MONDAY, 30, buffer_minutes=15
        )
        starts = slot_starts(slots)

        assert datetime(2030, 1, 7, 9, 30) not in starts
        assert datetime(2030, 1, 7, 10, 30) not in starts
        assert datetime(2030, 1, 7, 11, 0) in starts

    def test_multi_day_range_is_chronological(self, repository, weekday_provider):
        slots = AvailabilityService.generate_availability(
            repository, weekday_provider.id, MONDAY, MONDAY + timedelta(days=6), 60
        )
        starts = slot_starts(slots)

        assert starts == sorted(starts)
        # 7 one-hour slots per weekday, none on the weekend
        assert len(slots) == 35

    def test_slots_never_overlap_each_other(self, repository, provider, make_rule):
        make_rule(provider, DayOfWeek.MONDAY, time(9), time(10, 45), time(9, 50), time(10, 5))
        slots = AvailabilityService.generate_availability(repository, provider.id, MONDAY, MONDAY, 20)

        assert slot_starts(slots) == [
            datetime(2030, 1, 7, 9, 0), datetime(2030, 1, 7, 9, 20), datetime(2030, 1, 7, 10, 20)
        ]
        for earlier, later in zip(slots, slots[1:]):
            assert not overlaps(earlier.start, earlier.end, later.start, later.end)

    def test_unknown_provider(self, repository):
        with pytest.raises(NotFound):
            AvailabilityService.generate_availability(repository, 9999, MONDAY, MONDAY, 30)

    def test_inactive_provider_is_not_found(self, repository, db_session, weekday_provider):
        weekday_provider.is_active = False
        db_session.commit()

        with pytest.raises(NotFound):
            AvailabilityService.generate_availability(repository, weekday_provider.id, MONDAY, MONDAY, 30)

    @pytest.mark.parametrize("duration", [0, -30, 1441])
    def test_invalid_duration(self, repository, weekday_provider, duration):
        with pytest.raises(ValidationFailure):
            AvailabilityService.generate_availability(repository, weekday_provider.id, MONDAY, MONDAY, duration)

    def test_end_before_start(self, repository, weekday_provider):
        with pytest.raises(ValidationFailure):
            AvailabilityService.generate_availability(repository, weekday_provider.id, TUESDAY, MONDAY, 30)

    def test_range_too_long(self, repository, weekday_provider):
        with pytest.raises(ValidationFailure):
            AvailabilityService.generate_availability(
                repository, weekday_provider.id, MONDAY, MONDAY + timedelta(days=400), 30
            )


class TestNextAvailableSlot:
    """Test next_available_slot."""

    def test_first_slot_at_or_after_search_from(self, repository, weekday_provider):
        slot = AvailabilityService.next_available_slot(
            repository, weekday_provider.id, 30, datetime(2030, 1, 7, 10, 10)
        )
        assert slot.start == datetime(2030, 1, 7, 10, 30)

    def test_skips_booked_slots(self, repository, weekday_provider, make_appointment):
        make_appointment(weekday_provider, datetime(2030, 1, 7, 9), duration_minutes=90)
        slot = AvailabilityService.next_available_slot(repository, weekday_provider.id, 30, datetime(2030, 1, 7, 8))
        assert slot.start == datetime(2030, 1, 7, 10, 30)

    def test_rolls_over_to_next_working_day(self, repository, weekday_provider):
        slot = AvailabilityService.next_available_slot(
            repository, weekday_provider.id, 30, datetime(2030, 1, 11, 16, 45)
        )
        # Friday evening -> Monday morning
        assert slot.start == datetime(2030, 1, 14, 9, 0)

    def test_none_within_horizon(self, repository, weekday_provider, make_time_off):
        make_time_off(weekday_provider, MONDAY, MONDAY + timedelta(days=20))
        slot = AvailabilityService.next_available_slot(
            repository, weekday_provider.id, 30, datetime(2030, 1, 7, 8), max_days_ahead=7
        )
        assert slot is None

    def test_aware_search_from_uses_provider_timezone(self, repository, db_session, make_rule):
        from models import Provider

        taipei = Provider(name="Dr. Taipei", timezone="Asia/Taipei", is_active=True)
        db_session.add(taipei)
        db_session.commit()
        make_rule(taipei, DayOfWeek.MONDAY, time(9), time(17))

        # 02:00 UTC is 10:00 in Taipei
        slot = AvailabilityService.next_available_slot(
            repository, taipei.id, 30, datetime(2030, 1, 7, 2, 0, tzinfo=timezone.utc)
        )
        assert slot.start == datetime(2030, 1, 7, 10, 0)

    def test_validation(self, repository, weekday_provider):
        with pytest.raises(ValidationFailure):
            AvailabilityService.next_available_slot(repository, weekday_provider.id, 0, datetime(2030, 1, 7))
        with pytest.raises(ValidationFailure):
            AvailabilityService.next_available_slot(
                repository, weekday_provider.id, 30, datetime(2030, 1, 7), max_days_ahead=-1
            )


class TestProviderSchedule:
    """Test the day schedule grid."""

    def test_grid_marks_break_and_occupied_cells(self, repository, weekday_provider, make_appointment):
        appointment = make_appointment(weekday_provider, datetime(2030, 1, 7, 9, 30), label="Follow-up")

        cells = AvailabilityService.get_provider_schedule(repository, weekday_provider.id, MONDAY, MONDAY)
        by_start = {cell.start.time(): cell for cell in cells}

        assert len(cells) == 16
        assert by_start[time(9, 0)].available
        assert by_start[time(9, 30)].status == "occupied"
        assert by_start[time(9, 30)].appointment_id == appointment.id
        assert by_start[time(9, 30)].label == "Follow-up"
        assert by_start[time(12, 0)].status == "break"
        assert by_start[time(12, 30)].status == "break"
        assert by_start[time(16, 30)].end == datetime(2030, 1, 7, 17, 0)

    def test_last_cell_is_cut_at_window_end(self, repository, provider, make_rule):
        make_rule(provider, DayOfWeek.MONDAY, time(9), time(10, 15))

        cells = AvailabilityService.get_provider_schedule(repository, provider.id, MONDAY, MONDAY, grid_minutes=30)

        assert [cell.start.time() for cell in cells] == [time(9, 0), time(9, 30), time(10, 0)]
        assert cells[-1].end == datetime(2030, 1, 7, 10, 15)

    def test_non_working_days_are_omitted(self, repository, weekday_provider):
        assert AvailabilityService.get_provider_schedule(repository, weekday_provider.id, SATURDAY, SATURDAY) == []
