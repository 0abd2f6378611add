"""
Integration tests for provider, weekly rule and time-off administration.
"""

import pytest
from datetime import date, time, timedelta

from sqlalchemy import func, select

from models import WeeklyScheduleRule
from services import NotFound, ScheduleRuleService, ValidationFailure
from shared_types.scheduling import DayOfWeek

MONDAY = date(2030, 1, 7)


class TestCreateProvider:
    """Test ScheduleRuleService.create_provider."""

    def test_create_provider(self, repository):
        provider = ScheduleRuleService.create_provider(repository, "  Dr. Lin ", "Asia/Taipei")

        assert provider.id is not None
        assert provider.name == "Dr. Lin"
        assert provider.timezone == "Asia/Taipei"
        assert provider.is_active

    def test_unknown_timezone(self, repository):
        with pytest.raises(ValidationFailure):
            ScheduleRuleService.create_provider(repository, "Dr. Lin", "Mars/Olympus_Mons")

    def test_blank_name(self, repository):
        with pytest.raises(ValidationFailure):
            ScheduleRuleService.create_provider(repository, "   ")


class TestUpsertWeeklyRule:
    """Test ScheduleRuleService.upsert_weekly_rule."""

    def test_creates_rule(self, repository, provider):
        rule = ScheduleRuleService.upsert_weekly_rule(
            repository, provider.id, "monday", "09:00", "17:00", break_start="12:00", break_end="13:00"
        )

        assert rule.day == DayOfWeek.MONDAY
        assert rule.start_time == time(9)
        assert rule.end_time == time(17)
        assert rule.break_start == time(12)
        assert rule.is_available

    def test_second_rule_for_same_day_replaces_first(self, repository, db_session, provider):
        ScheduleRuleService.upsert_weekly_rule(
            repository, provider.id, 0, "09:00", "17:00", break_start="12:00", break_end="13:00"
        )
        rule = ScheduleRuleService.upsert_weekly_rule(repository, provider.id, 0, "10:00", "14:00")

        count = db_session.execute(
            select(func.count()).select_from(WeeklyScheduleRule).where(WeeklyScheduleRule.provider_id == provider.id)
        ).scalar_one()
        assert count == 1
        assert rule.start_time == time(10)
        assert rule.break_start is None
        assert rule.break_end is None

    def test_marking_day_unavailable(self, repository, provider):
        rule = ScheduleRuleService.upsert_weekly_rule(
            repository, provider.id, DayOfWeek.SUNDAY, "09:00", "17:00", is_available=False
        )
        assert not rule.is_available

    def test_get_weekly_schedule(self, repository, weekday_provider):
        rules = ScheduleRuleService.get_weekly_schedule(repository, weekday_provider.id)

        assert sorted(rules) == [
            DayOfWeek.MONDAY, DayOfWeek.TUESDAY, DayOfWeek.WEDNESDAY, DayOfWeek.THURSDAY, DayOfWeek.FRIDAY
        ]
        assert DayOfWeek.SATURDAY not in rules

    @pytest.mark.parametrize("kwargs", [
        {"start_time": "17:00", "end_time": "09:00"},
        {"start_time": "09:00", "end_time": "09:00"},
        {"start_time": "9am", "end_time": "17:00"},
        {"start_time": "09:00", "end_time": "17:00", "break_start": "12:00"},
        {"start_time": "09:00", "end_time": "17:00", "break_start": "13:00", "break_end": "12:00"},
        {"start_time": "09:00", "end_time": "17:00", "break_start": "08:00", "break_end": "10:00"},
        {"start_time": "09:00", "end_time": "17:00", "break_start": "09:00", "break_end": "10:00"},
        {"start_time": "09:00", "end_time": "17:00", "break_start": "16:00", "break_end": "17:00"},
    ])
    def test_invalid_rules(self, repository, provider, kwargs):
        with pytest.raises(ValidationFailure):
            ScheduleRuleService.upsert_weekly_rule(repository, provider.id, 0, **kwargs)

    def test_invalid_day(self, repository, provider):
        with pytest.raises(ValidationFailure):
            ScheduleRuleService.upsert_weekly_rule(repository, provider.id, 7, "09:00", "17:00")

    def test_unknown_provider(self, repository):
        with pytest.raises(NotFound):
            ScheduleRuleService.upsert_weekly_rule(repository, 9999, 0, "09:00", "17:00")


class TestAddTimeOff:
    """Test ScheduleRuleService.add_time_off."""

    def test_add_time_off(self, repository, provider):
        period = ScheduleRuleService.add_time_off(
            repository, provider.id, MONDAY, MONDAY + timedelta(days=4), reason="Conference"
        )

        assert period.id is not None
        assert period.covers(MONDAY + timedelta(days=2))
        assert not period.covers(MONDAY + timedelta(days=5))

    def test_single_day(self, repository, provider):
        period = ScheduleRuleService.add_time_off(repository, provider.id, MONDAY, MONDAY)
        assert period.covers(MONDAY)

    def test_end_before_start(self, repository, provider):
        with pytest.raises(ValidationFailure):
            ScheduleRuleService.add_time_off(repository, provider.id, MONDAY, MONDAY - timedelta(days=1))

    def test_unknown_provider(self, repository):
        with pytest.raises(NotFound):
            ScheduleRuleService.add_time_off(repository, 9999, MONDAY, MONDAY)
