# Package initialization
# Import all models to ensure relationships are properly established
from .provider import Provider
from .weekly_schedule_rule import WeeklyScheduleRule
from .time_off_period import TimeOffPeriod
from .appointment import Appointment

__all__ = [
    "Provider",
    "WeeklyScheduleRule",
    "TimeOffPeriod",
    "Appointment",
]
