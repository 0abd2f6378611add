"""
Weekly schedule rule model for a provider's recurring working hours.

Each provider has at most one rule per day of week. A rule describes the
working window for that day, an optional break inside it, and whether the
provider works on that day at all.
"""

from datetime import time, datetime
from typing import Optional

from sqlalchemy import Time, TIMESTAMP, ForeignKey, Boolean, Index, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from shared_types.scheduling import DayOfWeek, WallClockTime


class WeeklyScheduleRule(Base):
    """
    Recurring work-hours definition for one (provider, day-of-week).

    Creating a second rule for the same day replaces the first; the unique
    constraint backs the upsert performed by the repository.
    """

    __tablename__ = "weekly_schedule_rules"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the rule."""

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id", ondelete="CASCADE"))
    """Reference to the provider this rule belongs to."""

    day_of_week: Mapped[int] = mapped_column()
    """Day of the week (0=Monday, 1=Tuesday, ..., 6=Sunday)."""

    start_time: Mapped[time] = mapped_column(Time)
    """Start of the working window."""

    end_time: Mapped[time] = mapped_column(Time)
    """End of the working window (exclusive)."""

    break_start: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    break_end: Mapped[Optional[time]] = mapped_column(Time, nullable=True)

    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """False means the provider does not work on this day regardless of the times."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))

    # Relationships
    provider = relationship("Provider", back_populates="weekly_rules")

    __table_args__ = (
        UniqueConstraint('provider_id', 'day_of_week', name='uq_weekly_schedule_rules_provider_day'),
        CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='check_valid_day_of_week'),
        CheckConstraint('start_time < end_time', name='check_valid_working_window'),
        CheckConstraint(
            "(break_start IS NULL AND break_end IS NULL) OR "
            "(break_start < break_end AND break_start > start_time AND break_end < end_time)",
            name='check_break_within_window'
        ),
        Index('idx_weekly_schedule_rules_provider', 'provider_id'),
    )

    @property
    def day(self) -> DayOfWeek:
        return DayOfWeek(self.day_of_week)

    @property
    def start(self) -> WallClockTime:
        return WallClockTime.from_time(self.start_time)

    @property
    def end(self) -> WallClockTime:
        return WallClockTime.from_time(self.end_time)

    @property
    def break_window(self) -> Optional[tuple[WallClockTime, WallClockTime]]:
        """Break as a (start, end) pair, or None when the rule has no break."""
        if self.break_start is None or self.break_end is None:
            return None
        return WallClockTime.from_time(self.break_start), WallClockTime.from_time(self.break_end)

    def __repr__(self) -> str:
        return (
            f"<WeeklyScheduleRule(provider_id={self.provider_id}, day={self.day.label}, "
            f"{self.start_time}-{self.end_time}, available={self.is_available})>"
        )
