"""
Time-off period model representing full-day provider unavailability.

A period blocks every calendar date from start_date through end_date
(inclusive), overriding the weekly rule for those dates. Periods may
overlap each other; a date is blocked if any period covers it.
"""

from datetime import date as date_type, datetime
from typing import Optional

from sqlalchemy import Date, String, TIMESTAMP, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_REASON_LENGTH
from core.database import Base


class TimeOffPeriod(Base):
    """Date-range exception marking a provider unavailable."""

    __tablename__ = "time_off_periods"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id", ondelete="CASCADE"))
    """Reference to the provider taking time off."""

    start_date: Mapped[date_type] = mapped_column(Date)
    """First blocked date."""

    end_date: Mapped[date_type] = mapped_column(Date)
    """Last blocked date (inclusive)."""

    reason: Mapped[Optional[str]] = mapped_column(String(MAX_REASON_LENGTH), nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))

    # Relationships
    provider = relationship("Provider", back_populates="time_off_periods")

    __table_args__ = (
        CheckConstraint('start_date <= end_date', name='check_valid_time_off_range'),
        Index('idx_time_off_periods_provider_dates', 'provider_id', 'start_date', 'end_date'),
    )

    def covers(self, target_date: date_type) -> bool:
        """Check if this period blocks the given date."""
        return self.start_date <= target_date <= self.end_date

    def __repr__(self) -> str:
        return f"<TimeOffPeriod(id={self.id}, provider_id={self.provider_id}, {self.start_date}..{self.end_date})>"
