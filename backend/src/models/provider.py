"""
Provider model representing a clinician whose time can be booked.

Every schedule rule, time-off period and appointment belongs to exactly one
provider. The provider row is also the lock target that serializes bookings
for that provider.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_STRING_LENGTH, DEFAULT_PROVIDER_TIMEZONE
from core.database import Base


class Provider(Base):
    """
    Provider entity owning a single scheduling timeline.

    All stored times for this provider are naive wall-clock values in the
    provider's canonical `timezone`.
    """

    __tablename__ = "providers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the provider."""

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Display name of the provider."""

    timezone: Mapped[str] = mapped_column(String(64), default=DEFAULT_PROVIDER_TIMEZONE, nullable=False)
    """IANA timezone name all of this provider's times are expressed in."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Inactive providers are kept for history but cannot be scheduled."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))

    # Relationships
    weekly_rules = relationship("WeeklyScheduleRule", back_populates="provider", cascade="all, delete-orphan")
    time_off_periods = relationship("TimeOffPeriod", back_populates="provider", cascade="all, delete-orphan")
    appointments = relationship("Appointment", back_populates="provider")

    def __repr__(self) -> str:
        return f"<Provider(id={self.id}, name={self.name!r}, timezone={self.timezone})>"
