"""
Appointment model as seen by the scheduling subsystem.

Only the fields that matter for scheduling live here: who is booked, when,
for how long, and whether the appointment still occupies provider time.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import String, DateTime, TIMESTAMP, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import (
    ACTIVE_APPOINTMENT_STATUSES,
    ALL_APPOINTMENT_STATUSES,
    APPOINTMENT_STATUS_SCHEDULED,
    MAX_LABEL_LENGTH,
)
from core.database import Base


class Appointment(Base):
    """
    Appointment entity occupying the half-open interval
    [scheduled_at, scheduled_at + duration_minutes) on a provider's timeline.

    Appointments are never physically deleted; cancelling or completing one
    changes its status, which removes it from conflict checks.
    """

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id"))
    """Reference to the provider whose time is booked."""

    scheduled_at: Mapped[datetime] = mapped_column(DateTime)
    """Start instant, stored as naive wall-clock time in the provider's timezone."""

    duration_minutes: Mapped[int] = mapped_column()

    status: Mapped[str] = mapped_column(String(50), default=APPOINTMENT_STATUS_SCHEDULED, nullable=False)
    """
    Current status. Active values: 'scheduled', 'confirmed', 'checked_in'.
    Inactive values: 'completed', 'cancelled', 'no_show'.
    """

    label: Mapped[Optional[str]] = mapped_column(String(MAX_LABEL_LENGTH), nullable=True)
    """Human-readable label used in conflict messages (e.g. visit type)."""

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))

    # Relationships
    provider = relationship("Provider", back_populates="appointments")

    __table_args__ = (
        CheckConstraint('duration_minutes > 0', name='check_positive_duration'),
        CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in ALL_APPOINTMENT_STATUSES) + ")",
            name='check_appointment_status',
        ),
        Index('idx_appointments_provider_scheduled_at', 'provider_id', 'scheduled_at'),
        Index('idx_appointments_provider_status', 'provider_id', 'status'),
    )

    @property
    def ends_at(self) -> datetime:
        """End of the appointment (exclusive)."""
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_APPOINTMENT_STATUSES

    @property
    def display_label(self) -> str:
        return self.label or f"appointment #{self.id}"

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, provider_id={self.provider_id}, "
            f"scheduled_at={self.scheduled_at}, duration={self.duration_minutes}, status={self.status})>"
        )
