"""
Calendar event model representing the base table for all calendar-related events.

This model serves as the foundation for both appointments and unavailability
blocks, providing a single booking ledger per provider while keeping
appointment-specific data in its own table.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, TIMESTAMP, DateTime, ForeignKey, Index, CheckConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_NOTES_LENGTH
from core.database import Base


class CalendarEvent(Base):
    """
    Base calendar event entity: a half-open ``[start_time, end_time)`` interval
    on a provider's calendar.

    ``start_time`` and ``end_time`` are naive wall-clock datetimes in the
    provider's timezone. Unavailability blocks may span several days.
    """

    __tablename__ = "calendar_events"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the calendar event."""

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id", ondelete="CASCADE"))
    """Reference to the provider whose calendar this event occupies."""

    event_type: Mapped[str] = mapped_column(String(50))
    """
    Type of calendar event. Valid values:
    - 'appointment': Patient appointment booking
    - 'unavailable': Provider unavailability block
    """

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=False))
    """Start of the interval (inclusive), provider-local."""

    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=False))
    """End of the interval (exclusive), provider-local."""

    notes: Mapped[Optional[str]] = mapped_column(String(MAX_NOTES_LENGTH), nullable=True)
    """Free-text notes (diagnosis for appointments, reason for blocks)."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the calendar event was created."""

    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the calendar event was last updated."""

    # Relationships
    provider = relationship("Provider", back_populates="calendar_events")
    """Relationship to the Provider who owns this calendar event."""

    appointment = relationship("Appointment", back_populates="calendar_event", uselist=False, cascade="all, delete-orphan")
    """Relationship to the Appointment entity (if this is an appointment event)."""

    # Table constraints and indexes
    __table_args__ = (
        CheckConstraint(
            "event_type IN ('appointment', 'unavailable')",
            name='check_valid_event_type'
        ),
        CheckConstraint(
            "start_time < end_time",
            name='check_valid_time_range'
        ),
        # Two appointments of the same provider can never start at the same time;
        # a lost booking race surfaces as an IntegrityError on this index
        Index(
            'uq_appointment_time_slot', 'provider_id', 'start_time',
            unique=True,
            postgresql_where=text("event_type = 'appointment'"),
            sqlite_where=text("event_type = 'appointment'"),
        ),
        Index('idx_calendar_events_provider_start', 'provider_id', 'start_time'),
        Index('idx_calendar_events_provider_type', 'provider_id', 'event_type'),
    )

    @property
    def is_appointment(self) -> bool:
        return self.event_type == 'appointment'

    @property
    def duration_minutes(self) -> int:
        """Get the duration of the event in minutes."""
        return int((self.end_time - self.start_time).total_seconds() // 60)

    def __repr__(self) -> str:
        return f"<CalendarEvent(id={self.id}, provider_id={self.provider_id}, type={self.event_type}, time={self.start_time}-{self.end_time})>"
