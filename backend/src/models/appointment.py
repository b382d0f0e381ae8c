"""
Appointment model representing a scheduled visit of a customer to a provider.

Appointments are based on the CalendarEvent schema: timing and the provider
live on the calendar event (which is what the slot calculator subtracts),
while this table carries the booking-specific data.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, ForeignKey, Index, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_STRING_LENGTH
from core.database import Base


class Appointment(Base):
    """
    Appointment entity linking a customer, a service and a calendar event.

    An appointment is active for as long as its row exists; removal is an
    explicit deletion.
    """

    __tablename__ = "appointments"

    calendar_event_id: Mapped[int] = mapped_column(ForeignKey("calendar_events.id", ondelete="CASCADE"), primary_key=True)
    """
    Reference to the base calendar event containing timing and provider.
    This serves as the primary key and creates a one-to-one relationship with CalendarEvent.
    """

    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"))
    """Reference to the customer who booked this appointment."""

    service_id: Mapped[int] = mapped_column(ForeignKey("services.id"))
    """Reference to the booked service."""

    booking_hash: Mapped[str] = mapped_column(String(64), unique=True)
    """Opaque reference handed to the public booking flow instead of the id."""

    booked_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """When the booking was first committed."""

    municipality: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Referring municipality, if any."""

    medical_center: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Referring medical center, if any."""

    # Relationships
    calendar_event = relationship("CalendarEvent", back_populates="appointment")
    """Relationship to the CalendarEvent entity containing timing and provider."""

    customer = relationship("Customer", back_populates="appointments")
    """Relationship to the Customer who booked this appointment."""

    service = relationship("Service", back_populates="appointments")
    """Relationship to the booked Service."""

    # Convenience properties
    @property
    def id(self) -> int:
        return self.calendar_event_id

    @property
    def provider_id(self) -> int:
        """Get the provider ID from the associated calendar event."""
        return self.calendar_event.provider_id

    @property
    def provider(self):
        return self.calendar_event.provider

    @property
    def start_time(self) -> datetime:
        """Get the start time from the associated calendar event."""
        return self.calendar_event.start_time

    @property
    def end_time(self) -> datetime:
        """Get the end time from the associated calendar event."""
        return self.calendar_event.end_time

    @property
    def notes(self) -> Optional[str]:
        return self.calendar_event.notes

    __table_args__ = (
        Index('idx_appointments_customer', 'customer_id'),
        Index('idx_appointments_service', 'service_id'),
    )

    def __repr__(self) -> str:
        return f"<Appointment(id={self.calendar_event_id}, customer_id={self.customer_id}, service_id={self.service_id})>"
