"""
Service model representing a bookable medical service.

A service belongs to a speciality and has a fixed duration; the duration is
what the slot calculator fits into a provider's free time.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, ForeignKey, TIMESTAMP, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_STRING_LENGTH
from core.database import Base


class Service(Base):
    """
    Service entity (consultation, check-up, ...) offered by one or more providers.
    """

    __tablename__ = "services"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the service."""

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Human-readable name of the service (e.g., 'General Consultation')."""

    speciality_id: Mapped[Optional[int]] = mapped_column(ForeignKey("specialities.id"), nullable=True)
    """Speciality this service is reported under."""

    duration_minutes: Mapped[int] = mapped_column()
    """Length of an appointment for this service, in minutes. Always positive."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    speciality = relationship("Speciality", back_populates="services")
    """Relationship to the Speciality entity."""

    providers = relationship("Provider", secondary="provider_services", back_populates="services")
    """Providers who offer this service."""

    appointments = relationship("Appointment", back_populates="service")
    """Appointments booked for this service."""

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="check_service_duration_positive"),
    )

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name={self.name}, duration={self.duration_minutes})>"
