"""
Customer model representing a patient who books appointments.

Customers are identified by their national ID number ("CI") and an optional
complement that disambiguates duplicated numbers. The pair is the natural
key used when a booking creates or updates the customer record.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, TIMESTAMP, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_CI_LENGTH, MAX_COMPLEMENT_LENGTH, MAX_STRING_LENGTH
from core.database import Base


class Customer(Base):
    """
    Customer entity holding the contact data of a patient.

    ``ci`` is stored canonicalized (digits only); ``complement`` is stored
    upper-cased without separators, or NULL when the patient has none.
    """

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the customer."""

    ci: Mapped[str] = mapped_column(String(MAX_CI_LENGTH))
    """National ID number, digits only."""

    complement: Mapped[Optional[str]] = mapped_column(String(MAX_COMPLEMENT_LENGTH), nullable=True)
    """CI complement (e.g. '1A'), NULL when absent."""

    first_name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    last_name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))

    clinical_record_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    """Code of the matching record in the clinical registry, if known."""

    phone_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Free-text notes about the patient."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    appointments = relationship("Appointment", back_populates="customer")
    """Appointments booked by this customer."""

    __table_args__ = (
        Index('idx_customers_ci_complement', 'ci', 'complement'),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, ci={self.ci}, complement={self.complement})>"
