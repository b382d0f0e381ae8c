"""
Shared types for the booking transaction.

Drafts are the validated input of ``AppointmentService.submit_appointment``;
they are built by the API layer from request models so the service does not
depend on HTTP types.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class CustomerDraft:
    """Customer data submitted with a booking. (ci, complement) is the natural key."""
    ci: str
    first_name: str
    last_name: str
    complement: Optional[str] = None
    clinical_record_code: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None


@dataclass
class AppointmentDraft:
    """
    Requested appointment.

    ``start_time`` is provider-local; ``end_time`` may be omitted and is then
    derived from the service duration. ``customer_id`` lets staff book an
    existing customer without a customer payload. A ``provider_id`` of None
    lets the first free provider offering the service take the booking.
    """
    provider_id: Optional[int]
    service_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    customer_id: Optional[int] = None
    notes: Optional[str] = None
    municipality: Optional[str] = None
    medical_center: Optional[str] = None


@dataclass
class BookingResult:
    """Outcome of a committed booking."""
    appointment_id: int
    booking_hash: str
    customer_id: int
    provider_id: int
    service_id: int
    start_time: datetime
    end_time: datetime
    rescheduled: bool = False
