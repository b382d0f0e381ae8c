"""
Shared request and response models for API endpoints.

This module contains Pydantic models that are shared across the public
booking router and the staff backend router to ensure consistency and
reduce duplication.
"""

from datetime import datetime, date as date_type
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from core.constants import ANY_PROVIDER, MAX_NOTES_LENGTH
from models import WorkingPeriod
from utils.patient_validators import canonicalize_ci


# ===== Requests =====

class AppointmentRequest(BaseModel):
    """
    Requested appointment. Times are provider-local unless an offset is given.

    provider_id may be "any-provider" (or null) to let the first free
    provider offering the service take the booking.
    """
    provider_id: Optional[int]
    service_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    customer_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)
    municipality: Optional[str] = None
    medical_center: Optional[str] = None

    @field_validator('provider_id', mode='before')
    @classmethod
    def validate_provider_id(cls, v):
        if v == ANY_PROVIDER:
            return None
        return v


class CustomerRequest(BaseModel):
    """Customer data submitted with a booking."""
    ci: str
    complement: Optional[str] = None
    first_name: str
    last_name: str
    clinical_record_code: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None

    @field_validator('ci')
    @classmethod
    def validate_ci(cls, v: str) -> str:
        if not canonicalize_ci(v):
            raise ValueError('CI must contain digits')
        return v

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Name cannot be empty')
        return v


class BookingSubmitRequest(BaseModel):
    """
    Body of the public POST /appointments.

    A reschedule names the appointment by its booking hash; raw ids are
    never accepted from the booking page.
    """
    appointment: AppointmentRequest
    customer: CustomerRequest
    captcha: Optional[str] = None
    booking_hash: Optional[str] = None


class AppointmentSubmitRequest(BaseModel):
    """Body of the staff POST /appointments."""
    appointment: AppointmentRequest
    customer: Optional[CustomerRequest] = None
    captcha: Optional[str] = None
    exclude_appointment_id: Optional[int] = None


class UnavailabilityBlockRequest(BaseModel):
    """Create or update an unavailability block."""
    id: Optional[int] = None
    provider_id: int
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)
    force: bool = False


class WorkingPlanExceptionRequest(BaseModel):
    """Override of a single date: custom periods, or closed."""
    date: date_type
    is_closed: bool = False
    periods: List[WorkingPeriod] = Field(default_factory=list)


# ===== Responses =====

class AvailableHoursResponse(BaseModel):
    """
    Bookable start times (provider-local HH:MM).

    provider_id names the provider the hours belong to; with "any-provider"
    it is the chosen one, or null when nobody has a free slot.
    """
    date: str
    provider_id: Optional[int] = None
    provider_timezone: Optional[str] = None
    hours: List[str]


class UnavailableDatesResponse(BaseModel):
    """Dates (YYYY-MM-DD) with no bookable slot."""
    dates: List[str]


class BookedResponse(BaseModel):
    """Successful booking."""
    kind: Literal["booked"] = "booked"
    booking_hash: str
    appointment_id: Optional[int] = None  # Staff flow only
    start_time: str
    end_time: str
    rescheduled: bool = False


class MunicipalityResponse(BaseModel):
    code: int
    name: str


class MedicalCenterResponse(BaseModel):
    code: int
    name: str
    municipality_code: int


class BookingSummaryResponse(BaseModel):
    """Booking confirmation looked up by hash."""
    booking_hash: str
    date: str
    start_time: str
    end_time: str
    service: str
    provider: str
    provider_timezone: str
    patient_name: str


class ClinicalRecordResponse(BaseModel):
    """Clinical registry record."""
    ci: str
    complement: Optional[str] = None
    first_name: str
    last_name: str
    record_code: str


class ClinicalRecordListResponse(BaseModel):
    records: List[ClinicalRecordResponse]


class ReservationResponse(BaseModel):
    """Same-day reservation check result."""
    kind: Literal["none", "reserved"]
    reservation: Optional[Dict[str, Any]] = None


class UnavailabilityBlockResponse(BaseModel):
    id: int
    provider_id: int
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = None


class WorkingPlanExceptionResponse(BaseModel):
    provider_id: int
    date: date_type
    is_closed: bool
    periods: List[WorkingPeriod]
    orphaned_appointments: List[int]


class SpecialityReportGroup(BaseModel):
    group: str
    appointments: List[Dict[str, Any]]


class SpecialityReportResponse(BaseModel):
    date: str
    groups: List[SpecialityReportGroup]


class AppointmentByCiResponse(BaseModel):
    date: str
    appointments: List[Dict[str, Any]]
