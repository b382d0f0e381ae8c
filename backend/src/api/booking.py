# pyright: reportMissingTypeStubs=false
"""
Public booking API endpoints.

These endpoints back the patient-facing booking page: available hours,
unavailable dates of a month, the same-day reservation check, the referral
catalogue and the booking submission itself. Submissions are protected by a
CAPTCHA when it is enabled, and only the opaque booking hash is ever
exchanged with the page.
"""

import logging
from datetime import date
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from core.constants import ANY_PROVIDER
from core.database import get_db
from models import ClinicalRecord
from services import AppointmentService, AvailabilityService, LocationService, PatientService
from shared_types import AppointmentDraft, CustomerDraft
from utils.datetime_utils import format_time, month_bounds, parse_date_string
from utils.provider_helpers import get_provider
from api.responses import (
    AppointmentSubmitRequest, AvailableHoursResponse, BookedResponse, BookingSubmitRequest,
    BookingSummaryResponse, ClinicalRecordListResponse, ClinicalRecordResponse, MedicalCenterResponse,
    MunicipalityResponse, ReservationResponse, UnavailableDatesResponse
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Helper Functions =====

def parse_date_param(value: str) -> date:
    """Parse a date query parameter, mapping format errors to 400."""
    try:
        return parse_date_string(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid date format (use YYYY-MM-DD)"
        )


def parse_provider_param(value: str) -> Optional[int]:
    """Parse a provider query parameter: an ID, or "any-provider" (None)."""
    if value == ANY_PROVIDER:
        return None
    try:
        return int(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'provider_id must be an integer or "{ANY_PROVIDER}"'
        )


def resolve_booking_hash(db: Session, booking_hash: Optional[str]) -> Optional[int]:
    """Appointment ID behind a booking hash (None when no hash is given)."""
    if not booking_hash:
        return None
    return AppointmentService.get_appointment_by_hash(db, booking_hash).calendar_event_id


def build_drafts(
    request: Union[AppointmentSubmitRequest, BookingSubmitRequest]
) -> tuple[AppointmentDraft, Optional[CustomerDraft]]:
    """Convert the submission body into service drafts."""
    appointment = request.appointment
    draft = AppointmentDraft(
        provider_id=appointment.provider_id,
        service_id=appointment.service_id,
        start_time=appointment.start_time,
        end_time=appointment.end_time,
        customer_id=appointment.customer_id,
        notes=appointment.notes,
        municipality=appointment.municipality,
        medical_center=appointment.medical_center,
    )
    customer_draft = None
    if request.customer is not None:
        customer_draft = CustomerDraft(**request.customer.model_dump())
    return draft, customer_draft


def _record_response(record: ClinicalRecord) -> ClinicalRecordResponse:
    return ClinicalRecordResponse(
        ci=record.ci_number,
        complement=record.complement,
        first_name=record.first_name,
        last_name=record.last_name,
        record_code=record.record_code,
    )


# ===== Availability =====

@router.get("/available-hours", response_model=AvailableHoursResponse)
async def get_available_hours(
    service_id: int,
    provider_id: str,
    selected_date: str = Query(..., alias="date"),
    booking_hash: Optional[str] = Query(None, description="Booking being rescheduled"),
    db: Session = Depends(get_db)
):
    """
    Get the bookable start times of a provider for a service on a date.

    Hours are provider-local; the provider timezone is returned so the
    client can convert for display. With provider_id "any-provider" the
    provider with the most free slots is chosen and returned.
    """
    requested_date = parse_date_param(selected_date)
    requested_provider = parse_provider_param(provider_id)
    exclude_appointment_id = resolve_booking_hash(db, booking_hash)

    if requested_provider is None:
        chosen_provider, hours = AvailabilityService.compute_available_slots_any_provider(
            db, service_id, requested_date, exclude_appointment_id=exclude_appointment_id
        )
    else:
        chosen_provider = requested_provider
        hours = AvailabilityService.compute_available_slots(
            db, requested_provider, service_id, requested_date, exclude_appointment_id=exclude_appointment_id
        )

    provider = get_provider(db, chosen_provider) if chosen_provider is not None else None
    return AvailableHoursResponse(
        date=requested_date.isoformat(),
        provider_id=chosen_provider,
        provider_timezone=provider.timezone if provider else None,
        hours=[format_time(hour) for hour in hours],
    )


@router.get("/unavailable-dates", response_model=UnavailableDatesResponse)
async def get_unavailable_dates(
    provider_id: str,
    service_id: int,
    selected_date: str,
    booking_hash: Optional[str] = Query(None, description="Booking being rescheduled"),
    db: Session = Depends(get_db)
):
    """
    Get the dates of the selected date's month on which nothing can be booked.

    With provider_id "any-provider" a date is unavailable only when no
    provider offering the service has a slot.
    """
    anchor = parse_date_param(selected_date)
    requested_provider = parse_provider_param(provider_id)
    exclude_appointment_id = resolve_booking_hash(db, booking_hash)
    first_day, last_day = month_bounds(anchor)

    if requested_provider is None:
        dates = AvailabilityService.compute_unavailable_dates_any_provider(
            db, service_id, first_day, last_day, exclude_appointment_id=exclude_appointment_id
        )
    else:
        dates = AvailabilityService.compute_unavailable_dates(
            db, requested_provider, service_id, first_day, last_day,
            exclude_appointment_id=exclude_appointment_id
        )
    return UnavailableDatesResponse(dates=[day.isoformat() for day in dates])


# ===== Patients =====

@router.get("/patients", response_model=ClinicalRecordListResponse)
async def get_patients(
    ci: str,
    complement: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """Look up clinical registry records by CI (formatting noise is ignored)."""
    records = PatientService.find_patient_records(db, ci, complement)
    return ClinicalRecordListResponse(records=[_record_response(record) for record in records])


@router.get("/patients/reservation", response_model=ReservationResponse)
async def get_patient_reservation(
    ci: str,
    complement: Optional[str] = None,
    selected_date: Optional[str] = Query(None, alias="date"),
    db: Session = Depends(get_db)
):
    """
    Check whether the patient already holds a reservation on a date (default: today).

    Returns 404 (patient_not_found) if the CI is not in the clinical registry.
    """
    reference_date = parse_date_param(selected_date) if selected_date else None
    appointment = PatientService.find_active_reservation(db, ci, complement, reference_date)
    if appointment is None:
        return ReservationResponse(kind="none")
    summary = PatientService.summarize_reservation(appointment)
    return ReservationResponse(kind="reserved", reservation=summary.to_dict())


# ===== Referral catalogue =====

@router.get("/municipalities", response_model=list[MunicipalityResponse])
async def get_municipalities(db: Session = Depends(get_db)):
    """List the municipalities patients can be referred from."""
    return [
        MunicipalityResponse(code=municipality.code, name=municipality.name)
        for municipality in LocationService.list_municipalities(db)
    ]


@router.get("/medical-centers", response_model=list[MedicalCenterResponse])
async def get_medical_centers(
    municipality_code: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """List the medical centers registered for the current year."""
    return [
        MedicalCenterResponse(code=center.code, name=center.name, municipality_code=center.municipality_code)
        for center in LocationService.list_medical_centers(db, municipality_code)
    ]


# ===== Booking =====

@router.post("/appointments", response_model=BookedResponse)
async def submit_appointment(
    request: BookingSubmitRequest,
    http_request: Request,
    db: Session = Depends(get_db)
):
    """
    Submit a booking from the public booking page.

    A booking_hash turns the submission into a reschedule of that booking;
    only its own patient may move it.

    Errors are tagged payloads: patient_not_found, already_reserved,
    slot_no_longer_available, challenge_failed, invalid_interval,
    unknown_location, not_found.
    """
    draft, customer_draft = build_drafts(request)
    remote_ip = http_request.client.host if http_request.client else None

    result = AppointmentService.submit_appointment(
        db,
        draft,
        customer_draft=customer_draft,
        exclude_appointment_id=resolve_booking_hash(db, request.booking_hash),
        challenge_response=request.captcha,
        remote_ip=remote_ip,
    )
    return BookedResponse(
        booking_hash=result.booking_hash,
        start_time=result.start_time.isoformat(),
        end_time=result.end_time.isoformat(),
        rescheduled=result.rescheduled,
    )


@router.get("/appointments/{booking_hash}", response_model=BookingSummaryResponse)
async def get_booking(booking_hash: str, db: Session = Depends(get_db)):
    """Get the confirmation summary of a booking by its opaque hash."""
    appointment = AppointmentService.get_appointment_by_hash(db, booking_hash)
    provider = appointment.calendar_event.provider
    return BookingSummaryResponse(
        booking_hash=appointment.booking_hash,
        date=appointment.start_time.date().isoformat(),
        start_time=format_time(appointment.start_time),
        end_time=format_time(appointment.end_time),
        service=appointment.service.name,
        provider=provider.full_name,
        provider_timezone=provider.timezone,
        patient_name=appointment.customer.full_name,
    )
