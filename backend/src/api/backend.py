# pyright: reportMissingTypeStubs=false
"""
Staff backend API endpoints.

These endpoints back the staff calendar and reports screens: saving and
deleting appointments and unavailability blocks, editing working plans and
their date exceptions, and the daily reports.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from core.database import get_db
from models import WorkingPlan
from services import AppointmentService, ReportService, WorkingPlanService
from utils.datetime_utils import clinic_now
from api.booking import build_drafts, parse_date_param
from api.responses import (
    AppointmentByCiResponse, AppointmentSubmitRequest, BookedResponse, SpecialityReportGroup,
    SpecialityReportResponse, UnavailabilityBlockRequest, UnavailabilityBlockResponse,
    WorkingPlanExceptionRequest, WorkingPlanExceptionResponse
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Appointments =====

@router.post("/appointments", response_model=BookedResponse)
async def save_appointment(
    request: AppointmentSubmitRequest,
    db: Session = Depends(get_db)
):
    """
    Create or reschedule an appointment from the staff calendar.

    Runs the same booking transaction as the public flow without the CAPTCHA,
    the registry requirement or the booking-advance window.
    """
    draft, customer_draft = build_drafts(request)
    result = AppointmentService.submit_appointment(
        db,
        draft,
        customer_draft=customer_draft,
        exclude_appointment_id=request.exclude_appointment_id,
        staff=True,
    )
    return BookedResponse(
        booking_hash=result.booking_hash,
        appointment_id=result.appointment_id,
        start_time=result.start_time.isoformat(),
        end_time=result.end_time.isoformat(),
        rescheduled=result.rescheduled,
    )


@router.delete("/appointments/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(appointment_id: int, db: Session = Depends(get_db)):
    """Delete an appointment."""
    AppointmentService.delete_appointment(db, appointment_id)


# ===== Unavailability blocks =====

@router.post("/unavailability-blocks", response_model=UnavailabilityBlockResponse)
async def save_unavailability_block(
    request: UnavailabilityBlockRequest,
    db: Session = Depends(get_db)
):
    """
    Create or update an unavailability block.

    Rejected with conflicting_appointments (409) if it overlaps booked
    appointments, unless ``force`` is set.
    """
    block = AppointmentService.save_unavailability_block(
        db,
        provider_id=request.provider_id,
        start_time=request.start_time,
        end_time=request.end_time,
        notes=request.notes,
        block_id=request.id,
        force=request.force,
    )
    return UnavailabilityBlockResponse(
        id=block.id,
        provider_id=block.provider_id,
        start_time=block.start_time,
        end_time=block.end_time,
        notes=block.notes,
    )


@router.delete("/unavailability-blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_unavailability_block(block_id: int, db: Session = Depends(get_db)):
    """Delete an unavailability block."""
    AppointmentService.delete_unavailability_block(db, block_id)


# ===== Working plans =====

@router.get("/providers/{provider_id}/working-plan", response_model=WorkingPlan)
async def get_working_plan(provider_id: int, db: Session = Depends(get_db)):
    """Get a provider's weekly working plan."""
    return WorkingPlanService.get_working_plan(db, provider_id)


@router.put("/providers/{provider_id}/working-plan", response_model=WorkingPlan)
async def update_working_plan(
    provider_id: int,
    plan: WorkingPlan,
    db: Session = Depends(get_db)
):
    """Replace a provider's weekly working plan."""
    provider = WorkingPlanService.update_working_plan(db, provider_id, plan)
    return provider.get_validated_working_plan()


@router.post("/providers/{provider_id}/working-plan-exceptions", response_model=WorkingPlanExceptionResponse)
async def save_working_plan_exception(
    provider_id: int,
    request: WorkingPlanExceptionRequest,
    db: Session = Depends(get_db)
):
    """
    Create or replace the exception for one date.

    Appointments are never cancelled; those left outside the new working
    hours are returned in ``orphaned_appointments``.
    """
    exception, orphaned = WorkingPlanService.set_exception(
        db, provider_id, request.date, periods=request.periods, is_closed=request.is_closed
    )
    return WorkingPlanExceptionResponse(
        provider_id=provider_id,
        date=exception.date,
        is_closed=exception.is_closed,
        periods=WorkingPlanService.exception_periods(exception),
        orphaned_appointments=[appointment.calendar_event_id for appointment in orphaned],
    )


@router.delete(
    "/providers/{provider_id}/working-plan-exceptions/{exception_date}",
    status_code=status.HTTP_204_NO_CONTENT
)
async def delete_working_plan_exception(
    provider_id: int,
    exception_date: str,
    db: Session = Depends(get_db)
):
    """Remove the exception for a date (idempotent)."""
    WorkingPlanService.clear_exception(db, provider_id, parse_date_param(exception_date))


# ===== Reports =====

@router.get("/reports/appointments-by-speciality", response_model=SpecialityReportResponse)
async def get_appointments_by_speciality(
    speciality_id: Optional[int] = None,
    selected_date: Optional[str] = Query(None, alias="date"),
    db: Session = Depends(get_db)
):
    """Appointments of a day grouped by speciality and provider (default: today)."""
    day = parse_date_param(selected_date) if selected_date else clinic_now().date()
    groups = ReportService.appointments_by_speciality(db, day, speciality_id)
    return SpecialityReportResponse(
        date=day.isoformat(),
        groups=[SpecialityReportGroup(**group) for group in groups],
    )


@router.get("/reports/appointment-by-ci", response_model=AppointmentByCiResponse)
async def get_appointment_by_ci(
    ci: str,
    complement: Optional[str] = None,
    selected_date: Optional[str] = Query(None, alias="date"),
    db: Session = Depends(get_db)
):
    """Appointments of a patient on a day (default: today)."""
    day = parse_date_param(selected_date) if selected_date else clinic_now().date()
    appointments = ReportService.appointments_by_ci(db, ci, complement, day)
    return AppointmentByCiResponse(date=day.isoformat(), appointments=appointments)
