"""
Report service for the staff reports screen.

Builds the daily appointments-by-speciality listing and the
appointment-by-CI lookup as plain data; rendering is left to the client.
"""

import logging
from datetime import date as date_type
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from models import Appointment, CalendarEvent, Provider, Service
from services.patient_service import PatientService
from utils.datetime_utils import clinic_now, day_bounds, format_time

logger = logging.getLogger(__name__)


def _appointment_row(appointment: Appointment) -> Dict[str, Any]:
    customer = appointment.customer
    return {
        "appointment_id": appointment.calendar_event_id,
        "patient_name": customer.full_name,
        "ci": customer.ci,
        "complement": customer.complement,
        "clinical_record_code": customer.clinical_record_code,
        "start_time": format_time(appointment.start_time),
        "end_time": format_time(appointment.end_time),
        "service": appointment.service.name,
        "notes": appointment.notes,
        "municipality": appointment.municipality,
        "medical_center": appointment.medical_center,
    }


class ReportService:
    """Service class for staff reports."""

    @staticmethod
    def appointments_by_speciality(
        db: Session,
        day: date_type,
        speciality_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Appointments of a day grouped by speciality and provider.

        Groups are labelled "<speciality> - <provider last> <provider first>"
        and sorted by label; rows inside a group are sorted by start time.

        Args:
            db: Database session
            day: Provider-local date
            speciality_id: Restrict to one speciality (all when None)

        Returns:
            List of {"group": label, "appointments": [row, ...]}
        """
        day_start, day_end = day_bounds(day)
        query = db.query(Appointment).join(CalendarEvent).join(Service).options(
            joinedload(Appointment.calendar_event).joinedload(CalendarEvent.provider),
            joinedload(Appointment.service).joinedload(Service.speciality),
            joinedload(Appointment.customer),
        ).filter(
            CalendarEvent.start_time >= day_start,
            CalendarEvent.start_time < day_end
        )
        if speciality_id is not None:
            query = query.filter(Service.speciality_id == speciality_id)

        groups: Dict[str, List[Dict[str, Any]]] = {}
        for appointment in query.order_by(CalendarEvent.start_time).all():
            provider: Provider = appointment.calendar_event.provider
            speciality = appointment.service.speciality
            speciality_name = speciality.name if speciality else ""
            label = f"{speciality_name} - {provider.last_name} {provider.first_name}"
            groups.setdefault(label, []).append(_appointment_row(appointment))

        logger.debug(f"Speciality report for {day}: {len(groups)} group(s)")
        return [{"group": label, "appointments": groups[label]} for label in sorted(groups)]

    @staticmethod
    def appointments_by_ci(
        db: Session,
        ci: str,
        complement: Optional[str] = None,
        day: Optional[date_type] = None
    ) -> List[Dict[str, Any]]:
        """
        Appointments of a patient on a day (staff lookup, no registry requirement).

        Args:
            db: Database session
            ci: CI as typed by staff
            complement: Optional CI complement
            day: Date to look at (defaults to the clinic's current date)

        Returns:
            Rows ordered by start time, each with the provider name
        """
        if day is None:
            day = clinic_now().date()

        customers = PatientService.find_customers(db, ci, complement)
        if not customers:
            return []

        day_start, day_end = day_bounds(day)
        appointments = db.query(Appointment).join(CalendarEvent).options(
            joinedload(Appointment.calendar_event).joinedload(CalendarEvent.provider),
            joinedload(Appointment.service),
            joinedload(Appointment.customer),
        ).filter(
            Appointment.customer_id.in_([customer.id for customer in customers]),
            CalendarEvent.start_time >= day_start,
            CalendarEvent.start_time < day_end
        ).order_by(CalendarEvent.start_time).all()

        rows = []
        for appointment in appointments:
            row = _appointment_row(appointment)
            row["provider"] = appointment.calendar_event.provider.full_name
            row["date"] = appointment.start_time.date().isoformat()
            rows.append(row)
        return rows
