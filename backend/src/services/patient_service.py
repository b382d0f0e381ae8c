"""
Patient service for shared patient business logic.

This module contains the clinical registry lookup, customer create-or-update
and the same-day reservation check (conflict guard) that are shared between
the public booking flow and the staff backend.
"""

import logging
from datetime import date as date_type
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from core.config import RESERVATION_CHECK_IGNORES_YEAR
from core.exceptions import PatientNotFound
from models import Appointment, CalendarEvent, ClinicalRecord, Customer
from shared_types import CustomerDraft, ReservationSummary
from utils.datetime_utils import clinic_now, day_bounds, format_time, is_same_calendar_day
from utils.patient_validators import canonicalize_ci, ci_like_pattern, ci_matches, normalize_complement

logger = logging.getLogger(__name__)


class PatientService:
    """
    Service class for patient operations.

    CI values are compared in canonical form (digits only) on both sides;
    the registry keeps its raw text untouched.
    """

    @staticmethod
    def find_patient_records(
        db: Session,
        ci: str,
        complement: Optional[str] = None
    ) -> List[ClinicalRecord]:
        """
        Look up clinical registry records by CI.

        The database narrows candidates with a LIKE pattern over the raw
        column, then canonical equality decides. The complement acts as a
        hint: when some candidates carry exactly that complement only those
        are returned, otherwise every CI match is.

        Args:
            db: Database session
            ci: CI as typed by the user
            complement: Optional CI complement

        Returns:
            Matching records (possibly empty)
        """
        if not canonicalize_ci(ci):
            return []

        candidates = db.query(ClinicalRecord).filter(
            ClinicalRecord.ci_number.like(ci_like_pattern(ci))
        ).order_by(ClinicalRecord.id).all()
        matches = [record for record in candidates if ci_matches(record.ci_number, ci)]

        wanted = normalize_complement(complement)
        if wanted:
            exact = [record for record in matches if normalize_complement(record.complement) == wanted]
            if exact:
                return exact
        return matches

    @staticmethod
    def find_customers(
        db: Session,
        ci: str,
        complement: Optional[str] = None
    ) -> List[Customer]:
        """Customers with the canonical CI (and the complement, when given)."""
        canonical = canonicalize_ci(ci)
        if not canonical:
            return []

        query = db.query(Customer).filter(Customer.ci == canonical)
        wanted = normalize_complement(complement)
        if wanted:
            query = query.filter(Customer.complement == wanted)
        return query.order_by(Customer.id).all()

    @staticmethod
    def upsert_customer(db: Session, draft: CustomerDraft) -> Customer:
        """
        Create or update a customer by its natural key (CI, complement).

        Only flushes; the caller owns the transaction.

        Args:
            db: Database session
            draft: Submitted customer data

        Returns:
            The created or updated Customer
        """
        canonical = canonicalize_ci(draft.ci)
        complement = normalize_complement(draft.complement)

        query = db.query(Customer).filter(Customer.ci == canonical)
        if complement is None:
            query = query.filter(Customer.complement.is_(None))
        else:
            query = query.filter(Customer.complement == complement)
        customer = query.first()

        if customer is None:
            customer = Customer(ci=canonical, complement=complement)
            db.add(customer)
            logger.info(f"Creating customer for CI {canonical}")

        customer.first_name = draft.first_name.strip()
        customer.last_name = draft.last_name.strip()
        if draft.clinical_record_code is not None:
            customer.clinical_record_code = draft.clinical_record_code
        if draft.phone_number is not None:
            customer.phone_number = draft.phone_number
        if draft.email is not None:
            customer.email = draft.email

        db.flush()
        return customer

    @staticmethod
    def find_reservation_for_customers(
        db: Session,
        customers: List[Customer],
        reference_date: date_type,
        exclude_appointment_id: Optional[int] = None
    ) -> Optional[Appointment]:
        """
        First appointment of any of ``customers`` that falls on ``reference_date``.

        Dates are compared component-wise; with RESERVATION_CHECK_IGNORES_YEAR
        only month and day are compared.
        """
        if not customers:
            return None

        query = db.query(Appointment).join(CalendarEvent).options(
            joinedload(Appointment.calendar_event),
            joinedload(Appointment.service),
        ).filter(
            Appointment.customer_id.in_([customer.id for customer in customers])
        )
        if not RESERVATION_CHECK_IGNORES_YEAR:
            day_start, day_end = day_bounds(reference_date)
            query = query.filter(
                CalendarEvent.start_time >= day_start,
                CalendarEvent.start_time < day_end
            )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.calendar_event_id != exclude_appointment_id)

        for appointment in query.order_by(CalendarEvent.start_time).all():
            if is_same_calendar_day(appointment.start_time, reference_date, RESERVATION_CHECK_IGNORES_YEAR):
                return appointment
        return None

    @staticmethod
    def find_active_reservation(
        db: Session,
        ci: str,
        complement: Optional[str] = None,
        reference_date: Optional[date_type] = None,
        exclude_appointment_id: Optional[int] = None
    ) -> Optional[Appointment]:
        """
        Conflict guard: the patient's reservation on the reference date, if any.

        Args:
            db: Database session
            ci: CI as typed by the user
            complement: Optional CI complement
            reference_date: Date to check (defaults to the clinic's current date)
            exclude_appointment_id: Appointment being rescheduled

        Returns:
            The existing Appointment, or None

        Raises:
            PatientNotFound: If the clinical registry has no record for the CI
        """
        if not PatientService.find_patient_records(db, ci, complement):
            raise PatientNotFound()

        if reference_date is None:
            reference_date = clinic_now().date()

        customers = PatientService.find_customers(db, ci, complement)
        return PatientService.find_reservation_for_customers(
            db, customers, reference_date, exclude_appointment_id
        )

    @staticmethod
    def summarize_reservation(appointment: Appointment) -> ReservationSummary:
        """Build the reservation summary (date, service, provider) for an appointment."""
        provider = appointment.calendar_event.provider
        return ReservationSummary(
            appointment_id=appointment.calendar_event_id,
            date=appointment.start_time.date().isoformat(),
            start_time=format_time(appointment.start_time),
            service=appointment.service.name,
            provider=provider.full_name,
            booking_hash=appointment.booking_hash,
        )
