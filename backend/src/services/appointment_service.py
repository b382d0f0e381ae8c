"""
Appointment service for shared appointment business logic.

This module contains the booking transaction and the calendar ledger
operations (appointments and unavailability blocks) that are shared between
the public booking flow and the staff backend.
"""

import logging
import secrets
from datetime import datetime, date as date_type, timedelta
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from core.config import BOOK_ADVANCE_TIMEOUT_MINUTES, RESERVATION_CHECK_DATE
from core.constants import (
    BOOKING_HASH_BYTES, EVENT_TYPE_APPOINTMENT, EVENT_TYPE_UNAVAILABLE, RESERVATION_CHECK_APPOINTMENT
)
from core.exceptions import (
    AlreadyReserved, ChallengeFailed, ConflictingAppointments, InvalidInterval,
    PatientNotFound, RecordNotFound, SlotNoLongerAvailable
)
from models import Appointment, CalendarEvent, Customer, Provider
from services.availability_service import AvailabilityService
from services.captcha_service import verify_challenge
from services.location_service import LocationService
from services.patient_service import PatientService
from shared_types import AppointmentDraft, BookingResult, CustomerDraft
from utils.datetime_utils import clinic_now, to_local_naive
from utils.patient_validators import canonicalize_ci, normalize_complement
from utils.provider_helpers import get_provider, get_provider_and_service, get_service

logger = logging.getLogger(__name__)


class AppointmentService:
    """
    Service class for appointment operations.

    A submission moves Draft -> Validated -> Committed, or Draft -> Rejected
    with one of the tagged booking errors. Nothing is written unless the
    whole submission commits.
    """

    @staticmethod
    def get_appointment(db: Session, appointment_id: int) -> Appointment:
        """Get an appointment by its calendar event ID. Raises RecordNotFound if missing."""
        appointment = db.query(Appointment).options(
            joinedload(Appointment.calendar_event),
            joinedload(Appointment.service),
            joinedload(Appointment.customer),
        ).filter(Appointment.calendar_event_id == appointment_id).first()
        if not appointment:
            raise RecordNotFound(f"Appointment {appointment_id} not found")
        return appointment

    @staticmethod
    def get_appointment_by_hash(db: Session, booking_hash: str) -> Appointment:
        """Get an appointment by its opaque booking hash. Raises RecordNotFound if missing."""
        appointment = db.query(Appointment).options(
            joinedload(Appointment.calendar_event),
            joinedload(Appointment.service),
            joinedload(Appointment.customer),
        ).filter(Appointment.booking_hash == booking_hash).first()
        if not appointment:
            raise RecordNotFound("Booking not found")
        return appointment

    @staticmethod
    def _lock_provider(db: Session, provider_id: int) -> Provider:
        """
        Lock the provider row for the rest of the transaction.

        Concurrent submissions for the same provider serialize here, so the
        availability re-check below sees every committed booking.
        """
        provider = db.query(Provider).filter(Provider.id == provider_id).with_for_update().first()
        if not provider:
            raise RecordNotFound(f"Provider {provider_id} not found")
        return provider

    @staticmethod
    def _resolve_end_time(start_time: datetime, end_time: Optional[datetime], duration_minutes: int) -> datetime:
        """End of the requested interval; a supplied end must equal start + duration."""
        expected_end = start_time + timedelta(minutes=duration_minutes)
        if end_time is not None and end_time != expected_end:
            raise InvalidInterval(
                f"End time must be {duration_minutes} minutes after start time"
            )
        return expected_end

    @staticmethod
    def _resolve_identity(
        db: Session,
        draft: AppointmentDraft,
        customer_draft: Optional[CustomerDraft],
        existing: Optional[Appointment]
    ) -> tuple[str, Optional[str], Optional[Customer]]:
        """
        CI, complement and (if already known) customer for the booking.

        Raises:
            HTTPException: 422 if no customer can be determined
        """
        if customer_draft is not None:
            return customer_draft.ci, customer_draft.complement, None

        customer: Optional[Customer] = None
        if draft.customer_id is not None:
            customer = db.query(Customer).filter(Customer.id == draft.customer_id).first()
            if not customer:
                raise RecordNotFound(f"Customer {draft.customer_id} not found")
        elif existing is not None:
            customer = existing.customer

        if customer is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Customer data is required"
            )
        return customer.ci, customer.complement, customer

    @staticmethod
    def _check_owner(existing: Appointment, ci: str, complement: Optional[str]) -> None:
        """
        Public reschedules must come from the appointment's own patient.

        Raises:
            RecordNotFound: If (CI, complement) does not match the booked customer
        """
        owner = existing.customer
        if (
            canonicalize_ci(ci) != owner.ci
            or normalize_complement(complement) != normalize_complement(owner.complement)
        ):
            logger.warning(f"Rejected reschedule of appointment {existing.calendar_event_id} by another patient")
            raise RecordNotFound("Booking not found")

    @staticmethod
    def _select_provider_id(
        db: Session,
        draft: AppointmentDraft,
        exclude_appointment_id: Optional[int]
    ) -> int:
        """
        Provider for the booking; with no provider requested, the first one
        (by ID) offering the service that has the interval free.

        Raises:
            SlotNoLongerAvailable: If no provider has the interval free
        """
        if draft.provider_id is not None:
            return draft.provider_id

        service = get_service(db, draft.service_id)
        if service.duration_minutes <= 0:
            raise InvalidInterval(f"Service duration must be positive, got {service.duration_minutes}")
        provider = AvailabilityService.find_free_provider(
            db,
            service.id,
            draft.start_time,
            draft.start_time + timedelta(minutes=service.duration_minutes),
            exclude_appointment_id
        )
        if provider is None:
            raise SlotNoLongerAvailable()
        return provider.id

    @staticmethod
    def _reference_date(start_time: datetime, local_now: datetime) -> date_type:
        """Date the conflict guard checks, per RESERVATION_CHECK_DATE."""
        if RESERVATION_CHECK_DATE == RESERVATION_CHECK_APPOINTMENT:
            return start_time.date()
        return local_now.date()

    @staticmethod
    def submit_appointment(
        db: Session,
        appointment_draft: AppointmentDraft,
        customer_draft: Optional[CustomerDraft] = None,
        exclude_appointment_id: Optional[int] = None,
        challenge_response: Optional[str] = None,
        remote_ip: Optional[str] = None,
        staff: bool = False,
        now: Optional[datetime] = None
    ) -> BookingResult:
        """
        Validate and atomically commit (or reject) a booking.

        With ``exclude_appointment_id`` the existing appointment is moved
        (rescheduled) instead of a new one being created, and it does not
        count against itself in any check. Outside the staff backend only
        the appointment's own patient may move it, and the appointment keeps
        its customer.

        Args:
            db: Database session
            appointment_draft: Requested appointment (provider-local times);
                a provider_id of None lets the first free provider take it
            customer_draft: Customer data to create or update by (CI, complement)
            exclude_appointment_id: Appointment being rescheduled
            challenge_response: CAPTCHA token (public flow)
            remote_ip: Client IP for CAPTCHA verification
            staff: Staff bookings skip CAPTCHA, the registry requirement and
                the booking-advance window
            now: Current time (defaults to the clinic clock)

        Returns:
            BookingResult with the opaque booking hash

        Raises:
            RecordNotFound: Unknown provider, service, customer or appointment
            InvalidInterval: Malformed interval, or a start in the past
            ChallengeFailed: CAPTCHA verification failed
            PatientNotFound: Public booking for a CI missing from the registry
            AlreadyReserved: The patient already has a reservation on the
                reference date
            UnknownLocation: Referral data not in the catalogue
            SlotNoLongerAvailable: The slot was taken before commit
        """
        draft = appointment_draft
        try:
            # Validate
            provider_id = AppointmentService._select_provider_id(db, draft, exclude_appointment_id)
            provider, service = get_provider_and_service(db, provider_id, draft.service_id)
            if service.duration_minutes <= 0:
                raise InvalidInterval(f"Service duration must be positive, got {service.duration_minutes}")
            start_time = to_local_naive(draft.start_time, provider.timezone)
            end_time = AppointmentService._resolve_end_time(
                start_time,
                to_local_naive(draft.end_time, provider.timezone) if draft.end_time is not None else None,
                service.duration_minutes
            )
            local_now = to_local_naive(now if now is not None else clinic_now(), provider.timezone)

            existing: Optional[Appointment] = None
            if exclude_appointment_id is not None:
                existing = AppointmentService.get_appointment(db, exclude_appointment_id)

            if not staff and not verify_challenge(challenge_response, remote_ip):
                raise ChallengeFailed()

            ci, complement, customer = AppointmentService._resolve_identity(db, draft, customer_draft, existing)

            if not staff and existing is not None:
                AppointmentService._check_owner(existing, ci, complement)

            if not staff and not PatientService.find_patient_records(db, ci, complement):
                raise PatientNotFound()

            # Conflict guard
            reservation = PatientService.find_reservation_for_customers(
                db,
                PatientService.find_customers(db, ci, complement),
                AppointmentService._reference_date(start_time, local_now),
                exclude_appointment_id
            )
            if reservation is not None:
                summary = PatientService.summarize_reservation(reservation)
                raise AlreadyReserved(summary.to_dict())

            if not staff and start_time < local_now + timedelta(minutes=BOOK_ADVANCE_TIMEOUT_MINUTES):
                raise InvalidInterval("Appointments cannot be booked in the past")

            municipality, medical_center = LocationService.validate_location(
                db, draft.municipality, draft.medical_center, year=local_now.year
            )

            # Lock and re-check against the current ledger
            provider = AppointmentService._lock_provider(db, provider.id)
            if not AvailabilityService.is_slot_available(
                db, provider, start_time, end_time, exclude_appointment_id
            ):
                logger.warning(
                    f"Slot {start_time} for provider {provider.id} no longer available"
                )
                raise SlotNoLongerAvailable()

            # Commit
            if customer_draft is not None:
                customer = PatientService.upsert_customer(db, customer_draft)
            if customer is None:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Customer data is required"
                )

            if existing is not None:
                event = existing.calendar_event
                event.provider_id = provider.id
                event.start_time = start_time
                event.end_time = end_time
                event.notes = draft.notes
                appointment = existing
                if staff:
                    appointment.customer_id = customer.id
                appointment.service_id = service.id
            else:
                event = CalendarEvent(
                    provider_id=provider.id,
                    event_type=EVENT_TYPE_APPOINTMENT,
                    start_time=start_time,
                    end_time=end_time,
                    notes=draft.notes
                )
                db.add(event)
                db.flush()  # Get event.id

                appointment = Appointment(
                    calendar_event_id=event.id,
                    customer_id=customer.id,
                    service_id=service.id,
                    booking_hash=secrets.token_hex(BOOKING_HASH_BYTES),
                    booked_at=clinic_now()
                )
                db.add(appointment)

            appointment.municipality = municipality
            appointment.medical_center = medical_center

            db.commit()

            if existing is not None:
                logger.info(f"Rescheduled appointment {appointment.calendar_event_id} to {start_time}")
            else:
                logger.info(f"Created appointment {appointment.calendar_event_id} for customer {customer.id}")

            return BookingResult(
                appointment_id=appointment.calendar_event_id,
                booking_hash=appointment.booking_hash,
                customer_id=appointment.customer_id,
                provider_id=provider.id,
                service_id=service.id,
                start_time=start_time,
                end_time=end_time,
                rescheduled=existing is not None,
            )

        except HTTPException:
            db.rollback()
            raise
        except IntegrityError as e:
            # Lost the race on uq_appointment_time_slot
            logger.warning(f"Appointment booking conflict: {e}")
            db.rollback()
            raise SlotNoLongerAvailable()
        except Exception as e:
            logger.exception(f"Failed to submit appointment: {e}")
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to save appointment"
            )

    @staticmethod
    def delete_appointment(db: Session, appointment_id: int) -> None:
        """
        Delete an appointment, freeing its interval.

        Raises:
            RecordNotFound: If the appointment does not exist
        """
        event = db.query(CalendarEvent).filter(
            CalendarEvent.id == appointment_id,
            CalendarEvent.event_type == EVENT_TYPE_APPOINTMENT
        ).first()
        if not event:
            raise RecordNotFound(f"Appointment {appointment_id} not found")

        db.delete(event)
        db.commit()
        logger.info(f"Deleted appointment {appointment_id}")

    @staticmethod
    def _overlapping_appointment_ids(
        db: Session,
        provider_id: int,
        start_time: datetime,
        end_time: datetime
    ) -> List[int]:
        events = db.query(CalendarEvent).filter(
            CalendarEvent.provider_id == provider_id,
            CalendarEvent.event_type == EVENT_TYPE_APPOINTMENT,
            CalendarEvent.start_time < end_time,
            CalendarEvent.end_time > start_time
        ).order_by(CalendarEvent.start_time).all()
        return [event.id for event in events]

    @staticmethod
    def save_unavailability_block(
        db: Session,
        provider_id: int,
        start_time: datetime,
        end_time: datetime,
        notes: Optional[str] = None,
        block_id: Optional[int] = None,
        force: bool = False
    ) -> CalendarEvent:
        """
        Create or update an unavailability block on a provider's calendar.

        Blocks may span several days. A block that would overlap booked
        appointments is rejected unless ``force`` is set; forced blocks leave
        the appointments in place.

        Args:
            db: Database session
            provider_id: Provider ID
            start_time: Provider-local start
            end_time: Provider-local end (exclusive)
            notes: Reason shown on the staff calendar
            block_id: Existing block to update
            force: Save even if appointments overlap

        Returns:
            The saved CalendarEvent

        Raises:
            InvalidInterval: If start is not before end
            ConflictingAppointments: If appointments overlap and not forced
        """
        provider = get_provider(db, provider_id, active_only=False)
        start_time = to_local_naive(start_time, provider.timezone)
        end_time = to_local_naive(end_time, provider.timezone)
        if start_time >= end_time:
            raise InvalidInterval("Block start must be before its end")

        try:
            AppointmentService._lock_provider(db, provider_id)

            overlapping = AppointmentService._overlapping_appointment_ids(db, provider_id, start_time, end_time)
            if overlapping and not force:
                raise ConflictingAppointments(overlapping)
            if overlapping:
                logger.warning(
                    f"Unavailability block for provider {provider_id} overlaps appointments {overlapping}"
                )

            if block_id is not None:
                block = db.query(CalendarEvent).filter(
                    CalendarEvent.id == block_id,
                    CalendarEvent.event_type == EVENT_TYPE_UNAVAILABLE
                ).first()
                if not block:
                    raise RecordNotFound(f"Unavailability block {block_id} not found")
            else:
                block = CalendarEvent(provider_id=provider_id, event_type=EVENT_TYPE_UNAVAILABLE)
                db.add(block)

            block.provider_id = provider_id
            block.start_time = start_time
            block.end_time = end_time
            block.notes = notes

            db.commit()
            logger.info(f"Saved unavailability block {block.id} for provider {provider_id}")
            return block

        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            logger.exception(f"Failed to save unavailability block: {e}")
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to save unavailability block"
            )

    @staticmethod
    def delete_unavailability_block(db: Session, block_id: int) -> None:
        """
        Delete an unavailability block.

        Raises:
            RecordNotFound: If the block does not exist
        """
        block = db.query(CalendarEvent).filter(
            CalendarEvent.id == block_id,
            CalendarEvent.event_type == EVENT_TYPE_UNAVAILABLE
        ).first()
        if not block:
            raise RecordNotFound(f"Unavailability block {block_id} not found")

        db.delete(block)
        db.commit()
        logger.info(f"Deleted unavailability block {block_id}")
