"""
Integration tests for the booking transaction.

Covers AppointmentService.submit_appointment end to end: the registry
requirement, the same-day conflict guard, CAPTCHA, the availability
re-check, rescheduling and the all-or-nothing commit.
"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import patch

from fastapi import HTTPException

from core.exceptions import (
    AlreadyReserved, ChallengeFailed, InvalidInterval, PatientNotFound, RecordNotFound,
    SlotNoLongerAvailable, UnknownLocation
)
from models import Appointment, CalendarEvent, Customer, ProviderService
from services import AppointmentService, AvailabilityService
from shared_types import AppointmentDraft, CustomerDraft
from tests.utils import (
    MONDAY, TUESDAY, at, create_appointment, create_block, create_clinical_record, create_customer,
    create_medical_center, create_municipality, create_provider, create_service
)


@pytest.fixture
def booking_setup(db_session):
    provider = create_provider(db_session)
    service = create_service(db_session, provider=provider, duration_minutes=20)
    record = create_clinical_record(db_session)
    return provider, service, record


def make_drafts(provider, service, start_time, ci="1234567", first_name="Juan", **extra):
    draft = AppointmentDraft(
        provider_id=provider.id,
        service_id=service.id,
        start_time=start_time,
        **extra
    )
    customer = CustomerDraft(ci=ci, first_name=first_name, last_name="Perez")
    return draft, customer


# Sunday before MONDAY
SUNDAY_BEFORE = datetime(2030, 1, 6, 9, 0)


def count(db_session, model):
    return db_session.query(model).count()


class TestSuccessfulBooking:

    def test_booking_creates_appointment_and_customer(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        draft, customer = make_drafts(provider, service, at(MONDAY, "08:20"), notes="First visit")

        result = AppointmentService.submit_appointment(db_session, draft, customer_draft=customer)

        assert result.rescheduled is False
        assert len(result.booking_hash) == 32
        assert result.start_time == at(MONDAY, "08:20")
        assert result.end_time == at(MONDAY, "08:40")

        appointment = AppointmentService.get_appointment_by_hash(db_session, result.booking_hash)
        assert appointment.calendar_event_id == result.appointment_id
        assert appointment.notes == "First visit"
        assert appointment.customer.ci == "1234567"

    def test_booked_slot_disappears_from_available_hours(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        draft, customer = make_drafts(provider, service, at(MONDAY, "08:20"))
        AppointmentService.submit_appointment(db_session, draft, customer_draft=customer)

        slots = AvailabilityService.compute_available_slots(
            db_session, provider.id, service.id, MONDAY, now=datetime(2029, 12, 1)
        )

        starts = [datetime.combine(MONDAY, slot) for slot in slots]
        for start in starts:
            assert not (start < at(MONDAY, "08:40") and at(MONDAY, "08:20") < start + timedelta(minutes=20))

    def test_existing_customer_is_updated(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        create_customer(db_session, ci="1234567", first_name="Old")

        draft, customer = make_drafts(provider, service, at(MONDAY, "08:00"), ci="1.234.567", first_name="New")
        AppointmentService.submit_appointment(db_session, draft, customer_draft=customer)

        assert count(db_session, Customer) == 1
        assert db_session.query(Customer).one().first_name == "New"

    def test_booking_hashes_are_unique(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        create_clinical_record(db_session, ci_number="7654321", record_code="HC-0002")

        first = AppointmentService.submit_appointment(
            db_session, *make_drafts(provider, service, at(MONDAY, "08:00"))
        )
        second = AppointmentService.submit_appointment(
            db_session, *make_drafts(provider, service, at(MONDAY, "08:20"), ci="7654321")
        )

        assert first.booking_hash != second.booking_hash

    def test_staff_booking_skips_registry(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        draft, customer = make_drafts(provider, service, at(MONDAY, "08:00"), ci="999")

        result = AppointmentService.submit_appointment(db_session, draft, customer_draft=customer, staff=True)

        assert result.appointment_id is not None

    def test_staff_booking_off_the_step_grid(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        draft, customer = make_drafts(provider, service, at(MONDAY, "08:05"))

        result = AppointmentService.submit_appointment(db_session, draft, customer_draft=customer, staff=True)

        assert result.start_time == at(MONDAY, "08:05")


class TestRejectedBooking:

    def test_patient_not_in_registry(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        draft, customer = make_drafts(provider, service, at(MONDAY, "08:00"), ci="5555555")

        with pytest.raises(PatientNotFound):
            AppointmentService.submit_appointment(db_session, draft, customer_draft=customer)

        assert count(db_session, Appointment) == 0
        assert count(db_session, Customer) == 0

    def test_second_booking_same_day_is_already_reserved(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        AppointmentService.submit_appointment(db_session, *make_drafts(provider, service, at(MONDAY, "08:00")))

        with pytest.raises(AlreadyReserved) as exc_info:
            AppointmentService.submit_appointment(
                db_session, *make_drafts(provider, service, at(MONDAY, "11:00")), now=at(MONDAY, "07:00")
            )

        reservation = exc_info.value.reservation
        assert reservation["date"] == MONDAY.isoformat()
        assert reservation["start_time"] == "08:00"
        assert reservation["service"] == service.name
        assert reservation["provider"] == provider.full_name
        assert "booking_hash" not in reservation
        assert count(db_session, Appointment) == 1

    def test_reservation_on_another_day_is_not_a_conflict(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        AppointmentService.submit_appointment(db_session, *make_drafts(provider, service, at(MONDAY, "08:00")))

        # Booked on the Sunday before: nothing is held today
        result = AppointmentService.submit_appointment(
            db_session, *make_drafts(provider, service, at(TUESDAY, "08:00")), now=SUNDAY_BEFORE
        )

        assert result.appointment_id is not None

    def test_reservation_held_today_blocks_another_day(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        AppointmentService.submit_appointment(db_session, *make_drafts(provider, service, at(MONDAY, "11:00")))

        with pytest.raises(AlreadyReserved) as exc_info:
            AppointmentService.submit_appointment(
                db_session, *make_drafts(provider, service, at(TUESDAY, "08:00")), now=at(MONDAY, "07:30")
            )

        assert exc_info.value.reservation["start_time"] == "11:00"
        assert count(db_session, Appointment) == 1

    def test_appointment_date_mode_checks_the_booked_date(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        AppointmentService.submit_appointment(db_session, *make_drafts(provider, service, at(MONDAY, "11:00")))

        with patch("services.appointment_service.RESERVATION_CHECK_DATE", "appointment"):
            result = AppointmentService.submit_appointment(
                db_session, *make_drafts(provider, service, at(TUESDAY, "08:00")), now=at(MONDAY, "07:30")
            )
            with pytest.raises(AlreadyReserved):
                AppointmentService.submit_appointment(
                    db_session, *make_drafts(provider, service, at(TUESDAY, "11:00")), now=SUNDAY_BEFORE
                )

        assert result.start_time == at(TUESDAY, "08:00")

    def test_same_month_and_day_of_another_year(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        customer = create_customer(db_session)
        create_appointment(db_session, provider, service, customer, datetime(2029, 1, 7, 8, 0))

        # Default comparison includes the year
        result = AppointmentService.submit_appointment(
            db_session, *make_drafts(provider, service, at(MONDAY, "08:00")), now=at(MONDAY, "07:00")
        )
        AppointmentService.delete_appointment(db_session, result.appointment_id)

        with patch("services.patient_service.RESERVATION_CHECK_IGNORES_YEAR", True):
            with pytest.raises(AlreadyReserved):
                AppointmentService.submit_appointment(
                    db_session, *make_drafts(provider, service, at(MONDAY, "08:00")), now=at(MONDAY, "07:00")
                )

    def test_slot_taken_by_another_patient(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        create_clinical_record(db_session, ci_number="7654321", record_code="HC-0002")
        AppointmentService.submit_appointment(db_session, *make_drafts(provider, service, at(MONDAY, "08:00")))

        with pytest.raises(SlotNoLongerAvailable):
            AppointmentService.submit_appointment(
                db_session, *make_drafts(provider, service, at(MONDAY, "08:10"), ci="7654321")
            )

        assert count(db_session, Customer) == 1

    def test_start_inside_break(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        with pytest.raises(SlotNoLongerAvailable):
            AppointmentService.submit_appointment(db_session, *make_drafts(provider, service, at(MONDAY, "09:50")))

    def test_mismatched_end_time(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        draft, customer = make_drafts(
            provider, service, at(MONDAY, "08:00"), end_time=at(MONDAY, "08:45")
        )
        with pytest.raises(InvalidInterval):
            AppointmentService.submit_appointment(db_session, draft, customer_draft=customer)

    def test_start_in_the_past(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        with pytest.raises(InvalidInterval):
            AppointmentService.submit_appointment(
                db_session, *make_drafts(provider, service, at(MONDAY, "08:00")),
                now=at(MONDAY, "09:00")
            )

    def test_challenge_failed_writes_nothing(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        draft, customer = make_drafts(provider, service, at(MONDAY, "08:00"))

        with patch("services.appointment_service.verify_challenge", return_value=False):
            with pytest.raises(ChallengeFailed):
                AppointmentService.submit_appointment(
                    db_session, draft, customer_draft=customer, challenge_response="bad"
                )

        assert count(db_session, Appointment) == 0
        assert count(db_session, Customer) == 0

    def test_unknown_service(self, db_session, booking_setup):
        provider, _, _ = booking_setup
        draft = AppointmentDraft(provider_id=provider.id, service_id=9999, start_time=at(MONDAY, "08:00"))
        with pytest.raises(RecordNotFound):
            AppointmentService.submit_appointment(
                db_session, draft, customer_draft=CustomerDraft(ci="1234567", first_name="Juan", last_name="Perez")
            )


class TestReschedule:

    def test_reschedule_to_the_same_slot(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        original = AppointmentService.submit_appointment(
            db_session, *make_drafts(provider, service, at(MONDAY, "08:00"))
        )

        result = AppointmentService.submit_appointment(
            db_session,
            *make_drafts(provider, service, at(MONDAY, "08:00")),
            exclude_appointment_id=original.appointment_id
        )

        assert result.rescheduled is True
        assert result.appointment_id == original.appointment_id
        assert result.booking_hash == original.booking_hash
        assert count(db_session, Appointment) == 1

    def test_reschedule_moves_the_interval(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        original = AppointmentService.submit_appointment(
            db_session, *make_drafts(provider, service, at(MONDAY, "08:00"))
        )

        AppointmentService.submit_appointment(
            db_session,
            *make_drafts(provider, service, at(TUESDAY, "11:00")),
            exclude_appointment_id=original.appointment_id
        )

        event = db_session.query(CalendarEvent).filter(CalendarEvent.id == original.appointment_id).one()
        assert event.start_time == at(TUESDAY, "11:00")
        slots = AvailabilityService.compute_available_slots(
            db_session, provider.id, service.id, MONDAY, now=datetime(2029, 12, 1)
        )
        assert slots[0].strftime('%H:%M') == "08:00"

    def test_staff_reschedule_without_customer_data(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        original = AppointmentService.submit_appointment(
            db_session, *make_drafts(provider, service, at(MONDAY, "08:00"))
        )
        draft = AppointmentDraft(provider_id=provider.id, service_id=service.id, start_time=at(MONDAY, "10:30"))

        result = AppointmentService.submit_appointment(
            db_session, draft, exclude_appointment_id=original.appointment_id, staff=True
        )

        assert result.customer_id == original.customer_id
        assert result.start_time == at(MONDAY, "10:30")

    def test_reschedule_of_missing_appointment(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        with pytest.raises(RecordNotFound):
            AppointmentService.submit_appointment(
                db_session,
                *make_drafts(provider, service, at(MONDAY, "08:00")),
                exclude_appointment_id=9999
            )

    def test_public_reschedule_by_another_patient_is_rejected(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        create_clinical_record(db_session, ci_number="7654321", record_code="HC-0002")
        original = AppointmentService.submit_appointment(
            db_session, *make_drafts(provider, service, at(MONDAY, "08:00"))
        )

        with pytest.raises(RecordNotFound):
            AppointmentService.submit_appointment(
                db_session,
                *make_drafts(provider, service, at(TUESDAY, "11:00"), ci="7654321"),
                exclude_appointment_id=original.appointment_id
            )

        appointment = AppointmentService.get_appointment(db_session, original.appointment_id)
        assert appointment.customer_id == original.customer_id
        assert appointment.start_time == at(MONDAY, "08:00")
        assert count(db_session, Customer) == 1

    def test_public_reschedule_keeps_the_customer(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        original = AppointmentService.submit_appointment(
            db_session, *make_drafts(provider, service, at(MONDAY, "08:00"))
        )

        result = AppointmentService.submit_appointment(
            db_session,
            *make_drafts(provider, service, at(MONDAY, "11:00"), ci="1.234.567", first_name="Juanito"),
            exclude_appointment_id=original.appointment_id
        )

        assert result.customer_id == original.customer_id
        assert db_session.query(Customer).one().first_name == "Juanito"

    def test_staff_reschedule_can_change_the_customer(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        original = AppointmentService.submit_appointment(
            db_session, *make_drafts(provider, service, at(MONDAY, "08:00"))
        )
        other = create_customer(db_session, ci="7654321")
        draft = AppointmentDraft(
            provider_id=provider.id, service_id=service.id, start_time=at(MONDAY, "08:00"), customer_id=other.id
        )

        result = AppointmentService.submit_appointment(
            db_session, draft, exclude_appointment_id=original.appointment_id, staff=True
        )

        assert result.customer_id == other.id


class TestMissingCustomer:

    def test_unresolved_customer_is_unprocessable(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        draft = AppointmentDraft(provider_id=provider.id, service_id=service.id, start_time=at(MONDAY, "08:00"))

        with patch.object(AppointmentService, "_resolve_identity", return_value=("1234567", None, None)):
            with pytest.raises(HTTPException) as exc_info:
                AppointmentService.submit_appointment(db_session, draft, staff=True)

        assert exc_info.value.status_code == 422
        assert count(db_session, Appointment) == 0

    def test_staff_booking_without_any_customer(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        draft = AppointmentDraft(provider_id=provider.id, service_id=service.id, start_time=at(MONDAY, "08:00"))

        with pytest.raises(HTTPException) as exc_info:
            AppointmentService.submit_appointment(db_session, draft, staff=True)

        assert exc_info.value.status_code == 422


class TestAnyProvider:

    @pytest.fixture
    def two_providers(self, db_session):
        first = create_provider(db_session)
        second = create_provider(db_session, first_name="Luis", last_name="Vargas")
        service = create_service(db_session, provider=first, duration_minutes=20)
        db_session.add(ProviderService(provider_id=second.id, service_id=service.id))
        db_session.commit()
        create_clinical_record(db_session)
        create_clinical_record(db_session, ci_number="7654321", record_code="HC-0002")
        return first, second, service

    def any_provider_drafts(self, service, start_time, ci="1234567"):
        draft = AppointmentDraft(provider_id=None, service_id=service.id, start_time=start_time)
        return draft, CustomerDraft(ci=ci, first_name="Juan", last_name="Perez")

    def test_first_free_provider_takes_the_booking(self, db_session, two_providers):
        first, second, service = two_providers

        result = AppointmentService.submit_appointment(
            db_session, *self.any_provider_drafts(service, at(MONDAY, "08:00"))
        )

        assert result.provider_id == first.id

    def test_busy_provider_is_skipped(self, db_session, two_providers):
        first, second, service = two_providers
        create_block(db_session, first, at(MONDAY, "08:00"), at(MONDAY, "09:00"))

        result = AppointmentService.submit_appointment(
            db_session, *self.any_provider_drafts(service, at(MONDAY, "08:10"))
        )

        assert result.provider_id == second.id

    def test_all_providers_busy(self, db_session, two_providers):
        first, second, service = two_providers
        create_block(db_session, first, at(MONDAY, "08:00"), at(MONDAY, "09:00"))
        create_block(db_session, second, at(MONDAY, "08:00"), at(MONDAY, "09:00"))

        with pytest.raises(SlotNoLongerAvailable):
            AppointmentService.submit_appointment(
                db_session, *self.any_provider_drafts(service, at(MONDAY, "08:10"))
            )

        assert count(db_session, Appointment) == 0


class TestReferralLocation:

    def test_catalogue_spelling_is_stored(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        municipality = create_municipality(db_session)
        create_medical_center(db_session, municipality)
        draft, customer = make_drafts(
            provider, service, at(MONDAY, "08:00"),
            municipality=" cercado ", medical_center="CENTRO DE SALUD ALALAY"
        )

        result = AppointmentService.submit_appointment(db_session, draft, customer_draft=customer, now=SUNDAY_BEFORE)

        appointment = AppointmentService.get_appointment(db_session, result.appointment_id)
        assert appointment.municipality == "Cercado"
        assert appointment.medical_center == "Centro de Salud Alalay"

    def test_unknown_municipality_writes_nothing(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        create_municipality(db_session)
        draft, customer = make_drafts(provider, service, at(MONDAY, "08:00"), municipality="Atlantis")

        with pytest.raises(UnknownLocation):
            AppointmentService.submit_appointment(db_session, draft, customer_draft=customer)

        assert count(db_session, Appointment) == 0
        assert count(db_session, Customer) == 0

    def test_medical_center_of_another_year(self, db_session, booking_setup):
        provider, service, _ = booking_setup
        municipality = create_municipality(db_session)
        create_medical_center(db_session, municipality, year=2029)
        draft, customer = make_drafts(
            provider, service, at(MONDAY, "08:00"), medical_center="Centro de Salud Alalay"
        )

        with pytest.raises(UnknownLocation):
            AppointmentService.submit_appointment(db_session, draft, customer_draft=customer, now=SUNDAY_BEFORE)
