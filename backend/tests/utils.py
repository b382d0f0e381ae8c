"""
Test utilities for clinic booking tests.

Factories for the rows most tests need: a provider with a weekly plan, a
service it offers, registry records and appointments.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from models import (
    Appointment, CalendarEvent, ClinicalRecord, Customer, MedicalCenter, Municipality, Provider,
    ProviderService, Service, Speciality
)

# 2030-01-07 is a Monday; far enough ahead that "now" never interferes
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
SUNDAY = date(2030, 1, 13)

MORNING_WITH_BREAK: List[Dict[str, Any]] = [
    {"start": "08:00", "end": "12:00", "breaks": [{"start": "10:00", "end": "10:30"}]}
]


def weekday_plan(periods: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """Weekly plan working ``periods`` Monday to Friday, closed at weekends."""
    periods = periods if periods is not None else MORNING_WITH_BREAK
    plan: Dict[str, Any] = {day: periods for day in ("monday", "tuesday", "wednesday", "thursday", "friday")}
    plan["saturday"] = []
    plan["sunday"] = []
    return plan


def create_provider(
    db_session: Session,
    first_name: str = "Ana",
    last_name: str = "Rojas",
    working_plan: Optional[Dict[str, Any]] = None,
    timezone: str = "America/La_Paz",
) -> Provider:
    provider = Provider(
        first_name=first_name,
        last_name=last_name,
        timezone=timezone,
        working_plan=working_plan if working_plan is not None else weekday_plan(),
    )
    db_session.add(provider)
    db_session.commit()
    return provider


def create_service(
    db_session: Session,
    provider: Optional[Provider] = None,
    name: str = "General Consultation",
    duration_minutes: int = 20,
    speciality: Optional[Speciality] = None,
) -> Service:
    """Create a service; when ``provider`` is given it offers the service."""
    service = Service(
        name=name,
        duration_minutes=duration_minutes,
        speciality_id=speciality.id if speciality else None,
    )
    db_session.add(service)
    db_session.flush()
    if provider is not None:
        db_session.add(ProviderService(provider_id=provider.id, service_id=service.id))
    db_session.commit()
    return service


def create_speciality(db_session: Session, name: str = "Cardiology") -> Speciality:
    speciality = Speciality(name=name)
    db_session.add(speciality)
    db_session.commit()
    return speciality


def create_clinical_record(
    db_session: Session,
    ci_number: str = "1.234.567",
    complement: Optional[str] = None,
    first_name: str = "Juan",
    paternal_surname: str = "Perez",
    maternal_surname: str = "Lopez",
    record_code: str = "HC-0001",
) -> ClinicalRecord:
    record = ClinicalRecord(
        ci_number=ci_number,
        complement=complement,
        first_name=first_name,
        paternal_surname=paternal_surname,
        maternal_surname=maternal_surname,
        record_code=record_code,
    )
    db_session.add(record)
    db_session.commit()
    return record


def create_customer(
    db_session: Session,
    ci: str = "1234567",
    complement: Optional[str] = None,
    first_name: str = "Juan",
    last_name: str = "Perez",
) -> Customer:
    customer = Customer(ci=ci, complement=complement, first_name=first_name, last_name=last_name)
    db_session.add(customer)
    db_session.commit()
    return customer


def create_appointment(
    db_session: Session,
    provider: Provider,
    service: Service,
    customer: Customer,
    start_time: datetime,
    booking_hash: Optional[str] = None,
    notes: Optional[str] = None,
) -> Appointment:
    """Insert an appointment directly, bypassing the booking transaction."""
    event = CalendarEvent(
        provider_id=provider.id,
        event_type="appointment",
        start_time=start_time,
        end_time=start_time + timedelta(minutes=service.duration_minutes),
        notes=notes,
    )
    db_session.add(event)
    db_session.flush()
    appointment = Appointment(
        calendar_event_id=event.id,
        customer_id=customer.id,
        service_id=service.id,
        booking_hash=booking_hash or f"hash-{event.id}",
        booked_at=datetime(2029, 12, 1, 9, 0),
    )
    db_session.add(appointment)
    db_session.commit()
    return appointment


def create_block(
    db_session: Session,
    provider: Provider,
    start_time: datetime,
    end_time: datetime,
) -> CalendarEvent:
    block = CalendarEvent(
        provider_id=provider.id,
        event_type="unavailable",
        start_time=start_time,
        end_time=end_time,
    )
    db_session.add(block)
    db_session.commit()
    return block


def at(day: date, hhmm: str) -> datetime:
    """Naive local datetime for ``day`` at "HH:MM"."""
    hour, minute = map(int, hhmm.split(':'))
    return datetime(day.year, day.month, day.day, hour, minute)


def create_municipality(db_session: Session, code: int = 301, name: str = "Cercado") -> Municipality:
    municipality = Municipality(code=code, name=name)
    db_session.add(municipality)
    db_session.commit()
    return municipality


def create_medical_center(
    db_session: Session,
    municipality: Municipality,
    code: int = 3001,
    name: str = "Centro de Salud Alalay",
    year: int = 2030,
) -> MedicalCenter:
    center = MedicalCenter(code=code, name=name, municipality_code=municipality.code, year=year)
    db_session.add(center)
    db_session.commit()
    return center
