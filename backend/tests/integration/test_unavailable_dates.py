"""
Integration tests for the availability horizon (unavailable dates of a range).
"""

import pytest
from datetime import date, datetime

from core.exceptions import InvalidInterval
from models import ProviderService
from services import AvailabilityService
from tests.utils import (
    MONDAY, at, create_appointment, create_block, create_customer, create_provider, create_service
)

JANUARY_START = date(2030, 1, 1)
JANUARY_END = date(2030, 1, 31)
EARLY_NOW = datetime(2029, 12, 1, 8, 0)

JANUARY_WEEKENDS = [date(2030, 1, d) for d in (5, 6, 12, 13, 19, 20, 26, 27)]


@pytest.fixture
def calendar(db_session):
    provider = create_provider(db_session)
    service = create_service(db_session, provider=provider, duration_minutes=20)
    return provider, service


def test_weekends_are_unavailable(db_session, calendar):
    provider, service = calendar

    dates = AvailabilityService.compute_unavailable_dates(
        db_session, provider.id, service.id, JANUARY_START, JANUARY_END, now=EARLY_NOW
    )

    assert dates == JANUARY_WEEKENDS


def test_fully_blocked_day_is_unavailable(db_session, calendar):
    provider, service = calendar
    create_block(db_session, provider, at(date(2030, 1, 14), "00:00"), at(date(2030, 1, 15), "00:00"))

    dates = AvailabilityService.compute_unavailable_dates(
        db_session, provider.id, service.id, JANUARY_START, JANUARY_END, now=EARLY_NOW
    )

    assert date(2030, 1, 14) in dates
    assert dates == sorted(JANUARY_WEEKENDS + [date(2030, 1, 14)])


def test_service_longer_than_any_free_interval(db_session):
    provider = create_provider(db_session)
    # Longest free interval is 08:00-10:00
    service = create_service(db_session, provider=provider, duration_minutes=150)

    dates = AvailabilityService.compute_unavailable_dates(
        db_session, provider.id, service.id, MONDAY, MONDAY, now=EARLY_NOW
    )

    assert dates == [MONDAY]


def test_adding_a_booking_never_frees_a_date(db_session, calendar):
    provider, service = calendar
    before = AvailabilityService.compute_unavailable_dates(
        db_session, provider.id, service.id, JANUARY_START, JANUARY_END, now=EARLY_NOW
    )

    customer = create_customer(db_session)
    create_appointment(db_session, provider, service, customer, at(MONDAY, "08:00"))
    after = AvailabilityService.compute_unavailable_dates(
        db_session, provider.id, service.id, JANUARY_START, JANUARY_END, now=EARLY_NOW
    )

    assert set(before) <= set(after)


def test_past_dates_are_unavailable(db_session, calendar):
    provider, service = calendar

    # Thursday the 10th at noon: the working day is already over
    dates = AvailabilityService.compute_unavailable_dates(
        db_session, provider.id, service.id, JANUARY_START, date(2030, 1, 11),
        now=datetime(2030, 1, 10, 12, 0)
    )

    assert dates == [date(2030, 1, d) for d in range(1, 11)]


def test_single_day_matches_available_hours(db_session, calendar):
    provider, service = calendar
    create_block(db_session, provider, at(MONDAY, "08:00"), at(MONDAY, "12:00"))

    slots = AvailabilityService.compute_available_slots(
        db_session, provider.id, service.id, MONDAY, now=EARLY_NOW
    )
    dates = AvailabilityService.compute_unavailable_dates(
        db_session, provider.id, service.id, MONDAY, MONDAY, now=EARLY_NOW
    )

    assert slots == []
    assert dates == [MONDAY]


def test_inverted_range_is_rejected(db_session, calendar):
    provider, service = calendar
    with pytest.raises(InvalidInterval):
        AvailabilityService.compute_unavailable_dates(
            db_session, provider.id, service.id, JANUARY_END, JANUARY_START
        )


def test_any_provider_needs_every_provider_unavailable(db_session, calendar):
    first, service = calendar
    second = create_provider(db_session, first_name="Luis", last_name="Vargas")
    db_session.add(ProviderService(provider_id=second.id, service_id=service.id))
    db_session.commit()
    create_block(db_session, first, at(date(2030, 1, 14), "00:00"), at(date(2030, 1, 15), "00:00"))
    create_block(db_session, first, at(date(2030, 1, 16), "00:00"), at(date(2030, 1, 17), "00:00"))
    create_block(db_session, second, at(date(2030, 1, 16), "00:00"), at(date(2030, 1, 17), "00:00"))

    dates = AvailabilityService.compute_unavailable_dates_any_provider(
        db_session, service.id, JANUARY_START, JANUARY_END, now=EARLY_NOW
    )

    assert date(2030, 1, 14) not in dates
    assert date(2030, 1, 16) in dates
    assert dates == sorted(JANUARY_WEEKENDS + [date(2030, 1, 16)])


def test_any_provider_without_providers(db_session):
    service = create_service(db_session, duration_minutes=20)

    dates = AvailabilityService.compute_unavailable_dates_any_provider(
        db_session, service.id, date(2030, 1, 1), date(2030, 1, 3), now=EARLY_NOW
    )

    assert dates == [date(2030, 1, 1), date(2030, 1, 2), date(2030, 1, 3)]
