"""
Availability service for shared scheduling and availability logic.

This module contains the slot calculator and the availability horizon
scanner that are shared between the public booking flow and the staff
backend. Schedule data is fetched once per request and evaluated by pure
functions, so a single date and a whole month go through the same code.
"""

import logging
from datetime import datetime, date as date_type, time, timedelta
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.config import BOOK_ADVANCE_TIMEOUT_MINUTES, SLOT_STEP_MINUTES
from core.constants import EVENT_TYPE_APPOINTMENT
from core.exceptions import InvalidInterval
from models import CalendarEvent, Provider
from services.working_plan_service import WorkingPlanService
from shared_types import ScheduleData
from utils.datetime_utils import clinic_now, day_bounds, to_local_naive
from utils.interval_utils import clip_intervals, contains_interval, enumerate_starts, subtract_intervals
from utils.provider_helpers import get_provider_and_service, get_providers_for_service

logger = logging.getLogger(__name__)


class AvailabilityService:
    """
    Service class for availability operations.

    All arithmetic happens on naive datetimes in the provider's timezone; the
    returned times are provider-local and are never converted to the viewer's
    timezone here.
    """

    @staticmethod
    def fetch_schedule_data(
        db: Session,
        provider: Provider,
        start_date: date_type,
        end_date: date_type,
        exclude_appointment_id: Optional[int] = None
    ) -> ScheduleData:
        """
        Fetch the schedule data of a provider for an inclusive date range.

        Fetches exceptions and every calendar event (appointments and
        unavailability blocks) overlapping the range in one query each.

        Args:
            db: Database session
            provider: Provider whose calendar is read
            start_date: First date of the range
            end_date: Last date of the range (inclusive)
            exclude_appointment_id: Appointment that must not count against
                itself (reschedule mode)

        Returns:
            ScheduleData for the pure calculations
        """
        range_start = day_bounds(start_date)[0]
        range_end = day_bounds(end_date)[1]

        query = db.query(CalendarEvent).filter(
            CalendarEvent.provider_id == provider.id,
            CalendarEvent.start_time < range_end,
            CalendarEvent.end_time > range_start
        )
        # Exclude the rescheduled appointment; blocks are never excluded
        if exclude_appointment_id is not None:
            query = query.filter(or_(
                CalendarEvent.id != exclude_appointment_id,
                CalendarEvent.event_type != EVENT_TYPE_APPOINTMENT
            ))

        busy = [(event.start_time, event.end_time) for event in query.all()]

        return ScheduleData(
            provider_id=provider.id,
            timezone=provider.timezone,
            working_plan=provider.get_validated_working_plan(),
            exceptions=WorkingPlanService.fetch_exceptions(db, provider.id, start_date, end_date),
            busy=busy,
        )

    @staticmethod
    def calculate_free_intervals(schedule: ScheduleData, day: date_type):
        """
        Free sub-intervals of a date: working intervals minus every busy interval.

        Pure function - no database queries. Uses pre-fetched data.
        """
        working = WorkingPlanService.get_working_intervals(
            schedule.working_plan, day, schedule.exceptions.get(day)
        )
        if not working:
            return []
        day_start, day_end = day_bounds(day)
        busy = clip_intervals(schedule.busy, day_start, day_end)
        return subtract_intervals(working, busy)

    @staticmethod
    def calculate_available_slots(
        schedule: ScheduleData,
        day: date_type,
        duration_minutes: int,
        step_minutes: int = SLOT_STEP_MINUTES,
        earliest_start: Optional[datetime] = None
    ) -> List[datetime]:
        """
        Calculate bookable start times for a date.

        Pure function - no database queries. Uses pre-fetched data.

        Enumeration starts at the beginning of each free sub-interval and
        advances by ``step_minutes``; a start is kept only if the whole
        service duration fits in the same free sub-interval.

        Args:
            schedule: Pre-fetched schedule data covering ``day``
            day: Date to evaluate
            duration_minutes: Service duration
            step_minutes: Distance between candidate starts
            earliest_start: Drop starts before this provider-local datetime

        Returns:
            Ascending list of provider-local start datetimes

        Raises:
            InvalidInterval: If duration or step is not positive
        """
        if duration_minutes <= 0:
            raise InvalidInterval(f"Service duration must be positive, got {duration_minutes}")
        if step_minutes <= 0:
            raise InvalidInterval(f"Slot step must be positive, got {step_minutes}")

        free = AvailabilityService.calculate_free_intervals(schedule, day)
        starts = enumerate_starts(free, timedelta(minutes=duration_minutes), timedelta(minutes=step_minutes))
        if earliest_start is not None:
            starts = [start for start in starts if start >= earliest_start]
        return starts

    @staticmethod
    def _resolve_now(provider: Provider, now: Optional[datetime]) -> datetime:
        """Current provider-local time; ``now`` overrides the clinic clock."""
        return to_local_naive(now if now is not None else clinic_now(), provider.timezone)

    @staticmethod
    def _earliest_start(day: date_type, local_now: datetime) -> Optional[datetime]:
        """
        Earliest allowed start on ``day``, or None when the whole day is allowed.

        Past dates return ``datetime.max`` so nothing survives.
        """
        if day < local_now.date():
            return datetime.max
        if day == local_now.date():
            return local_now + timedelta(minutes=BOOK_ADVANCE_TIMEOUT_MINUTES)
        return None

    @staticmethod
    def compute_available_slots(
        db: Session,
        provider_id: int,
        service_id: int,
        day: date_type,
        exclude_appointment_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[time]:
        """
        Get the bookable start times of a provider for a service on a date.

        Args:
            db: Database session
            provider_id: Provider ID
            service_id: Service ID
            day: Provider-local date
            exclude_appointment_id: Appointment being rescheduled
            now: Current time (defaults to the clinic clock)

        Returns:
            Ascending provider-local times; empty means fully booked

        Raises:
            RecordNotFound: If the provider or service does not exist, or the
                provider does not offer the service
            InvalidInterval: If the service duration is not positive
        """
        provider, service = get_provider_and_service(db, provider_id, service_id)
        try:
            earliest = AvailabilityService._earliest_start(day, AvailabilityService._resolve_now(provider, now))
            if earliest == datetime.max:
                return []

            schedule = AvailabilityService.fetch_schedule_data(db, provider, day, day, exclude_appointment_id)
            starts = AvailabilityService.calculate_available_slots(
                schedule, day, service.duration_minutes, earliest_start=earliest
            )
            return [start.time() for start in starts]
        except HTTPException:
            raise
        except Exception as e:
            logger.exception(f"Availability query error: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Unable to compute available hours"
            )

    @staticmethod
    def compute_unavailable_dates(
        db: Session,
        provider_id: int,
        service_id: int,
        start_date: date_type,
        end_date: date_type,
        exclude_appointment_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[date_type]:
        """
        Get the dates in an inclusive range on which no slot is bookable.

        A date is unavailable iff its slot list is empty. Schedule data for
        the whole range is fetched once.

        Returns:
            Ascending list of unavailable dates
        """
        if end_date < start_date:
            raise InvalidInterval(f"Date range end {end_date} is before start {start_date}")

        provider, service = get_provider_and_service(db, provider_id, service_id)
        try:
            local_now = AvailabilityService._resolve_now(provider, now)
            schedule = AvailabilityService.fetch_schedule_data(
                db, provider, start_date, end_date, exclude_appointment_id
            )

            unavailable: List[date_type] = []
            day = start_date
            while day <= end_date:
                earliest = AvailabilityService._earliest_start(day, local_now)
                if earliest == datetime.max or not AvailabilityService.calculate_available_slots(
                    schedule, day, service.duration_minutes, earliest_start=earliest
                ):
                    unavailable.append(day)
                day += timedelta(days=1)
            return unavailable
        except HTTPException:
            raise
        except Exception as e:
            logger.exception(f"Unavailable dates query error: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Unable to compute unavailable dates"
            )

    @staticmethod
    def compute_available_slots_any_provider(
        db: Session,
        service_id: int,
        day: date_type,
        exclude_appointment_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Tuple[Optional[int], List[time]]:
        """
        Get the bookable start times for a service when any provider will do.

        The provider with the most slots on the date is chosen; ties go to
        the lowest provider ID.

        Returns:
            (provider_id, times); provider_id is None when nobody has a slot

        Raises:
            RecordNotFound: If the service does not exist
        """
        best_provider_id: Optional[int] = None
        best_slots: List[time] = []
        for provider in get_providers_for_service(db, service_id):
            slots = AvailabilityService.compute_available_slots(
                db, provider.id, service_id, day, exclude_appointment_id, now
            )
            if len(slots) > len(best_slots):
                best_provider_id, best_slots = provider.id, slots
        return best_provider_id, best_slots

    @staticmethod
    def compute_unavailable_dates_any_provider(
        db: Session,
        service_id: int,
        start_date: date_type,
        end_date: date_type,
        exclude_appointment_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[date_type]:
        """
        Dates in an inclusive range on which no provider offering the service
        has a bookable slot.
        """
        if end_date < start_date:
            raise InvalidInterval(f"Date range end {end_date} is before start {start_date}")

        unavailable = None
        for provider in get_providers_for_service(db, service_id):
            dates = set(AvailabilityService.compute_unavailable_dates(
                db, provider.id, service_id, start_date, end_date, exclude_appointment_id, now
            ))
            unavailable = dates if unavailable is None else unavailable & dates

        if unavailable is None:
            # Nobody offers the service
            return [start_date + timedelta(days=offset) for offset in range((end_date - start_date).days + 1)]
        return sorted(unavailable)

    @staticmethod
    def is_slot_available(
        db: Session,
        provider: Provider,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: Optional[int] = None
    ) -> bool:
        """
        Check the requested interval against the current ledger.

        The interval must lie inside one free sub-interval of its date; it
        does not have to sit on the slot step grid (staff may book any time).

        Args:
            db: Database session
            provider: Provider being booked
            start_time: Provider-local start
            end_time: Provider-local end
            exclude_appointment_id: Appointment being rescheduled

        Returns:
            True if the interval is free, False otherwise
        """
        day = start_time.date()
        schedule = AvailabilityService.fetch_schedule_data(db, provider, day, day, exclude_appointment_id)
        free = AvailabilityService.calculate_free_intervals(schedule, day)
        return contains_interval(free, start_time, end_time)

    @staticmethod
    def find_free_provider(
        db: Session,
        service_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: Optional[int] = None
    ) -> Optional[Provider]:
        """
        First provider (by ID) offering the service whose calendar has the
        interval free. Aware datetimes are converted per provider.

        Returns:
            The provider, or None when every provider is busy
        """
        for provider in get_providers_for_service(db, service_id):
            local_start = to_local_naive(start_time, provider.timezone)
            local_end = to_local_naive(end_time, provider.timezone)
            if AvailabilityService.is_slot_available(db, provider, local_start, local_end, exclude_appointment_id):
                return provider
        return None
