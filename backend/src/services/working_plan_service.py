"""
Working plan service for provider schedules.

Manages the weekly working plan and the date-specific exceptions that
override it, and turns both into the effective working intervals the slot
calculator works from.
"""

import logging
from datetime import date as date_type, datetime
from typing import Dict, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from core.exceptions import InvalidInterval
from models import Appointment, CalendarEvent, Provider, WorkingPlan, WorkingPeriod, WorkingPlanException
from models.provider import validate_disjoint_periods
from utils.datetime_utils import day_bounds
from utils.interval_utils import Interval, contains_interval, merge_intervals, subtract_intervals
from utils.provider_helpers import get_provider

logger = logging.getLogger(__name__)


class WorkingPlanService:
    """
    Service class for working plan operations.

    Weekly plan edits and exceptions never cancel appointments: appointments
    that end up outside the new working intervals are reported back to the
    caller as orphaned and logged for an operator.
    """

    @staticmethod
    def get_working_intervals(
        plan: WorkingPlan,
        day: date_type,
        exception_periods: Optional[List[WorkingPeriod]] = None
    ) -> List[Interval]:
        """
        Effective working intervals for a date, with breaks removed.

        Pure function - no database queries.

        Args:
            plan: Provider's weekly working plan
            day: Date to evaluate
            exception_periods: Override periods for the date, if an exception
                exists (an empty list means closed)

        Returns:
            Sorted, disjoint ``[start, end)`` datetime intervals
        """
        periods = exception_periods if exception_periods is not None else plan.periods_for_weekday(day.weekday())

        open_intervals: List[Interval] = []
        break_intervals: List[Interval] = []
        for period in periods:
            open_intervals.append((
                datetime.combine(day, period.start_time),
                datetime.combine(day, period.end_time),
            ))
            for brk in period.breaks:
                break_intervals.append((
                    datetime.combine(day, datetime.strptime(brk.start, '%H:%M').time()),
                    datetime.combine(day, datetime.strptime(brk.end, '%H:%M').time()),
                ))

        return subtract_intervals(merge_intervals(open_intervals), break_intervals)

    @staticmethod
    def exception_periods(exception: WorkingPlanException) -> List[WorkingPeriod]:
        """Validated periods of an exception; closed exceptions yield an empty list."""
        if exception.is_closed:
            return []
        return validate_disjoint_periods(
            [WorkingPeriod.model_validate(period) for period in exception.periods or []]
        )

    @staticmethod
    def fetch_exceptions(
        db: Session,
        provider_id: int,
        start_date: date_type,
        end_date: date_type
    ) -> Dict[date_type, List[WorkingPeriod]]:
        """
        Fetch the exceptions of a provider for an inclusive date range.

        Returns:
            Dict mapping date to override periods (empty list = closed)
        """
        exceptions = db.query(WorkingPlanException).filter(
            WorkingPlanException.provider_id == provider_id,
            WorkingPlanException.date >= start_date,
            WorkingPlanException.date <= end_date
        ).all()
        return {exc.date: WorkingPlanService.exception_periods(exc) for exc in exceptions}

    @staticmethod
    def get_working_plan(db: Session, provider_id: int) -> WorkingPlan:
        """Get the validated weekly working plan of a provider."""
        provider = get_provider(db, provider_id, active_only=False)
        return provider.get_validated_working_plan()

    @staticmethod
    def update_working_plan(db: Session, provider_id: int, plan: WorkingPlan) -> Provider:
        """
        Replace a provider's weekly working plan.

        Args:
            db: Database session
            provider_id: Provider ID
            plan: New validated weekly plan

        Returns:
            Updated Provider
        """
        provider = get_provider(db, provider_id, active_only=False)
        provider.set_validated_working_plan(plan)
        db.commit()
        logger.info(f"Updated working plan for provider {provider_id}")
        return provider

    @staticmethod
    def _find_orphaned_appointments(
        db: Session,
        provider: Provider,
        day: date_type,
        working_intervals: List[Interval]
    ) -> List[Appointment]:
        day_start, day_end = day_bounds(day)
        appointments = db.query(Appointment).join(CalendarEvent).filter(
            CalendarEvent.provider_id == provider.id,
            CalendarEvent.event_type == 'appointment',
            CalendarEvent.start_time < day_end,
            CalendarEvent.end_time > day_start
        ).order_by(CalendarEvent.start_time).all()

        return [
            appointment for appointment in appointments
            if not contains_interval(working_intervals, appointment.start_time, appointment.end_time)
        ]

    @staticmethod
    def set_exception(
        db: Session,
        provider_id: int,
        day: date_type,
        periods: Optional[List[WorkingPeriod]] = None,
        is_closed: bool = False
    ) -> Tuple[WorkingPlanException, List[Appointment]]:
        """
        Create or replace the exception of a provider for one date.

        The exception fully replaces the weekday entry of the weekly plan for
        that date. Existing appointments are never cancelled.

        Args:
            db: Database session
            provider_id: Provider ID
            day: Date to override
            periods: Working periods for the date (ignored when closed)
            is_closed: Close the whole day

        Returns:
            Tuple of (exception, orphaned appointments)

        Raises:
            InvalidInterval: If the periods overlap each other
        """
        provider = get_provider(db, provider_id, active_only=False)

        if is_closed:
            validated: List[WorkingPeriod] = []
        else:
            try:
                validated = validate_disjoint_periods(list(periods or []))
            except ValueError as e:
                raise InvalidInterval(str(e))

        exception = db.query(WorkingPlanException).filter(
            WorkingPlanException.provider_id == provider_id,
            WorkingPlanException.date == day
        ).first()
        if exception is None:
            exception = WorkingPlanException(provider_id=provider_id, date=day)
            db.add(exception)

        exception.is_closed = is_closed or not validated
        exception.periods = [period.model_dump() for period in validated]

        try:
            db.commit()
        except Exception as e:
            logger.exception(f"Failed to save working plan exception: {e}")
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to save working plan exception"
            )

        working_intervals = WorkingPlanService.get_working_intervals(
            provider.get_validated_working_plan(), day, validated
        )
        orphaned = WorkingPlanService._find_orphaned_appointments(db, provider, day, working_intervals)
        if orphaned:
            logger.warning(
                f"Working plan exception for provider {provider_id} on {day} leaves "
                f"{len(orphaned)} appointment(s) outside working hours: "
                f"{[appointment.calendar_event_id for appointment in orphaned]}"
            )
        else:
            logger.info(f"Saved working plan exception for provider {provider_id} on {day}")

        return exception, orphaned

    @staticmethod
    def clear_exception(db: Session, provider_id: int, day: date_type) -> bool:
        """
        Remove the exception for a date so the weekly plan applies again.

        Idempotent: clearing a date without an exception is a no-op.

        Returns:
            True if an exception was deleted, False if there was none
        """
        get_provider(db, provider_id, active_only=False)
        deleted = db.query(WorkingPlanException).filter(
            WorkingPlanException.provider_id == provider_id,
            WorkingPlanException.date == day
        ).delete(synchronize_session=False)
        db.commit()

        if deleted:
            logger.info(f"Cleared working plan exception for provider {provider_id} on {day}")
        return bool(deleted)
