"""
Shared types for availability-related functionality.

This module contains shared data classes used across the availability,
working plan and booking services so that schedule data is fetched once and
evaluated by pure functions.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from models import WorkingPlan, WorkingPeriod

Interval = Tuple[datetime, datetime]


@dataclass
class ScheduleData:
    """
    Everything needed to evaluate a provider's availability over a date range.

    ``busy`` holds the ``[start, end)`` intervals of appointments and
    unavailability blocks overlapping the range (the excluded appointment,
    if any, is already left out); ``exceptions`` maps a date to its override
    periods, with an empty list meaning the day is closed.
    """
    provider_id: int
    timezone: str
    working_plan: WorkingPlan
    exceptions: Dict[date, List[WorkingPeriod]] = field(default_factory=dict)
    busy: List[Interval] = field(default_factory=list)


@dataclass
class ReservationSummary:
    """Summary of an existing reservation returned by the conflict guard."""
    appointment_id: int
    date: str  # Format: "YYYY-MM-DD"
    start_time: str  # Format: "HH:MM"
    service: str
    provider: str
    booking_hash: Optional[str] = None

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert to dictionary format (used as error payload)."""
        return {
            "appointment_id": self.appointment_id,
            "date": self.date,
            "start_time": self.start_time,
            "service": self.service,
            "provider": self.provider,
        }
