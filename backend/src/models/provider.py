"""
Provider model representing a doctor who delivers services at the clinic.

Each provider owns a recurring weekly working plan (stored as JSON and
validated with pydantic), a set of date-specific working plan exceptions,
and the calendar events (appointments and unavailability blocks) that carve
bookable time out of that plan.
"""

from datetime import datetime, time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import String, TIMESTAMP, Boolean, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.config import CLINIC_TIMEZONE
from core.constants import MAX_STRING_LENGTH, WEEKDAY_NAMES
from core.database import Base


def _parse_hhmm(value: str) -> time:
    hour, minute = map(int, value.split(':'))
    return time(hour, minute)


# Working plan schema validation models
class BreakPeriod(BaseModel):
    """A break inside a working period ("HH:MM" strings)."""
    start: str
    end: str

    @model_validator(mode='after')
    def validate_order(self) -> "BreakPeriod":
        if _parse_hhmm(self.start) >= _parse_hhmm(self.end):
            raise ValueError(f"Break start must be before end ({self.start}-{self.end})")
        return self


class WorkingPeriod(BaseModel):
    """An open period of a working day, with optional embedded breaks."""
    start: str = Field(description="Opening time, HH:MM")
    end: str = Field(description="Closing time, HH:MM (exclusive)")
    breaks: List[BreakPeriod] = Field(default_factory=list)

    @field_validator('start', 'end')
    @classmethod
    def validate_time_format(cls, v: str) -> str:
        try:
            parsed = _parse_hhmm(v)
        except (ValueError, AttributeError):
            raise ValueError(f"Invalid time format (expected HH:MM): {v}")
        return parsed.strftime('%H:%M')

    @model_validator(mode='after')
    def validate_period(self) -> "WorkingPeriod":
        start, end = _parse_hhmm(self.start), _parse_hhmm(self.end)
        if start >= end:
            raise ValueError(f"Working period start must be before end ({self.start}-{self.end})")
        for brk in self.breaks:
            if _parse_hhmm(brk.start) < start or _parse_hhmm(brk.end) > end:
                raise ValueError(f"Break {brk.start}-{brk.end} is outside working period {self.start}-{self.end}")
        return self

    @property
    def start_time(self) -> time:
        return _parse_hhmm(self.start)

    @property
    def end_time(self) -> time:
        return _parse_hhmm(self.end)


def validate_disjoint_periods(periods: List[WorkingPeriod]) -> List[WorkingPeriod]:
    """Ensure the open periods of a single day do not overlap. Returns them sorted by start."""
    ordered = sorted(periods, key=lambda p: p.start_time)
    for previous, current in zip(ordered, ordered[1:]):
        if current.start_time < previous.end_time:
            raise ValueError(
                f"Working periods overlap ({previous.start}-{previous.end} and {current.start}-{current.end})"
            )
    return ordered


class WorkingPlan(BaseModel):
    """
    Weekly working plan. An empty list means the provider does not work that day.
    """
    monday: List[WorkingPeriod] = Field(default_factory=list)
    tuesday: List[WorkingPeriod] = Field(default_factory=list)
    wednesday: List[WorkingPeriod] = Field(default_factory=list)
    thursday: List[WorkingPeriod] = Field(default_factory=list)
    friday: List[WorkingPeriod] = Field(default_factory=list)
    saturday: List[WorkingPeriod] = Field(default_factory=list)
    sunday: List[WorkingPeriod] = Field(default_factory=list)

    @field_validator('*', mode='after')
    @classmethod
    def validate_day(cls, v: List[WorkingPeriod]) -> List[WorkingPeriod]:
        return validate_disjoint_periods(v)

    def periods_for_weekday(self, weekday: int) -> List[WorkingPeriod]:
        """Get the open periods for a weekday (0=Monday ... 6=Sunday)."""
        return getattr(self, WEEKDAY_NAMES[weekday])


class Provider(Base):
    """
    Provider entity representing a doctor whose calendar can be booked.

    The provider's timezone is the frame in which all of its schedule
    arithmetic happens; stored calendar datetimes are wall-clock times in
    that timezone.
    """

    __tablename__ = "providers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the provider."""

    first_name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    last_name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))

    email: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)

    timezone: Mapped[str] = mapped_column(String(64), default=CLINIC_TIMEZONE, nullable=False)
    """IANA timezone name used for all interval arithmetic of this provider."""

    working_plan: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    """
    Weekly working plan as JSON, validated through WorkingPlan:
    {"monday": [{"start": "08:00", "end": "12:00", "breaks": [{"start": "10:00", "end": "10:30"}]}], ...}
    """

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Inactive providers keep their history but cannot be booked."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    services = relationship("Service", secondary="provider_services", back_populates="providers")
    """Services this provider offers."""

    calendar_events = relationship("CalendarEvent", back_populates="provider", cascade="all, delete-orphan")
    """Appointments and unavailability blocks."""

    working_plan_exceptions = relationship(
        "WorkingPlanException", back_populates="provider", cascade="all, delete-orphan"
    )
    """Date-specific overrides of the weekly working plan."""

    def get_validated_working_plan(self) -> WorkingPlan:
        """Get the weekly working plan with schema validation."""
        return WorkingPlan.model_validate(self.working_plan or {})

    def set_validated_working_plan(self, plan: WorkingPlan) -> None:
        """Set the weekly working plan with schema validation."""
        self.working_plan = plan.model_dump()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Provider(id={self.id}, name={self.full_name}, timezone={self.timezone})>"
