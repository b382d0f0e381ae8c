"""
Working plan exception model: a date-specific override of a provider's weekly plan.

An exception replaces the weekday entry of the weekly plan for exactly one
date, either with its own list of working periods or by closing the day.
"""

from datetime import date as date_type, datetime
from typing import Any, Dict, List

from sqlalchemy import Boolean, Date, ForeignKey, JSON, TIMESTAMP, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class WorkingPlanException(Base):
    """
    Exception entity. At most one per provider and date.

    ``periods`` uses the same shape as one weekday entry of the weekly plan
    and is ignored when ``is_closed`` is set.
    """

    __tablename__ = "working_plan_exceptions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id", ondelete="CASCADE"))
    """Reference to the provider whose plan is overridden."""

    date: Mapped[date_type] = mapped_column(Date)
    """Date the override applies to (provider-local)."""

    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """True if the provider does not work at all on this date."""

    periods: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    """Working periods for the date: [{"start": "HH:MM", "end": "HH:MM", "breaks": [...]}]."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    provider = relationship("Provider", back_populates="working_plan_exceptions")

    __table_args__ = (
        UniqueConstraint('provider_id', 'date', name='uq_working_plan_exception_provider_date'),
    )

    def __repr__(self) -> str:
        return f"<WorkingPlanException(provider_id={self.provider_id}, date={self.date}, closed={self.is_closed})>"
