"""
Speciality model grouping the services a clinic offers (e.g. "Cardiology").
"""

from datetime import datetime

from sqlalchemy import String, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_STRING_LENGTH
from core.database import Base


class Speciality(Base):
    """Medical speciality under which services are grouped for reporting."""

    __tablename__ = "specialities"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the speciality."""

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Display name used in reports."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    services = relationship("Service", back_populates="speciality")
    """Services belonging to this speciality."""

    def __repr__(self) -> str:
        return f"<Speciality(id={self.id}, name={self.name})>"
