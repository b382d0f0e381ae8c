"""
Municipality and medical center catalogue used for referral data.

Mirrors the health information system's location tables: municipalities of
the clinic's department, and the medical centers active in each management
year. Read-only for the booking flow.
"""

from sqlalchemy import String, ForeignKey, Integer, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_STRING_LENGTH
from core.database import Base


class Municipality(Base):
    """Municipality a patient can be referred from."""

    __tablename__ = "municipalities"

    code: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    """Official municipality code."""

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Display name, stored on appointments as the referral municipality."""

    # Relationships
    medical_centers = relationship("MedicalCenter", back_populates="municipality")

    def __repr__(self) -> str:
        return f"<Municipality(code={self.code}, name={self.name})>"


class MedicalCenter(Base):
    """
    Medical center registered for a management year.

    The same center appears once per year it is active.
    """

    __tablename__ = "medical_centers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    code: Mapped[int] = mapped_column(Integer)
    """Official establishment code."""

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))

    municipality_code: Mapped[int] = mapped_column(ForeignKey("municipalities.code"))

    year: Mapped[int] = mapped_column(Integer)
    """Management year the center is registered for."""

    # Relationships
    municipality = relationship("Municipality", back_populates="medical_centers")

    __table_args__ = (
        UniqueConstraint('code', 'year', name='uq_medical_center_year'),
        Index('idx_medical_centers_municipality', 'municipality_code'),
    )

    def __repr__(self) -> str:
        return f"<MedicalCenter(code={self.code}, name={self.name}, year={self.year})>"
