"""
Clinical record model mirroring the external clinical registry.

The registry is maintained by another system and is read-only here. Its CI
column is free text and carries formatting noise, so lookups go through
``utils.patient_validators`` rather than plain equality.
"""

from typing import Optional

from sqlalchemy import String, Index
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import MAX_CI_LENGTH, MAX_COMPLEMENT_LENGTH, MAX_STRING_LENGTH
from core.database import Base


class ClinicalRecord(Base):
    """A patient's entry in the clinical registry."""

    __tablename__ = "clinical_records"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    ci_number: Mapped[str] = mapped_column(String(MAX_CI_LENGTH))
    """CI exactly as typed into the registry (e.g. '1.234.567', '1234567 LP')."""

    complement: Mapped[Optional[str]] = mapped_column(String(MAX_COMPLEMENT_LENGTH), nullable=True)

    first_name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    paternal_surname: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    maternal_surname: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)

    record_code: Mapped[str] = mapped_column(String(64))
    """Clinical history number."""

    __table_args__ = (
        Index('idx_clinical_records_ci', 'ci_number'),
    )

    @property
    def last_name(self) -> str:
        return " ".join(part for part in (self.paternal_surname, self.maternal_surname) if part)

    def __repr__(self) -> str:
        return f"<ClinicalRecord(id={self.id}, ci={self.ci_number}, record={self.record_code})>"
