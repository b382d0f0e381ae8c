"""
Location service for the referral catalogue.

Lists the municipalities and medical centers the booking form offers and
checks submitted referral data against them.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.exceptions import UnknownLocation
from models import MedicalCenter, Municipality
from utils.datetime_utils import clinic_now

logger = logging.getLogger(__name__)


class LocationService:
    """Service class for the municipality and medical center catalogue."""

    @staticmethod
    def list_municipalities(db: Session) -> List[Municipality]:
        """All municipalities, ordered by name."""
        return db.query(Municipality).order_by(Municipality.name).all()

    @staticmethod
    def list_medical_centers(
        db: Session,
        municipality_code: Optional[int] = None,
        year: Optional[int] = None
    ) -> List[MedicalCenter]:
        """
        Medical centers registered for a year, ordered by name.

        Args:
            db: Database session
            municipality_code: Restrict to one municipality (all when None)
            year: Management year (defaults to the clinic's current year)
        """
        if year is None:
            year = clinic_now().year
        query = db.query(MedicalCenter).filter(MedicalCenter.year == year)
        if municipality_code is not None:
            query = query.filter(MedicalCenter.municipality_code == municipality_code)
        return query.order_by(MedicalCenter.name).all()

    @staticmethod
    def validate_location(
        db: Session,
        municipality: Optional[str],
        medical_center: Optional[str],
        year: Optional[int] = None
    ) -> Tuple[Optional[str], Optional[str]]:
        """
        Resolve submitted referral names to their catalogue spelling.

        Names match case-insensitively after trimming. When both are given
        the medical center must belong to the municipality. Blank values
        mean "not given".

        Returns:
            (municipality name, medical center name) as stored in the catalogue

        Raises:
            UnknownLocation: If a given name is not in the catalogue
        """
        municipality = (municipality or "").strip() or None
        medical_center = (medical_center or "").strip() or None

        found_municipality: Optional[Municipality] = None
        if municipality is not None:
            found_municipality = db.query(Municipality).filter(
                func.lower(Municipality.name) == municipality.lower()
            ).first()
            if not found_municipality:
                raise UnknownLocation(f"Unknown municipality: {municipality}")

        found_center: Optional[MedicalCenter] = None
        if medical_center is not None:
            if year is None:
                year = clinic_now().year
            query = db.query(MedicalCenter).filter(
                func.lower(MedicalCenter.name) == medical_center.lower(),
                MedicalCenter.year == year
            )
            if found_municipality is not None:
                query = query.filter(MedicalCenter.municipality_code == found_municipality.code)
            found_center = query.first()
            if not found_center:
                raise UnknownLocation(f"Unknown medical center: {medical_center}")

        return (
            found_municipality.name if found_municipality else None,
            found_center.name if found_center else None,
        )
