"""
Services package for shared business logic.

This package contains service classes that encapsulate business logic
shared across multiple API endpoints.
"""

from .working_plan_service import WorkingPlanService
from .availability_service import AvailabilityService
from .location_service import LocationService
from .patient_service import PatientService
from .appointment_service import AppointmentService
from .report_service import ReportService

__all__ = [
    "WorkingPlanService",
    "AvailabilityService",
    "LocationService",
    "PatientService",
    "AppointmentService",
    "ReportService",
]
