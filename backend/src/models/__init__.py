# Package initialization
# Import all models to ensure relationships are properly established
from .speciality import Speciality
from .service import Service
from .provider import Provider, WorkingPlan, WorkingPeriod, BreakPeriod
from .provider_service import ProviderService
from .customer import Customer
from .clinical_record import ClinicalRecord
from .calendar_event import CalendarEvent
from .appointment import Appointment
from .working_plan_exception import WorkingPlanException
from .municipality import Municipality, MedicalCenter

__all__ = [
    "Speciality",
    "Service",
    "Provider",
    "WorkingPlan",
    "WorkingPeriod",
    "BreakPeriod",
    "ProviderService",
    "Customer",
    "ClinicalRecord",
    "CalendarEvent",
    "Appointment",
    "WorkingPlanException",
    "Municipality",
    "MedicalCenter",
]
