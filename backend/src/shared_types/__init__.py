"""
Shared type definitions for the clinic booking backend.

This module contains dataclasses and types that are used across multiple services.
"""

from shared_types.availability import ReservationSummary, ScheduleData
from shared_types.booking import AppointmentDraft, BookingResult, CustomerDraft

__all__ = ["ReservationSummary", "ScheduleData", "AppointmentDraft", "BookingResult", "CustomerDraft"]
