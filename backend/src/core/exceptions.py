"""
Booking domain errors.

Every error the availability and booking engine can signal is an
``HTTPException`` carrying a stable ``kind`` tag, so services raise them the
same way they raise any other HTTP error and the API layer renders them as a
tagged payload (``{"kind": ..., "detail": ...}``) that callers branch on.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class BookingError(HTTPException):
    """Base class for tagged booking errors."""

    kind: str = "booking_error"
    default_status: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Booking request rejected"

    def __init__(self, detail: Optional[str] = None, **extra: Any):
        super().__init__(status_code=self.default_status, detail=detail or self.default_detail)
        self.extra: Dict[str, Any] = extra

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the tagged response body."""
        payload: Dict[str, Any] = {"kind": self.kind, "detail": self.detail}
        payload.update(self.extra)
        return payload


class RecordNotFound(BookingError):
    """A provider, service, appointment or block referenced by the request does not exist."""

    kind = "not_found"
    default_status = status.HTTP_404_NOT_FOUND
    default_detail = "Record not found"


class PatientNotFound(BookingError):
    """No clinical registry record matches the given identifier."""

    kind = "patient_not_found"
    default_status = status.HTTP_404_NOT_FOUND
    default_detail = "Patient is not registered in the clinical registry"


class AlreadyReserved(BookingError):
    """The patient already holds a reservation on the reference date."""

    kind = "already_reserved"
    default_status = status.HTTP_409_CONFLICT
    default_detail = "Patient already has a reservation for this date"

    def __init__(self, reservation: Dict[str, Any], detail: Optional[str] = None):
        super().__init__(detail, reservation=reservation)
        self.reservation = reservation


class SlotNoLongerAvailable(BookingError):
    """The requested slot was taken (or blocked) before the booking could commit. Retryable."""

    kind = "slot_no_longer_available"
    default_status = status.HTTP_409_CONFLICT
    default_detail = "The selected time is no longer available, please pick another slot"


class ChallengeFailed(BookingError):
    """Human verification failed; nothing was written."""

    kind = "challenge_failed"
    default_status = status.HTTP_400_BAD_REQUEST
    default_detail = "Human verification failed"


class InvalidInterval(BookingError):
    """Malformed or non-positive interval, rejected before touching storage."""

    kind = "invalid_interval"
    default_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Invalid time interval"


class ConflictingAppointments(BookingError):
    """An unavailability block would overlap booked appointments."""

    kind = "conflicting_appointments"
    default_status = status.HTTP_409_CONFLICT
    default_detail = "The period overlaps existing appointments"

    def __init__(self, appointment_ids: list[int], detail: Optional[str] = None):
        super().__init__(detail, appointment_ids=appointment_ids)
        self.appointment_ids = appointment_ids


class UnknownLocation(BookingError):
    """Referral municipality or medical center is not in the catalogue."""

    kind = "unknown_location"
    default_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Unknown municipality or medical center"
