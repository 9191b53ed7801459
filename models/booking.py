"""Request and result models for the write side: bookings and series."""

from datetime import date, time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from utils.exceptions import error_for_kind

from .appointment import Appointment
from .recurrence import RecurrencePattern


class BookingRequest(BaseModel):
    """What the calling layer supplies to book one appointment."""

    barbershop_id: str
    staff_id: str
    service_id: str
    appointment_date: date
    appointment_time: time
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_client_identity(self) -> "BookingRequest":
        if not self.client_id and not self.client_phone:
            raise ValueError("either client_id or client_phone is required")
        return self


class RejectionKind(str, Enum):
    """Expected, user-recoverable reasons a write did not happen."""

    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    CONFLICT = "conflict"


class BookingResult(BaseModel):
    """Outcome of a booking or reschedule."""

    success: bool
    appointment: Optional[Appointment] = None
    kind: Optional[RejectionKind] = None
    reason_code: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def booked(cls, appointment: Appointment) -> "BookingResult":
        return cls(success=True, appointment=appointment)

    @classmethod
    def rejected(
        cls, kind: RejectionKind, reason: str, reason_code: Optional[str] = None
    ) -> "BookingResult":
        return cls(success=False, kind=kind, reason=reason, reason_code=reason_code)

    def raise_for_rejection(self) -> None:
        """Raise the matching SchedulingError if the write was rejected."""
        if self.success:
            return
        kind = self.kind.value if self.kind else ""
        raise error_for_kind(kind)(self.reason or "", self.reason_code or "")


class SeriesRequest(BookingRequest):
    """A booking that repeats according to a recurrence pattern."""

    pattern: RecurrencePattern

    @model_validator(mode="after")
    def _check_end_date(self) -> "SeriesRequest":
        end_date = self.pattern.end_date
        if end_date is not None and end_date < self.appointment_date:
            raise ValueError("pattern end_date is before the first appointment")
        return self



class OccurrenceCheck(BaseModel):
    """Bookability of one expanded occurrence date."""

    index: int
    occurrence_date: date
    available: bool
    kind: Optional[RejectionKind] = None
    reason: Optional[str] = None


class SeriesCheck(BaseModel):
    """Every expanded occurrence with its bookability."""

    occurrences: List[OccurrenceCheck] = Field(default_factory=list)

    @property
    def conflicts(self) -> List[OccurrenceCheck]:
        return [o for o in self.occurrences if not o.available]

    @property
    def available_dates(self) -> List[date]:
        return [o.occurrence_date for o in self.occurrences if o.available]

    @property
    def all_available(self) -> bool:
        return not self.conflicts


class OccurrenceFailure(BaseModel):
    """An occurrence that could not be written, and why."""

    occurrence_date: date
    appointment_id: Optional[str] = None
    kind: str
    reason: str


class SeriesResult(BaseModel):
    """Outcome of creating a series."""

    committed: bool
    recurring_group_id: Optional[str] = None
    created: List[Appointment] = Field(default_factory=list)
    conflicts: List[OccurrenceCheck] = Field(default_factory=list)
    failed: List[OccurrenceFailure] = Field(default_factory=list)


class ScopedChangeResult(BaseModel):
    """Outcome of an edit, cancellation or pause applied with a scope."""

    committed: bool
    updated: List[Appointment] = Field(default_factory=list)
    conflicts: List[OccurrenceFailure] = Field(default_factory=list)
    failed: List[OccurrenceFailure] = Field(default_factory=list)
