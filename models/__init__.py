"""Pydantic models for data validation and serialization."""

from .appointment import (
    ACTIVE_STATUSES,
    MUTABLE_STATUSES,
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
)
from .availability import (
    DayAvailability,
    DaySlots,
    DayStatus,
    ReasonCode,
    ValidationResult,
)
from .booking import (
    BookingRequest,
    BookingResult,
    OccurrenceCheck,
    OccurrenceFailure,
    RejectionKind,
    ScopedChangeResult,
    SeriesCheck,
    SeriesRequest,
    SeriesResult,
)
from .client import Client, ClientCreate
from .recurrence import RecurrencePattern, RecurrenceRule, RecurrenceScope
from .schedule import (
    BlockedDate,
    BusinessHours,
    ScheduleSnapshot,
    SpecialHours,
    StaffSchedule,
    StaffUnitSchedule,
    TimeWindow,
    Weekday,
)
from .service import Service
from .waitlist import (
    WaitlistCreate,
    WaitlistEntry,
    WaitlistJoinResult,
    WaitlistStatus,
)

__all__ = [
    "ACTIVE_STATUSES",
    "MUTABLE_STATUSES",
    "Appointment",
    "AppointmentCreate",
    "AppointmentStatus",
    "BlockedDate",
    "BookingRequest",
    "BookingResult",
    "BusinessHours",
    "Client",
    "ClientCreate",
    "DayAvailability",
    "DaySlots",
    "DayStatus",
    "OccurrenceCheck",
    "OccurrenceFailure",
    "ReasonCode",
    "RecurrencePattern",
    "RecurrenceRule",
    "RecurrenceScope",
    "RejectionKind",
    "ScheduleSnapshot",
    "ScopedChangeResult",
    "SeriesCheck",
    "SeriesRequest",
    "SeriesResult",
    "Service",
    "SpecialHours",
    "StaffSchedule",
    "StaffUnitSchedule",
    "TimeWindow",
    "ValidationResult",
    "WaitlistCreate",
    "WaitlistEntry",
    "WaitlistJoinResult",
    "WaitlistStatus",
    "Weekday",
]
