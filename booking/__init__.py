"""Write side of the scheduling engine: bookings, series and the waitlist."""

from .recurrence import (
    SCOPE_HANDLERS,
    RecurrenceManager,
    describe_pattern,
    expand_occurrences,
    series_total_price,
    shift_dates,
)
from .transaction import BookingService, SlotRejection, check_slot
from .waitlist import WaitlistService

__all__ = [
    "BookingService",
    "RecurrenceManager",
    "SCOPE_HANDLERS",
    "SlotRejection",
    "WaitlistService",
    "check_slot",
    "describe_pattern",
    "expand_occurrences",
    "series_total_price",
    "shift_dates",
]
