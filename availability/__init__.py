"""Read side of the scheduling engine: hours, slots, conflicts and calendar status."""

from .aggregator import (
    AvailabilityService,
    classify_day,
    compute_day_slots,
    compute_month_availability,
)
from .conflicts import (
    BookedInterval,
    booked_intervals,
    filter_available,
    has_conflict,
    intervals_overlap,
)
from .hours_resolver import DEFAULT_RULES, HoursResolver, ResolutionContext
from .slot_generator import check_fits_window, fits_window, generate_slots

__all__ = [
    "AvailabilityService",
    "BookedInterval",
    "DEFAULT_RULES",
    "HoursResolver",
    "ResolutionContext",
    "booked_intervals",
    "check_fits_window",
    "classify_day",
    "compute_day_slots",
    "compute_month_availability",
    "filter_available",
    "fits_window",
    "generate_slots",
    "has_conflict",
    "intervals_overlap",
]
