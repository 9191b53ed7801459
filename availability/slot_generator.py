"""
Candidate start times on a fixed grid inside an effective window.

All arithmetic is done in minutes since midnight. A candidate [s, s+D) is
kept only when it fits inside [window.start, window.end) and does not touch
the break [break_start, break_end) at all.
"""

from datetime import time
from typing import List, Optional, Tuple

from models.availability import ReasonCode
from models.schedule import TimeWindow
from utils.constants import DEFAULT_SLOT_INTERVAL_MINUTES
from utils.datetime_utils import minutes_to_time, time_to_minutes


def _break_bounds(window: TimeWindow) -> Optional[Tuple[int, int]]:
    if not window.has_break:
        return None
    return time_to_minutes(window.break_start), time_to_minutes(window.break_end)


def check_fits_window(
    window: TimeWindow, start_minutes: int, duration_minutes: int
) -> Optional[ReasonCode]:
    """
    Containment test shared by slot generation and booking validation.

    Returns:
        None when the interval fits, otherwise the reason it does not
    """
    end_minutes = start_minutes + duration_minutes
    if start_minutes < window.start_minutes or end_minutes > window.end_minutes:
        return ReasonCode.OUTSIDE_HOURS

    bounds = _break_bounds(window)
    if bounds is not None:
        break_start, break_end = bounds
        if start_minutes < break_end and break_start < end_minutes:
            return ReasonCode.BREAK_OVERLAP
    return None


def fits_window(window: TimeWindow, start: time, duration_minutes: int) -> bool:
    """True if [start, start+duration) fits the window and avoids the break."""
    return check_fits_window(window, time_to_minutes(start), duration_minutes) is None


def generate_slots(
    window: TimeWindow,
    duration_minutes: int,
    interval_minutes: int = DEFAULT_SLOT_INTERVAL_MINUTES,
) -> List[time]:
    """
    Walk the grid from window.start and keep every candidate that fits.

    Args:
        window: Effective window of the day
        duration_minutes: Service duration; any positive value
        interval_minutes: Grid granularity

    Returns:
        Ordered start times; empty when the service does not fit anywhere
    """
    if duration_minutes <= 0:
        raise ValueError(f"Service duration must be positive: {duration_minutes}")
    if interval_minutes <= 0:
        raise ValueError(f"Slot interval must be positive: {interval_minutes}")

    slots = []
    current = window.start_minutes
    end = window.end_minutes
    while current + duration_minutes <= end:
        if check_fits_window(window, current, duration_minutes) is None:
            slots.append(minutes_to_time(current))
        current += interval_minutes
    return slots
