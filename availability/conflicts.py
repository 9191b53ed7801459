"""
Overlap tests between a candidate interval and booked appointments.

Intervals are half-open, so an appointment ending at 10:30 does not
conflict with one starting at 10:30.
"""

from datetime import time
from typing import Iterable, List, NamedTuple, Optional

from models.appointment import ACTIVE_STATUSES, Appointment
from utils.datetime_utils import time_to_minutes


class BookedInterval(NamedTuple):
    """An occupied stretch of a staff member's day, in minutes since midnight."""

    start: int
    duration: int
    appointment_id: Optional[str] = None

    @property
    def end(self) -> int:
        return self.start + self.duration


def intervals_overlap(start1: int, duration1: int, start2: int, duration2: int) -> bool:
    """Half-open overlap test. Symmetric in its two intervals."""
    return start1 < start2 + duration2 and start2 < start1 + duration1


def booked_intervals(
    appointments: Iterable[Appointment], exclude_id: Optional[str] = None
) -> List[BookedInterval]:
    """
    Intervals occupied by active appointments.

    Args:
        appointments: Appointments of one staff member on one date
        exclude_id: Appointment being edited; it must not conflict with itself
    """
    return [
        BookedInterval(a.start_minutes, a.duration, a.id)
        for a in appointments
        if a.status in ACTIVE_STATUSES and (exclude_id is None or a.id != exclude_id)
    ]


def find_conflict(
    start_minutes: int, duration: int, booked: Iterable[BookedInterval]
) -> Optional[BookedInterval]:
    """First booked interval overlapping the candidate, if any."""
    for interval in booked:
        if intervals_overlap(start_minutes, duration, interval.start, interval.duration):
            return interval
    return None


def has_conflict(start: time, duration: int, booked: Iterable[BookedInterval]) -> bool:
    return find_conflict(time_to_minutes(start), duration, booked) is not None


def filter_available(
    slots: Iterable[time], duration: int, booked: Iterable[BookedInterval]
) -> List[time]:
    """Drop every slot that overlaps a booked interval."""
    booked = list(booked)
    return [slot for slot in slots if not has_conflict(slot, duration, booked)]
