"""
Datetime utilities for consistent timezone handling across the application.

Wall-clock times of day are handled as minutes since midnight internally;
"today" always comes from an injectable clock so tests can pin it.
"""

from datetime import date, datetime, time, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from utils.constants import MINUTES_IN_DAY


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def parse_iso_datetime(iso_string: str) -> datetime:
    """
    Parse ISO format datetime string to timezone-aware datetime.
    Handles both 'Z' suffix and '+00:00' timezone formats.

    Args:
        iso_string: ISO format datetime string

    Returns:
        Timezone-aware datetime object

    Raises:
        ValueError: If datetime string cannot be parsed
    """
    normalized = iso_string.replace("Z", "+00:00")

    try:
        dt = datetime.fromisoformat(normalized)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError as e:
        raise ValueError(f"Invalid datetime string: {iso_string}") from e


def to_iso_string(dt: datetime) -> str:
    """
    Convert datetime to ISO format string.
    Naive datetimes are assumed to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.isoformat()


def parse_time(value: Union[str, time]) -> time:
    """
    Parse a database time value ("HH:MM" or "HH:MM:SS") into a time.

    Args:
        value: Time string or time instance

    Returns:
        time object without seconds precision loss

    Raises:
        ValueError: If the value is not a valid time of day
    """
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(value.strip())
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid time string: {value!r}") from e


def time_to_minutes(value: Union[str, time]) -> int:
    """Convert a time of day to minutes since midnight."""
    t = parse_time(value)
    return t.hour * 60 + t.minute


def minutes_to_time(minutes: int) -> time:
    """Convert minutes since midnight back to a time of day."""
    if not 0 <= minutes < MINUTES_IN_DAY:
        raise ValueError(f"Minutes out of range for a time of day: {minutes}")
    return time(minutes // 60, minutes % 60)


def format_time(value: time) -> str:
    """Format a time of day as HH:MM."""
    return value.strftime("%H:%M")


class Clock:
    """
    Source of "now" and "today" for the scheduling engine.

    The default clock reads the wall clock in the configured timezone.
    """

    def __init__(self, tz_name: Optional[str] = None):
        self._tz = ZoneInfo(tz_name) if tz_name else timezone.utc

    def now(self) -> datetime:
        return datetime.now(self._tz)

    def today(self) -> date:
        return self.now().date()


class FixedClock(Clock):
    """Clock pinned to a given instant. Used by tests and replays."""

    def __init__(self, current: datetime):
        super().__init__()
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        self._current = current

    def now(self) -> datetime:
        return self._current

    def advance_to(self, current: datetime) -> None:
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        self._current = current


def get_default_clock() -> Clock:
    """Clock bound to the timezone from settings."""
    from config import settings

    return Clock(settings.timezone)
