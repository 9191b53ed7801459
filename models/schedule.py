"""Schedule configuration models: shop hours, overrides and staff schedules."""

from datetime import date, time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from utils.datetime_utils import time_to_minutes

# JS-style day numbers (0 = sunday) as stored by the dashboard
_DAY_NUMBERS = [
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
]


class Weekday(str, Enum):
    """Day of week as stored in the hours tables."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, value: date) -> "Weekday":
        return list(cls)[value.weekday()]

    @classmethod
    def parse(cls, value: Any) -> "Weekday":
        """Accept enum members, names in any case, or 0-6 with 0 = sunday."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) or (isinstance(value, str) and value.isdigit()):
            return cls(_DAY_NUMBERS[int(value) % 7])
        return cls(str(value).strip().lower())


class TimeWindow(BaseModel):
    """Effective open window for one day, with an optional break."""

    start: time
    end: time
    break_start: Optional[time] = None
    break_end: Optional[time] = None

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end)


class DayHours(BaseModel):
    """
    Shape shared by every per-day hours record.

    A closed day may omit its times. An open day must have open < close and,
    when a break is configured, both ends of it inside [open, close].
    """

    is_open: bool = False
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    break_start: Optional[time] = None
    break_end: Optional[time] = None

    @field_validator("is_open", mode="before")
    @classmethod
    def _null_is_closed(cls, v: Any) -> bool:
        return bool(v)

    @model_validator(mode="after")
    def _check_window(self) -> "DayHours":
        if (self.break_start is None) != (self.break_end is None):
            raise ValueError("break_start and break_end must be set together")
        if not self.is_open:
            return self
        if self.open_time is None or self.close_time is None:
            raise ValueError("an open day needs open_time and close_time")
        if self.open_time >= self.close_time:
            raise ValueError("open_time must be before close_time")
        if self.break_start is not None:
            if not (
                self.open_time <= self.break_start < self.break_end <= self.close_time
            ):
                raise ValueError("break window must lie within opening hours")
        return self

    def to_window(self) -> TimeWindow:
        return TimeWindow(
            start=self.open_time,
            end=self.close_time,
            break_start=self.break_start,
            break_end=self.break_end,
        )


class BusinessHours(DayHours):
    """Standard weekly hours of a barbershop."""

    id: Optional[str] = None
    barbershop_id: str
    day_of_week: Weekday

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "barbershop_id": "uuid-here",
                "day_of_week": "monday",
                "is_open": True,
                "open_time": "09:00",
                "close_time": "18:00",
                "break_start": "12:00",
                "break_end": "13:00",
            }
        }
    )

    @field_validator("day_of_week", mode="before")
    @classmethod
    def _parse_day(cls, v: Any) -> Weekday:
        return Weekday.parse(v)


class SpecialHours(DayHours):
    """Date-specific hours (holidays, events). Overrides BusinessHours."""

    id: Optional[str] = None
    barbershop_id: str
    special_date: date
    reason: Optional[str] = None


class BlockedDate(BaseModel):
    """A date on which the barbershop takes no bookings at all."""

    id: Optional[str] = None
    barbershop_id: str
    blocked_date: date
    reason: str = ""


class StaffSchedule(DayHours):
    """Personal working hours of a staff member for one weekday."""

    staff_id: str
    day_of_week: Weekday

    @field_validator("day_of_week", mode="before")
    @classmethod
    def _parse_day(cls, v: Any) -> Weekday:
        return Weekday.parse(v)


class StaffUnitSchedule(StaffSchedule):
    """Staff schedule for one weekday at a specific unit (barbershop)."""

    unit_id: str


def _normalize_day(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Map the legacy day shapes ({enabled,start,end} etc.) onto DayHours fields."""
    is_open = raw.get("enabled", raw.get("is_open", raw.get("is_working", False)))
    return {
        "is_open": bool(is_open),
        "open_time": raw.get("start", raw.get("open_time")) if is_open else None,
        "close_time": raw.get("end", raw.get("close_time")) if is_open else None,
        "break_start": raw.get("break_start") or None,
        "break_end": raw.get("break_end") or None,
    }


def staff_schedule_from_json(
    staff_id: str, schedule: Optional[Dict[str, Any]]
) -> List[StaffSchedule]:
    """
    Convert the JSON schedule stored on a staff row into day records.

    Days that are missing from the JSON produce no record, meaning "use the
    shop default" for that weekday. Multi-unit documents ({"units": {...}})
    are handled by staff_unit_schedules_from_json instead and yield nothing here.
    """
    if not schedule or "units" in schedule:
        return []

    records = []
    for day in Weekday:
        raw = schedule.get(day.value)
        if raw:
            records.append(
                StaffSchedule(staff_id=staff_id, day_of_week=day, **_normalize_day(raw))
            )
    return records


def staff_unit_schedules_from_json(
    staff_id: str, unit_id: str, schedule: Optional[Dict[str, Any]]
) -> List[StaffUnitSchedule]:
    """Convert a staff_units.schedule JSON document for one unit into day records."""
    if not schedule:
        return []

    records = []
    for day in Weekday:
        raw = schedule.get(day.value)
        if raw:
            records.append(
                StaffUnitSchedule(
                    staff_id=staff_id,
                    unit_id=unit_id,
                    day_of_week=day,
                    **_normalize_day(raw),
                )
            )
    return records


class ScheduleSnapshot(BaseModel):
    """
    Every configuration record needed to resolve hours for one barbershop.

    Read fresh from the store for each computation and treated as immutable.
    """

    barbershop_id: str
    business_hours: List[BusinessHours] = Field(default_factory=list)
    special_hours: List[SpecialHours] = Field(default_factory=list)
    blocked_dates: List[BlockedDate] = Field(default_factory=list)
    staff_schedules: List[StaffSchedule] = Field(default_factory=list)
    staff_unit_schedules: List[StaffUnitSchedule] = Field(default_factory=list)

    def is_blocked(self, target: date) -> bool:
        return any(b.blocked_date == target for b in self.blocked_dates)

    def special_for(self, target: date) -> Optional[SpecialHours]:
        for special in self.special_hours:
            if special.special_date == target:
                return special
        return None

    def business_day(self, weekday: Weekday) -> Optional[BusinessHours]:
        for hours in self.business_hours:
            if hours.day_of_week == weekday:
                return hours
        return None

    def staff_day(self, staff_id: str, weekday: Weekday) -> Optional[StaffSchedule]:
        for record in self.staff_schedules:
            if record.staff_id == staff_id and record.day_of_week == weekday:
                return record
        return None

    def staff_unit_days(
        self, staff_id: str, weekday: Weekday
    ) -> List[StaffUnitSchedule]:
        return [
            record
            for record in self.staff_unit_schedules
            if record.staff_id == staff_id and record.day_of_week == weekday
        ]

    def assigned_unit(self, staff_id: str, weekday: Weekday) -> Optional[StaffUnitSchedule]:
        """
        The unit a multi-unit staff member works at on a weekday, if any.

        Raises:
            ValueError: If the staff member is open at more than one unit that day
        """
        open_days = [r for r in self.staff_unit_days(staff_id, weekday) if r.is_open]
        if len(open_days) > 1:
            units = ", ".join(sorted(r.unit_id for r in open_days))
            raise ValueError(
                f"Staff {staff_id} is scheduled at several units on "
                f"{weekday.value}: {units}"
            )
        return open_days[0] if open_days else None
