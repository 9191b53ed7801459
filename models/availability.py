"""Result models produced by the read side of the engine."""

from datetime import date, time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .schedule import TimeWindow


class ReasonCode(str, Enum):
    """Why a date is not bookable."""

    PAST_DATE = "past_date"
    BLOCKED = "blocked"
    SPECIAL_CLOSED = "special_closed"
    STAFF_OFF = "staff_off"
    STAFF_OTHER_UNIT = "staff_other_unit"
    SHOP_CLOSED = "shop_closed"
    NO_HOURS = "no_hours"
    OUTSIDE_HOURS = "outside_hours"
    BREAK_OVERLAP = "break_overlap"
    INCONSISTENT_CONFIG = "inconsistent_config"


# Reasons that mean "nothing is configured", as opposed to "closed"
CONFIGURATION_REASONS = frozenset(
    {ReasonCode.NO_HOURS, ReasonCode.INCONSISTENT_CONFIG}
)


class ValidationResult(BaseModel):
    """Outcome of resolving the effective hours of one date."""

    is_valid: bool
    reason_code: Optional[ReasonCode] = None
    reason: Optional[str] = None
    window: Optional[TimeWindow] = None

    @classmethod
    def valid(cls, window: TimeWindow) -> "ValidationResult":
        return cls(is_valid=True, window=window)

    @classmethod
    def invalid(cls, code: ReasonCode, reason: str) -> "ValidationResult":
        return cls(is_valid=False, reason_code=code, reason=reason)


class DayStatus(str, Enum):
    """Calendar colouring of one day."""

    CLOSED = "closed"
    FULL = "full"
    PARTIAL = "partial"
    AVAILABLE = "available"


class DaySlots(BaseModel):
    """Slots for one staff member, service and date."""

    target_date: date
    validation: ValidationResult
    all_slots: List[time] = Field(default_factory=list)
    available_slots: List[time] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.all_slots)

    @property
    def available(self) -> int:
        return len(self.available_slots)


class DayAvailability(BaseModel):
    """Aggregated status of one calendar day."""

    target_date: date
    status: DayStatus
    available: int = 0
    total: int = 0
    reason: Optional[str] = None

    @property
    def occupancy_ratio(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.total - self.available) / self.total
