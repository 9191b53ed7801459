"""Recurrence rule and scope models for appointment series."""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class RecurrenceRule(str, Enum):
    """How far apart consecutive occurrences are."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    TRIWEEKLY = "triweekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class RecurrenceScope(str, Enum):
    """Breadth of an edit, cancellation or pause applied to a series."""

    SINGLE = "single"
    FUTURE = "future"
    ALL = "all"


class RecurrencePattern(BaseModel):
    """
    A recurrence rule plus its termination.

    Exactly one of count / end_date terminates the series; a series ending on
    a date is still capped at the configured maximum number of occurrences.
    """

    rule: RecurrenceRule = RecurrenceRule.WEEKLY
    count: Optional[int] = Field(default=None, ge=1)
    end_date: Optional[date] = None
    custom_interval_days: Optional[int] = Field(default=None, ge=1, le=365)

    @model_validator(mode="after")
    def _check_termination(self) -> "RecurrencePattern":
        if self.count is None and self.end_date is None:
            raise ValueError("a recurrence needs either count or end_date")
        if self.count is not None and self.end_date is not None:
            raise ValueError("count and end_date are mutually exclusive")
        if self.rule == RecurrenceRule.CUSTOM and not self.custom_interval_days:
            raise ValueError("custom recurrence needs custom_interval_days")
        return self
