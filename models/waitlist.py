"""Waitlist models for clients who found no free slot on their preferred date."""

from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from utils.validation import normalize_phone


class WaitlistStatus(str, Enum):
    """Waitlist entry status."""

    WAITING = "waiting"
    NOTIFIED = "notified"
    BOOKED = "booked"
    EXPIRED = "expired"
    CANCELED = "canceled"


class WaitlistEntry(BaseModel):
    """Waitlist entry model."""

    id: Optional[str] = None
    barbershop_id: str
    staff_id: Optional[str] = None
    service_id: Optional[str] = None
    client_id: Optional[str] = None
    client_name: str
    client_phone: str
    preferred_date: date
    preferred_time_start: Optional[time] = None
    preferred_time_end: Optional[time] = None
    notes: Optional[str] = None
    status: WaitlistStatus = WaitlistStatus.WAITING
    notified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WaitlistCreate(BaseModel):
    """Waitlist creation model."""

    barbershop_id: str
    staff_id: Optional[str] = None
    service_id: Optional[str] = None
    client_id: Optional[str] = None
    client_name: str
    client_phone: str
    preferred_date: date
    preferred_time_start: Optional[time] = None
    preferred_time_end: Optional[time] = None
    notes: Optional[str] = None
    status: WaitlistStatus = WaitlistStatus.WAITING

    @field_validator("client_phone")
    @classmethod
    def _digits_only(cls, v: str) -> str:
        digits = normalize_phone(v)
        if not digits:
            raise ValueError("client_phone must contain digits")
        return digits

    @model_validator(mode="after")
    def _check_time_range(self) -> "WaitlistCreate":
        start, end = self.preferred_time_start, self.preferred_time_end
        if start is not None and end is not None and start >= end:
            raise ValueError("preferred_time_start must be before preferred_time_end")
        return self


class WaitlistJoinResult(BaseModel):
    """Outcome of joining the waitlist."""

    joined: bool
    entry: Optional[WaitlistEntry] = None
    position: Optional[int] = None
    reason: Optional[str] = None
