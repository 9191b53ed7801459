"""Appointment models, including recurrence and pause fields."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from utils.datetime_utils import time_to_minutes


class AppointmentStatus(str, Enum):
    """Appointment status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELED = "canceled"
    NO_SHOW = "no_show"


# Statuses that occupy a slot; canceled and no-show free it
ACTIVE_STATUSES = frozenset(
    {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED}
)

# Statuses a reschedule, pause or series-wide edit may still touch
MUTABLE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})


class Appointment(BaseModel):
    """Appointment model."""

    id: Optional[str] = None
    barbershop_id: str
    staff_id: str
    service_id: Optional[str] = None
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    service_name: Optional[str] = None
    service_price: Optional[Decimal] = None
    duration: int = Field(..., gt=0, description="Duration snapshot in minutes")
    appointment_date: date
    appointment_time: time
    status: AppointmentStatus = AppointmentStatus.PENDING
    notes: Optional[str] = None

    # Recurrence linkage
    is_recurring: bool = False
    recurring_group_id: Optional[str] = None
    recurrence_rule: Optional[str] = None
    recurrence_index: Optional[int] = None
    original_date: Optional[date] = None

    # Pause
    is_paused: bool = False
    paused_at: Optional[datetime] = None
    paused_until: Optional[date] = None
    pause_reason: Optional[str] = None

    reminder_sent: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "barbershop_id": "uuid-here",
                "staff_id": "uuid-here",
                "service_id": "uuid-here",
                "client_name": "João Silva",
                "client_phone": "11987654321",
                "duration": 30,
                "appointment_date": "2026-01-15",
                "appointment_time": "10:00",
                "status": "pending",
            }
        }
    )

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.appointment_time)

    @property
    def occupies_slot(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_diverged(self) -> bool:
        """True when this occurrence was moved away from its series date."""
        return self.original_date is not None and self.original_date != self.appointment_date


class AppointmentCreate(BaseModel):
    """Appointment creation model."""

    barbershop_id: str
    staff_id: str
    service_id: Optional[str] = None
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    service_name: Optional[str] = None
    service_price: Optional[Decimal] = None
    duration: int = Field(..., gt=0)
    appointment_date: date
    appointment_time: time
    status: AppointmentStatus = AppointmentStatus.PENDING
    notes: Optional[str] = None
    is_recurring: bool = False
    recurring_group_id: Optional[str] = None
    recurrence_rule: Optional[str] = None
    recurrence_index: Optional[int] = None
