"""
Pytest configuration and shared fixtures.
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from availability.conflicts import intervals_overlap
from availability.hours_resolver import HoursResolver
from models.appointment import Appointment, AppointmentCreate, AppointmentStatus
from models.client import Client, ClientCreate
from models.schedule import BusinessHours, ScheduleSnapshot, Weekday
from models.service import Service
from models.waitlist import WaitlistCreate, WaitlistEntry, WaitlistStatus
from notifications.dispatcher import NotificationDispatcher
from utils.datetime_utils import FixedClock
from utils.exceptions import (
    AppointmentNotFoundError,
    NotificationError,
    PersistenceError,
    ServiceNotFoundError,
    SlotUnavailableError,
)

SHOP_ID = "shop-1"
STAFF_ID = "staff-1"
TODAY = date(2024, 1, 1)  # a Monday


@pytest.fixture(autouse=True)
def mock_settings():
    """Mock settings for all tests."""
    with patch("config.settings") as mock_settings:
        mock_settings.supabase_url = "https://test.supabase.co"
        mock_settings.supabase_key = "test_key"
        mock_settings.timezone = "UTC"
        mock_settings.slot_interval_minutes = 30
        mock_settings.partial_occupancy_threshold = 0.7
        mock_settings.max_recurrence_occurrences = 52
        mock_settings.notifications_enabled = True
        mock_settings.notification_function = "send-whatsapp"
        mock_settings.reminder_hours_before = 24
        mock_settings.waitlist_expiry_enabled = True
        mock_settings.redis_url = None
        mock_settings.log_level = "INFO"
        mock_settings.environment = "test"
        yield mock_settings


@pytest.fixture
def mock_supabase_client():
    """Create a mock Supabase client."""
    mock_client = MagicMock()
    mock_table = MagicMock()
    mock_client.table.return_value = mock_table
    return mock_client, mock_table


@pytest.fixture
def clock():
    """Clock pinned to 08:00 UTC on TODAY."""
    return FixedClock(datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def resolver(clock):
    return HoursResolver(clock=clock)


def business_week(
    open_time: str = "09:00",
    close_time: str = "18:00",
    break_start: Optional[str] = None,
    break_end: Optional[str] = None,
    closed=(),
    barbershop_id: str = SHOP_ID,
) -> List[BusinessHours]:
    """One BusinessHours record per weekday with identical hours."""
    return [
        BusinessHours(
            barbershop_id=barbershop_id,
            day_of_week=day,
            is_open=day not in closed,
            open_time=open_time,
            close_time=close_time,
            break_start=break_start,
            break_end=break_end,
        )
        for day in Weekday
    ]


@pytest.fixture
def make_week():
    return business_week


@pytest.fixture
def open_snapshot():
    """Shop open 09:00-18:00 every day, no break, nothing else configured."""
    return ScheduleSnapshot(barbershop_id=SHOP_ID, business_hours=business_week())


class InMemoryStore:
    """
    Store with the same async API as SupabaseClient.

    Inserts and updates enforce the active-slot constraint atomically, like
    the database does. stale_reads makes appointment listings return the
    rows captured by freeze(), to simulate a client acting on old data.
    """

    def __init__(self, snapshot: Optional[ScheduleSnapshot] = None):
        self.snapshot = snapshot or ScheduleSnapshot(barbershop_id=SHOP_ID)
        self.services: Dict[str, Service] = {}
        self.appointments: Dict[str, Appointment] = {}
        self.clients: Dict[tuple, Client] = {}
        self.waitlist: Dict[str, WaitlistEntry] = {}
        self.function_calls: List[tuple] = []
        self.insert_rejections = 0
        self.fail_reads = False
        self.stale_reads = False
        self._frozen: List[Appointment] = []

    async def _read(self) -> None:
        # Yield so concurrent coroutines interleave like real network calls
        await asyncio.sleep(0)
        if self.fail_reads:
            raise PersistenceError("Failed to read: connection reset")

    # Seeding

    def add_service(self, service_id: str, duration: int, price: str = "50.00") -> Service:
        service = Service(
            id=service_id,
            barbershop_id=SHOP_ID,
            name=f"Service {duration}min",
            duration=duration,
            price=Decimal(price),
        )
        self.services[service_id] = service
        return service

    def add_appointment(self, **fields) -> Appointment:
        data = {
            "id": str(uuid4()),
            "barbershop_id": SHOP_ID,
            "staff_id": STAFF_ID,
            "duration": 30,
            "status": AppointmentStatus.CONFIRMED,
            "client_phone": "5511999990000",
        }
        data.update(fields)
        appointment = Appointment(**data)
        self.appointments[appointment.id] = appointment
        return appointment

    def freeze(self) -> None:
        self._frozen = list(self.appointments.values())
        self.stale_reads = True

    def _conflicts(self, candidate: Appointment) -> bool:
        if not candidate.occupies_slot:
            return False
        for other in self.appointments.values():
            if (
                other.id != candidate.id
                and other.occupies_slot
                and other.staff_id == candidate.staff_id
                and other.appointment_date == candidate.appointment_date
                and intervals_overlap(
                    candidate.start_minutes,
                    candidate.duration,
                    other.start_minutes,
                    other.duration,
                )
            ):
                return True
        return False

    # Reads

    async def get_schedule_snapshot(
        self, barbershop_id, staff_id=None, start_date=None, end_date=None
    ) -> ScheduleSnapshot:
        await self._read()
        return self.snapshot

    async def get_service(self, service_id: str) -> Service:
        await self._read()
        if service_id not in self.services:
            raise ServiceNotFoundError(f"Service {service_id} not found")
        return self.services[service_id]

    async def list_staff_appointments(self, staff_id, start_date, end_date, statuses=None):
        await self._read()
        source = self._frozen if self.stale_reads else list(self.appointments.values())
        return [
            a
            for a in source
            if a.staff_id == staff_id
            and start_date <= a.appointment_date <= end_date
            and (statuses is None or a.status in statuses)
        ]

    async def list_appointments_between(self, start_date, end_date, statuses=None):
        await self._read()
        return [
            a
            for a in self.appointments.values()
            if start_date <= a.appointment_date <= end_date
            and (statuses is None or a.status in statuses)
        ]

    async def get_appointment(self, appointment_id: str) -> Appointment:
        await self._read()
        if appointment_id not in self.appointments:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        return self.appointments[appointment_id]

    async def list_series(self, recurring_group_id: str) -> List[Appointment]:
        await self._read()
        return sorted(
            (
                a
                for a in self.appointments.values()
                if a.recurring_group_id == recurring_group_id
            ),
            key=lambda a: a.recurrence_index or 0,
        )

    # Writes

    async def insert_appointment(self, data: AppointmentCreate) -> Appointment:
        appointment = Appointment(id=str(uuid4()), **data.model_dump())
        if self._conflicts(appointment):
            self.insert_rejections += 1
            raise SlotUnavailableError("Slot no longer available", reason_code="slot_taken")
        self.appointments[appointment.id] = appointment
        return appointment

    async def update_appointment(self, appointment_id: str, changes) -> Appointment:
        if appointment_id not in self.appointments:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        updated = self.appointments[appointment_id].model_copy(update=changes)
        if self._conflicts(updated):
            raise SlotUnavailableError("Slot no longer available", reason_code="slot_taken")
        self.appointments[appointment_id] = updated
        return updated

    async def mark_reminder_sent(self, appointment_id: str) -> Appointment:
        return await self.update_appointment(
            appointment_id, {"reminder_sent": datetime.now(timezone.utc)}
        )

    async def find_or_create_client(self, data: ClientCreate) -> Client:
        key = (data.barbershop_id, data.phone)
        if key not in self.clients:
            self.clients[key] = Client(id=str(uuid4()), **data.model_dump())
        return self.clients[key]

    async def create_waitlist_entry(self, data: WaitlistCreate) -> WaitlistEntry:
        entry = WaitlistEntry(id=str(uuid4()), **data.model_dump())
        self.waitlist[entry.id] = entry
        return entry

    async def count_waiting(self, barbershop_id, preferred_date, staff_id) -> int:
        return sum(
            1
            for e in self.waitlist.values()
            if e.barbershop_id == barbershop_id
            and e.preferred_date == preferred_date
            and e.staff_id == staff_id
            and e.status == WaitlistStatus.WAITING
        )

    async def expire_waitlist_entries(self, before: date) -> int:
        expired = 0
        for entry_id, entry in list(self.waitlist.items()):
            if entry.preferred_date < before and entry.status in (
                WaitlistStatus.WAITING,
                WaitlistStatus.NOTIFIED,
            ):
                self.waitlist[entry_id] = entry.model_copy(
                    update={"status": WaitlistStatus.EXPIRED}
                )
                expired += 1
        return expired

    async def invoke_function(self, name: str, body) -> dict:
        self.function_calls.append((name, body))
        return {"ok": True}


class RecordingTransport:
    """Notification transport that records messages instead of sending them."""

    def __init__(self):
        self.sent: List[tuple] = []
        self.fail = False

    async def send(self, recipient: str, message: str, template: str) -> None:
        if self.fail:
            raise NotificationError(f"Failed to deliver {template} to {recipient}")
        self.sent.append((recipient, template, message))

    @property
    def templates(self) -> List[str]:
        return [template for _, template, _ in self.sent]


@pytest.fixture
def store(open_snapshot):
    store = InMemoryStore(open_snapshot)
    store.add_service("svc-30", 30)
    store.add_service("svc-45", 45, price="70.00")
    store.add_service("svc-60", 60, price="90.00")
    return store


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def notifier(transport):
    return NotificationDispatcher(transport, enabled=True)
