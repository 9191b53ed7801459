"""
Unit tests for the booking write path.
"""

from datetime import date, time
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from booking.transaction import BookingService
from models.appointment import AppointmentStatus
from models.booking import BookingRequest, RejectionKind
from models.schedule import BlockedDate, ScheduleSnapshot
from utils.exceptions import PersistenceError, SlotUnavailableError

SHOP_ID = "shop-1"
STAFF_ID = "staff-1"
MONDAY = date(2024, 1, 8)


@pytest.fixture
def booking_service(store, notifier, resolver, clock):
    return BookingService(db=store, notifier=notifier, resolver=resolver, clock=clock)


def _request(**overrides):
    data = {
        "barbershop_id": SHOP_ID,
        "staff_id": STAFF_ID,
        "service_id": "svc-30",
        "appointment_date": MONDAY,
        "appointment_time": time(10, 0),
        "client_name": "João Silva",
        "client_phone": "+55 (11) 98765-4321",
    }
    data.update(overrides)
    return BookingRequest(**data)


@pytest.mark.asyncio
async def test_book_success(booking_service, store, notifier, transport):
    """Test a booking with service snapshot and client find-or-create."""
    result = await booking_service.book(_request(service_id="svc-45"))
    await notifier.drain()

    assert result.success
    appointment = result.appointment
    assert appointment.duration == 45
    assert appointment.service_price == Decimal("70.00")
    assert appointment.status == AppointmentStatus.PENDING
    assert appointment.client_id is not None
    assert (SHOP_ID, "5511987654321") in store.clients
    assert transport.templates == ["booking_confirmed"]


@pytest.mark.asyncio
async def test_book_reuses_existing_client(booking_service, store):
    """Test that a second booking with the same phone reuses the client."""
    first = await booking_service.book(_request())
    second = await booking_service.book(_request(appointment_time=time(11, 0)))

    assert first.appointment.client_id == second.appointment.client_id
    assert len(store.clients) == 1


@pytest.mark.asyncio
async def test_book_with_client_id_skips_lookup(booking_service, store):
    """Test that a supplied client id is used as-is."""
    result = await booking_service.book(_request(client_id="client-9", client_phone=None))

    assert result.appointment.client_id == "client-9"
    assert store.clients == {}


def test_request_needs_client_identity():
    """Test that a request without client id or phone is invalid."""
    with pytest.raises(ValueError):
        _request(client_phone=None)


@pytest.mark.asyncio
async def test_book_conflict(booking_service, store):
    """Test that an overlapping active appointment rejects the booking."""
    store.add_appointment(appointment_date=MONDAY, appointment_time=time(9, 45))

    result = await booking_service.book(_request())

    assert not result.success
    assert result.kind == RejectionKind.CONFLICT
    assert result.reason == "This time is no longer available"
    assert len(store.appointments) == 1


@pytest.mark.asyncio
async def test_book_blocked_date(booking_service, store):
    """Test that a blocked date is a validation rejection and writes nothing."""
    store.snapshot.blocked_dates.append(
        BlockedDate(barbershop_id=SHOP_ID, blocked_date=MONDAY)
    )

    result = await booking_service.book(_request())

    assert not result.success
    assert result.kind == RejectionKind.VALIDATION
    assert result.reason_code == "blocked"
    assert store.appointments == {}


@pytest.mark.asyncio
async def test_book_without_configured_hours(booking_service, store):
    """Test that a day without hours is a configuration rejection."""
    store.snapshot = ScheduleSnapshot(barbershop_id=SHOP_ID)

    result = await booking_service.book(_request())

    assert result.kind == RejectionKind.CONFIGURATION
    assert result.reason_code == "no_hours"


@pytest.mark.asyncio
async def test_book_overrunning_closing_time(booking_service):
    """Test that a service ending after closing is rejected."""
    result = await booking_service.book(
        _request(service_id="svc-60", appointment_time=time(17, 30))
    )

    assert result.kind == RejectionKind.VALIDATION
    assert result.reason_code == "outside_hours"


@pytest.mark.asyncio
async def test_book_into_break(booking_service, store, make_week):
    """Test that a 60-minute booking at 11:30 runs into a 12:00 break."""
    store.snapshot = ScheduleSnapshot(
        barbershop_id=SHOP_ID,
        business_hours=make_week(break_start="12:00", break_end="13:00"),
    )

    rejected = await booking_service.book(
        _request(service_id="svc-60", appointment_time=time(11, 30))
    )
    accepted = await booking_service.book(
        _request(service_id="svc-60", appointment_time=time(13, 0))
    )

    assert rejected.reason_code == "break_overlap"
    assert accepted.success


@pytest.mark.asyncio
async def test_store_rejection_is_a_conflict(booking_service, store):
    """Test that the atomic insert failing is reported as a conflict."""
    store.insert_appointment = AsyncMock(
        side_effect=SlotUnavailableError("Slot no longer available")
    )

    result = await booking_service.book(_request())

    assert not result.success
    assert result.kind == RejectionKind.CONFLICT


@pytest.mark.asyncio
async def test_storage_failure_raises(booking_service, store):
    """Test that a failed read raises PersistenceError and writes nothing."""
    store.fail_reads = True

    with pytest.raises(PersistenceError) as exc_info:
        await booking_service.book(_request())

    assert exc_info.value.retryable
    assert store.appointments == {}


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_booking(
    booking_service, notifier, transport
):
    """Test that a failing transport leaves the booking successful."""
    transport.fail = True

    result = await booking_service.book(_request())
    await notifier.drain()

    assert result.success
    assert transport.sent == []


@pytest.mark.asyncio
async def test_reschedule_excludes_self(booking_service, store):
    """Test moving an appointment by 15 minutes over its own slot."""
    existing = store.add_appointment(appointment_date=MONDAY, appointment_time=time(10, 0))

    result = await booking_service.reschedule(existing.id, MONDAY, time(10, 30))

    assert result.success
    assert store.appointments[existing.id].appointment_time == time(10, 30)


@pytest.mark.asyncio
async def test_reschedule_conflict(booking_service, store):
    """Test that moving onto another booking is rejected and nothing changes."""
    existing = store.add_appointment(appointment_date=MONDAY, appointment_time=time(10, 0))
    store.add_appointment(appointment_date=MONDAY, appointment_time=time(11, 0))

    result = await booking_service.reschedule(existing.id, MONDAY, time(11, 0))

    assert result.kind == RejectionKind.CONFLICT
    assert store.appointments[existing.id].appointment_time == time(10, 0)


@pytest.mark.asyncio
async def test_reschedule_stamps_original_date_for_series(booking_service, store):
    """Test that moving a series occurrence remembers where it came from."""
    existing = store.add_appointment(
        appointment_date=MONDAY,
        appointment_time=time(10, 0),
        is_recurring=True,
        recurring_group_id="group-1",
        recurrence_index=1,
    )

    await booking_service.reschedule(existing.id, date(2024, 1, 9), time(10, 0))
    await booking_service.reschedule(existing.id, date(2024, 1, 10), time(10, 0))

    assert store.appointments[existing.id].original_date == MONDAY


@pytest.mark.asyncio
async def test_reschedule_completed_is_rejected(booking_service, store):
    """Test that finished appointments cannot be moved."""
    existing = store.add_appointment(
        appointment_date=MONDAY,
        appointment_time=time(10, 0),
        status=AppointmentStatus.COMPLETED,
    )

    result = await booking_service.reschedule(existing.id, MONDAY, time(11, 0))

    assert result.kind == RejectionKind.VALIDATION


@pytest.mark.asyncio
async def test_cancel_frees_slot(booking_service, store, notifier, transport):
    """Test that canceling lets another client book the same time."""
    existing = store.add_appointment(appointment_date=MONDAY, appointment_time=time(10, 0))

    canceled = await booking_service.cancel(existing.id)
    rebooked = await booking_service.book(_request())
    await notifier.drain()

    assert canceled.appointment.status == AppointmentStatus.CANCELED
    assert rebooked.success
    assert transport.templates == ["booking_canceled", "booking_confirmed"]
