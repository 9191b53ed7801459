"""
Unit tests for Supabase database client.
Tests with mocked Supabase API calls.
"""

from datetime import date, time
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from postgrest.exceptions import APIError

from db.supabase_client import SupabaseClient
from models.appointment import ACTIVE_STATUSES, AppointmentCreate, AppointmentStatus
from models.client import ClientCreate
from models.schedule import Weekday
from utils.exceptions import (
    AppointmentNotFoundError,
    PersistenceError,
    ServiceNotFoundError,
    SlotUnavailableError,
)

APPOINTMENT_ROW = {
    "id": "appt_123",
    "barbershop_id": "shop-1",
    "staff_id": "staff-1",
    "service_id": "svc-30",
    "duration": 30,
    "appointment_date": "2024-01-08",
    "appointment_time": "10:00:00",
    "status": "pending",
}


@pytest.fixture
def supabase_client(mock_supabase_client):
    """Create SupabaseClient with mocked client."""
    mock_client, _ = mock_supabase_client
    with patch("db.supabase_client.create_client", return_value=mock_client):
        client = SupabaseClient()
        client.client = mock_client
        return client


def _response(data, count=None):
    response = MagicMock()
    response.data = data
    response.count = count
    return response


def _appointment_create():
    return AppointmentCreate(
        barbershop_id="shop-1",
        staff_id="staff-1",
        service_id="svc-30",
        service_price=Decimal("50.00"),
        duration=30,
        appointment_date=date(2024, 1, 8),
        appointment_time=time(10, 0),
    )


@pytest.mark.asyncio
async def test_get_service_success(supabase_client, mock_supabase_client):
    """Test getting a service maps the duration column."""
    _, mock_table = mock_supabase_client
    mock_table.select.return_value.eq.return_value.execute.return_value = _response(
        [{"id": "svc-30", "name": "Haircut", "duration": 30, "price": "50.00"}]
    )

    service = await supabase_client.get_service("svc-30")

    assert service.duration_minutes == 30
    assert service.price == Decimal("50.00")


@pytest.mark.asyncio
async def test_get_service_is_cached(supabase_client, mock_supabase_client):
    """Test that services are read once within the cache TTL."""
    _, mock_table = mock_supabase_client
    execute = mock_table.select.return_value.eq.return_value.execute
    execute.return_value = _response(
        [{"id": "svc-30", "name": "Haircut", "duration": 30}]
    )

    await supabase_client.get_service("svc-30")
    await supabase_client.get_service("svc-30")

    assert execute.call_count == 1


@pytest.mark.asyncio
async def test_get_service_not_found(supabase_client, mock_supabase_client):
    """Test that a missing service raises ServiceNotFoundError."""
    _, mock_table = mock_supabase_client
    mock_table.select.return_value.eq.return_value.execute.return_value = _response([])

    with pytest.raises(ServiceNotFoundError):
        await supabase_client.get_service("missing")


@pytest.mark.asyncio
async def test_get_service_inactive(supabase_client, mock_supabase_client):
    """Test that an inactive service is not bookable."""
    _, mock_table = mock_supabase_client
    mock_table.select.return_value.eq.return_value.execute.return_value = _response(
        [{"id": "svc-30", "name": "Haircut", "duration": 30, "active": False}]
    )

    with pytest.raises(ServiceNotFoundError):
        await supabase_client.get_service("svc-30")


@pytest.mark.asyncio
async def test_schedule_snapshot(supabase_client, mock_supabase_client):
    """Test loading every hours layer into one snapshot."""
    mock_client, _ = mock_supabase_client
    tables = {name: MagicMock() for name in (
        "business_hours", "special_hours", "blocked_dates", "staff", "staff_units"
    )}
    mock_client.table.side_effect = lambda name: tables[name]

    tables["business_hours"].select.return_value.eq.return_value.execute.return_value = (
        _response([
            {
                "barbershop_id": "shop-1",
                "day_of_week": 1,
                "is_open": True,
                "open_time": "09:00:00",
                "close_time": "18:00:00",
            }
        ])
    )
    special = tables["special_hours"].select.return_value.eq.return_value
    special.gte.return_value.lte.return_value.execute.return_value = _response([])
    blocked = tables["blocked_dates"].select.return_value.eq.return_value
    blocked.gte.return_value.lte.return_value.execute.return_value = _response(
        [{"barbershop_id": "shop-1", "blocked_date": "2024-01-09", "reason": "Holiday"}]
    )
    tables["staff"].select.return_value.eq.return_value.execute.return_value = _response(
        [{"id": "staff-1", "schedule": {"sunday": {"enabled": False}}}]
    )
    units = tables["staff_units"].select.return_value.eq.return_value.eq.return_value
    units.execute.return_value = _response([])

    snapshot = await supabase_client.get_schedule_snapshot(
        "shop-1", "staff-1", date(2024, 1, 1), date(2024, 1, 31)
    )

    assert snapshot.business_day(Weekday.MONDAY).is_open
    assert snapshot.is_blocked(date(2024, 1, 9))
    assert not snapshot.staff_day("staff-1", Weekday.SUNDAY).is_open
    special.gte.assert_called_once_with("special_date", "2024-01-01")


@pytest.mark.asyncio
async def test_schedule_snapshot_failure(supabase_client, mock_supabase_client):
    """Test that any failed read aborts the snapshot."""
    _, mock_table = mock_supabase_client
    mock_table.select.return_value.eq.return_value.execute.side_effect = Exception(
        "connection reset"
    )

    with pytest.raises(PersistenceError):
        await supabase_client.get_schedule_snapshot("shop-1")


@pytest.mark.asyncio
async def test_list_staff_appointments_filters_status(supabase_client, mock_supabase_client):
    """Test listing appointments by staff, date range and status set."""
    _, mock_table = mock_supabase_client
    query = mock_table.select.return_value.eq.return_value.gte.return_value.lte.return_value
    query.in_.return_value.order.return_value.order.return_value.execute.return_value = (
        _response([APPOINTMENT_ROW])
    )

    result = await supabase_client.list_staff_appointments(
        "staff-1", date(2024, 1, 8), date(2024, 1, 8), ACTIVE_STATUSES
    )

    assert result[0].appointment_time == time(10, 0)
    query.in_.assert_called_once_with("status", ["completed", "confirmed", "pending"])


@pytest.mark.asyncio
async def test_insert_appointment_success(supabase_client, mock_supabase_client):
    """Test successful appointment insert with JSON-safe payload."""
    _, mock_table = mock_supabase_client
    mock_table.insert.return_value.execute.return_value = _response([APPOINTMENT_ROW])

    result = await supabase_client.insert_appointment(_appointment_create())

    payload = mock_table.insert.call_args[0][0]
    assert payload["appointment_date"] == "2024-01-08"
    assert payload["status"] == "pending"
    assert result.id == "appt_123"
    assert result.status == AppointmentStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["23505", "23P01"])
async def test_insert_appointment_constraint_violation(
    supabase_client, mock_supabase_client, code
):
    """Test that slot constraint violations raise SlotUnavailableError."""
    _, mock_table = mock_supabase_client
    mock_table.insert.return_value.execute.side_effect = APIError(
        {"message": "conflicting key value", "code": code}
    )

    with pytest.raises(SlotUnavailableError):
        await supabase_client.insert_appointment(_appointment_create())


@pytest.mark.asyncio
async def test_insert_appointment_other_error(supabase_client, mock_supabase_client):
    """Test that other API errors are persistence failures."""
    _, mock_table = mock_supabase_client
    mock_table.insert.return_value.execute.side_effect = APIError(
        {"message": "permission denied", "code": "42501"}
    )

    with pytest.raises(PersistenceError) as exc_info:
        await supabase_client.insert_appointment(_appointment_create())

    assert not isinstance(exc_info.value, SlotUnavailableError)


@pytest.mark.asyncio
async def test_update_appointment_serializes_values(supabase_client, mock_supabase_client):
    """Test that dates, times and enums are sent as JSON values."""
    _, mock_table = mock_supabase_client
    mock_table.update.return_value.eq.return_value.execute.return_value = _response(
        [{**APPOINTMENT_ROW, "status": "canceled"}]
    )

    result = await supabase_client.update_appointment(
        "appt_123",
        {"status": AppointmentStatus.CANCELED, "appointment_time": time(11, 30)},
    )

    payload = mock_table.update.call_args[0][0]
    assert payload["status"] == "canceled"
    assert payload["appointment_time"] == "11:30:00"
    assert "updated_at" in payload
    assert result.status == AppointmentStatus.CANCELED


@pytest.mark.asyncio
async def test_update_appointment_not_found(supabase_client, mock_supabase_client):
    """Test that updating a missing appointment raises AppointmentNotFoundError."""
    _, mock_table = mock_supabase_client
    mock_table.update.return_value.eq.return_value.execute.return_value = _response([])

    with pytest.raises(AppointmentNotFoundError):
        await supabase_client.update_appointment("missing", {"notes": "x"})


@pytest.mark.asyncio
async def test_find_or_create_client_existing(supabase_client, mock_supabase_client):
    """Test that an existing client is returned without insert."""
    _, mock_table = mock_supabase_client
    lookup = mock_table.select.return_value.eq.return_value.eq.return_value.limit.return_value
    lookup.execute.return_value = _response(
        [{"id": "client_123", "barbershop_id": "shop-1", "name": "Ana", "phone": "11912345678"}]
    )

    client = await supabase_client.find_or_create_client(
        ClientCreate(barbershop_id="shop-1", name="Ana", phone="(11) 91234-5678")
    )

    assert client.id == "client_123"
    mock_table.insert.assert_not_called()


@pytest.mark.asyncio
async def test_find_or_create_client_new(supabase_client, mock_supabase_client):
    """Test that a new phone creates a client."""
    _, mock_table = mock_supabase_client
    lookup = mock_table.select.return_value.eq.return_value.eq.return_value.limit.return_value
    lookup.execute.return_value = _response([])
    mock_table.insert.return_value.execute.return_value = _response(
        [{"id": "client_456", "barbershop_id": "shop-1", "name": "Ana", "phone": "11912345678"}]
    )

    client = await supabase_client.find_or_create_client(
        ClientCreate(barbershop_id="shop-1", name="Ana", phone="11912345678")
    )

    assert client.id == "client_456"


@pytest.mark.asyncio
async def test_count_waiting(supabase_client, mock_supabase_client):
    """Test that the waitlist position uses the exact count."""
    _, mock_table = mock_supabase_client
    query = mock_table.select.return_value.eq.return_value.eq.return_value.eq.return_value
    query.eq.return_value.execute.return_value = _response([{"id": "w1"}], count=3)

    position = await supabase_client.count_waiting("shop-1", date(2024, 1, 8), "staff-1")

    assert position == 3


@pytest.mark.asyncio
async def test_invoke_function(supabase_client, mock_supabase_client):
    """Test invoking the notification edge function."""
    mock_client, _ = mock_supabase_client

    await supabase_client.invoke_function("send-whatsapp", {"phone": "11912345678"})

    mock_client.functions.invoke.assert_called_once_with(
        "send-whatsapp", invoke_options={"body": {"phone": "11912345678"}}
    )


def test_clear_cache_by_pattern(supabase_client):
    """Test that cache entries can be cleared selectively."""
    supabase_client._set_cache("service:a", 1)
    supabase_client._set_cache("other:b", 2)

    supabase_client._clear_cache("service:")

    assert supabase_client._get_from_cache("service:a") is None
    assert supabase_client._get_from_cache("other:b") == 2
