"""
Supabase database client for the scheduling engine.

Handles every read and write the engine makes: schedule configuration,
services, appointments, clients and the waitlist.

Double-booking protection
=========================
Booking correctness does not rely on the check-then-write done in Python.
The appointments table carries constraints so that the insert (or update)
itself fails when a conflicting active row exists:

-- Same staff, same date, same start time, active status
CREATE UNIQUE INDEX appointments_active_slot_uidx
ON appointments (staff_id, appointment_date, appointment_time)
WHERE status IN ('pending', 'confirmed', 'completed');

-- Overlapping intervals for the same staff (requires btree_gist)
ALTER TABLE appointments ADD CONSTRAINT appointments_no_overlap
EXCLUDE USING gist (
    staff_id WITH =,
    tsrange(
        appointment_date + appointment_time,
        appointment_date + appointment_time + make_interval(mins => duration)
    ) WITH &&
) WHERE (status IN ('pending', 'confirmed', 'completed'));

Violations come back as PostgREST errors with code 23505 / 23P01 and are
raised as SlotUnavailableError.

This client uses the service key which bypasses RLS.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from postgrest.exceptions import APIError
from supabase import Client as SupabaseClientType
from supabase import create_client

from config import settings
from models.appointment import Appointment, AppointmentCreate, AppointmentStatus
from models.client import Client, ClientCreate
from models.schedule import (
    BlockedDate,
    BusinessHours,
    ScheduleSnapshot,
    SpecialHours,
    staff_schedule_from_json,
    staff_unit_schedules_from_json,
)
from models.service import Service
from models.waitlist import WaitlistCreate, WaitlistEntry, WaitlistStatus
from utils.constants import EXCLUSION_VIOLATION_CODE, UNIQUE_VIOLATION_CODE
from utils.datetime_utils import to_iso_string, utc_now
from utils.exceptions import (
    AppointmentNotFoundError,
    PersistenceError,
    SchedulingError,
    ServiceNotFoundError,
    SlotUnavailableError,
)
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="database.log")

_SLOT_CONSTRAINT_CODES = {UNIQUE_VIOLATION_CODE, EXCLUSION_VIOLATION_CODE}


def _serialize(value: Any) -> Any:
    """Convert Python values to what PostgREST expects in a JSON body."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return to_iso_string(value)
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def _to_row(changes: Dict[str, Any]) -> Dict[str, Any]:
    return {key: _serialize(value) for key, value in changes.items()}


def _is_slot_violation(error: APIError) -> bool:
    return getattr(error, "code", None) in _SLOT_CONSTRAINT_CODES


class SupabaseClient:
    """
    Supabase database client wrapper.

    Every failed call is raised as PersistenceError so callers never
    continue on partial data. Services are cached briefly since the
    catalog is read on every booking.
    """

    def __init__(self):
        self.client: SupabaseClientType = create_client(
            settings.supabase_url, settings.supabase_key
        )

        # Format: {cache_key: (data, expiry_time)}
        self._cache: Dict[str, Tuple[Any, datetime]] = {}
        self._cache_ttl = timedelta(minutes=5)

    # ========== Cache Helpers ==========

    def _get_from_cache(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired."""
        if key not in self._cache:
            return None

        data, expiry = self._cache[key]
        if utc_now() > expiry:
            del self._cache[key]
            return None

        return data

    def _set_cache(self, key: str, value: Any) -> None:
        """Set value in cache with TTL."""
        self._cache[key] = (value, utc_now() + self._cache_ttl)

    def _clear_cache(self, pattern: Optional[str] = None) -> None:
        """Clear cache entries matching pattern, or all if pattern is None."""
        if pattern is None:
            self._cache.clear()
        else:
            for key in [k for k in self._cache if pattern in k]:
                del self._cache[key]

    # ========== Schedule Configuration ==========

    async def get_schedule_snapshot(
        self,
        barbershop_id: str,
        staff_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> ScheduleSnapshot:
        """
        Load every hours layer for a barbershop (and optionally a staff member).

        Date-specific layers are limited to [start_date, end_date] when given.
        Any failed read aborts the whole snapshot.
        """
        try:
            hours = (
                self.client.table("business_hours")
                .select("*")
                .eq("barbershop_id", barbershop_id)
                .execute()
            )

            special_query = (
                self.client.table("special_hours")
                .select("*")
                .eq("barbershop_id", barbershop_id)
            )
            blocked_query = (
                self.client.table("blocked_dates")
                .select("*")
                .eq("barbershop_id", barbershop_id)
            )
            if start_date:
                special_query = special_query.gte("special_date", start_date.isoformat())
                blocked_query = blocked_query.gte("blocked_date", start_date.isoformat())
            if end_date:
                special_query = special_query.lte("special_date", end_date.isoformat())
                blocked_query = blocked_query.lte("blocked_date", end_date.isoformat())
            special = special_query.execute()
            blocked = blocked_query.execute()

            snapshot = ScheduleSnapshot(
                barbershop_id=barbershop_id,
                business_hours=[BusinessHours(**row) for row in hours.data],
                special_hours=[SpecialHours(**row) for row in special.data],
                blocked_dates=[BlockedDate(**row) for row in blocked.data],
            )

            if staff_id:
                staff = (
                    self.client.table("staff")
                    .select("id, schedule")
                    .eq("id", staff_id)
                    .execute()
                )
                if staff.data:
                    snapshot.staff_schedules = staff_schedule_from_json(
                        staff_id, staff.data[0].get("schedule")
                    )

                units = (
                    self.client.table("staff_units")
                    .select("staff_id, barbershop_id, schedule")
                    .eq("staff_id", staff_id)
                    .eq("active", True)
                    .execute()
                )
                for row in units.data:
                    snapshot.staff_unit_schedules.extend(
                        staff_unit_schedules_from_json(
                            staff_id, row["barbershop_id"], row.get("schedule")
                        )
                    )

            return snapshot
        except Exception as e:
            raise PersistenceError(f"Failed to load schedule configuration: {e}") from e

    # ========== Services ==========

    async def get_service(self, service_id: str) -> Service:
        """Get an active service by ID (cached)."""
        cache_key = f"service:{service_id}"
        cached = self._get_from_cache(cache_key)
        if cached is not None:
            return cached

        try:
            response = (
                self.client.table("services").select("*").eq("id", service_id).execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to get service: {e}") from e

        if not response.data:
            raise ServiceNotFoundError(f"Service {service_id} not found")

        service = Service(**response.data[0])
        if not service.active:
            raise ServiceNotFoundError(f"Service {service_id} is not active")

        self._set_cache(cache_key, service)
        return service

    # ========== Appointments ==========

    async def list_staff_appointments(
        self,
        staff_id: str,
        start_date: date,
        end_date: date,
        statuses: Optional[Iterable[AppointmentStatus]] = None,
    ) -> List[Appointment]:
        """List a staff member's appointments in a date range, filtered by status."""
        try:
            query = (
                self.client.table("appointments")
                .select("*")
                .eq("staff_id", staff_id)
                .gte("appointment_date", start_date.isoformat())
                .lte("appointment_date", end_date.isoformat())
            )
            if statuses is not None:
                query = query.in_("status", sorted(s.value for s in statuses))

            response = query.order("appointment_date").order("appointment_time").execute()
            return [Appointment(**row) for row in response.data]
        except Exception as e:
            raise PersistenceError(f"Failed to list appointments: {e}") from e

    async def list_appointments_between(
        self,
        start_date: date,
        end_date: date,
        statuses: Optional[Iterable[AppointmentStatus]] = None,
    ) -> List[Appointment]:
        """List appointments of every barbershop in a date range (maintenance jobs)."""
        try:
            query = (
                self.client.table("appointments")
                .select("*")
                .gte("appointment_date", start_date.isoformat())
                .lte("appointment_date", end_date.isoformat())
            )
            if statuses is not None:
                query = query.in_("status", sorted(s.value for s in statuses))

            response = query.execute()
            return [Appointment(**row) for row in response.data]
        except Exception as e:
            raise PersistenceError(f"Failed to list appointments: {e}") from e

    async def get_appointment(self, appointment_id: str) -> Appointment:
        """Get appointment by ID."""
        try:
            response = (
                self.client.table("appointments")
                .select("*")
                .eq("id", appointment_id)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to get appointment: {e}") from e

        if not response.data:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        return Appointment(**response.data[0])

    async def list_series(self, recurring_group_id: str) -> List[Appointment]:
        """Every occurrence of a recurring series, ordered by index."""
        try:
            response = (
                self.client.table("appointments")
                .select("*")
                .eq("recurring_group_id", recurring_group_id)
                .order("recurrence_index")
                .execute()
            )
            return [Appointment(**row) for row in response.data]
        except Exception as e:
            raise PersistenceError(f"Failed to list series: {e}") from e

    async def insert_appointment(self, appointment_data: AppointmentCreate) -> Appointment:
        """
        Insert an appointment in one atomic statement.

        Raises:
            SlotUnavailableError: A conflicting active appointment already exists
            PersistenceError: Any other storage failure
        """
        data = appointment_data.model_dump(mode="json", exclude_none=True)
        try:
            response = self.client.table("appointments").insert(data).execute()
        except APIError as e:
            if _is_slot_violation(e):
                raise SlotUnavailableError(
                    "Slot no longer available", reason_code="slot_taken"
                ) from e
            raise PersistenceError(f"Failed to create appointment: {e}") from e
        except Exception as e:
            raise PersistenceError(f"Failed to create appointment: {e}") from e

        if not response.data:
            raise PersistenceError("Failed to create appointment: no data returned")
        return Appointment(**response.data[0])

    async def update_appointment(
        self, appointment_id: str, changes: Dict[str, Any]
    ) -> Appointment:
        """
        Update one appointment in one atomic statement.

        Date/time changes are guarded by the same constraints as inserts.

        Raises:
            SlotUnavailableError: The new slot collides with an active appointment
            AppointmentNotFoundError: No row with that ID
            PersistenceError: Any other storage failure
        """
        row = _to_row(changes)
        row["updated_at"] = to_iso_string(utc_now())
        try:
            response = (
                self.client.table("appointments")
                .update(row)
                .eq("id", appointment_id)
                .execute()
            )
        except APIError as e:
            if _is_slot_violation(e):
                raise SlotUnavailableError(
                    "Slot no longer available", reason_code="slot_taken"
                ) from e
            raise PersistenceError(f"Failed to update appointment: {e}") from e
        except Exception as e:
            raise PersistenceError(f"Failed to update appointment: {e}") from e

        if not response.data:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        return Appointment(**response.data[0])

    async def mark_reminder_sent(self, appointment_id: str) -> Appointment:
        """Stamp the reminder time on an appointment."""
        return await self.update_appointment(
            appointment_id, {"reminder_sent": utc_now()}
        )

    # ========== Clients ==========

    async def find_client_by_phone(
        self, barbershop_id: str, phone: str
    ) -> Optional[Client]:
        try:
            response = (
                self.client.table("clients")
                .select("*")
                .eq("barbershop_id", barbershop_id)
                .eq("phone", phone)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to get client: {e}") from e
        return Client(**response.data[0]) if response.data else None

    async def find_or_create_client(self, client_data: ClientCreate) -> Client:
        """
        Resolve a client by phone within a barbershop, creating it if needed.

        A concurrent creation of the same phone is resolved by reading the
        row the other caller inserted.
        """
        existing = await self.find_client_by_phone(
            client_data.barbershop_id, client_data.phone
        )
        if existing:
            return existing

        try:
            response = (
                self.client.table("clients")
                .insert(client_data.model_dump(mode="json", exclude_none=True))
                .execute()
            )
        except APIError as e:
            if getattr(e, "code", None) == UNIQUE_VIOLATION_CODE:
                existing = await self.find_client_by_phone(
                    client_data.barbershop_id, client_data.phone
                )
                if existing:
                    return existing
            raise PersistenceError(f"Failed to create client: {e}") from e
        except Exception as e:
            raise PersistenceError(f"Failed to create client: {e}") from e

        if not response.data:
            raise PersistenceError("Failed to create client: no data returned")

        logger.info(f"Created client for barbershop {client_data.barbershop_id}")
        return Client(**response.data[0])

    # ========== Waitlist ==========

    async def create_waitlist_entry(self, entry_data: WaitlistCreate) -> WaitlistEntry:
        try:
            response = (
                self.client.table("waitlist")
                .insert(entry_data.model_dump(mode="json", exclude_none=True))
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to create waitlist entry: {e}") from e

        if not response.data:
            raise PersistenceError("Failed to create waitlist entry: no data returned")
        return WaitlistEntry(**response.data[0])

    async def count_waiting(
        self, barbershop_id: str, preferred_date: date, staff_id: Optional[str]
    ) -> int:
        """Number of waiting entries for a barbershop, date and staff member."""
        try:
            query = (
                self.client.table("waitlist")
                .select("id", count="exact")
                .eq("barbershop_id", barbershop_id)
                .eq("preferred_date", preferred_date.isoformat())
                .eq("status", WaitlistStatus.WAITING.value)
            )
            if staff_id:
                query = query.eq("staff_id", staff_id)
            response = query.execute()
        except Exception as e:
            raise PersistenceError(f"Failed to count waitlist: {e}") from e
        return response.count if response.count is not None else len(response.data)

    async def expire_waitlist_entries(self, before: date) -> int:
        """Mark waiting/notified entries whose preferred date is before `before` as expired."""
        try:
            response = (
                self.client.table("waitlist")
                .update(
                    {
                        "status": WaitlistStatus.EXPIRED.value,
                        "updated_at": to_iso_string(utc_now()),
                    }
                )
                .lt("preferred_date", before.isoformat())
                .in_(
                    "status",
                    [WaitlistStatus.WAITING.value, WaitlistStatus.NOTIFIED.value],
                )
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to expire waitlist entries: {e}") from e
        return len(response.data or [])

    # ========== Edge Functions ==========

    async def invoke_function(self, name: str, body: Dict[str, Any]) -> Any:
        """Invoke a Supabase Edge Function (used as the message transport)."""
        try:
            return self.client.functions.invoke(name, invoke_options={"body": body})
        except SchedulingError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to invoke function {name}: {e}") from e


# Global database client instance
_db_client: Optional[SupabaseClient] = None


def get_db_client() -> SupabaseClient:
    """Get or create database client instance."""
    global _db_client
    if _db_client is None:
        _db_client = SupabaseClient()
    return _db_client
