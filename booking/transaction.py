"""
Booking write path: Validate -> CheckConflict -> Persist -> Notify.

Availability shown to the client may be stale by the time they confirm, so
every write re-runs the hours resolver, the containment check and the
conflict check against fresh data. The final word belongs to the store: the
insert itself fails with SlotUnavailableError when a conflicting active row
already exists.
"""

from datetime import date, time
from typing import Any, Collection, Dict, Iterable, NamedTuple, Optional

from availability.conflicts import booked_intervals, find_conflict
from availability.hours_resolver import HoursResolver
from availability.slot_generator import check_fits_window
from models.appointment import (
    ACTIVE_STATUSES,
    MUTABLE_STATUSES,
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
)
from models.availability import CONFIGURATION_REASONS, ReasonCode
from models.booking import BookingRequest, BookingResult, RejectionKind
from models.client import ClientCreate
from models.schedule import ScheduleSnapshot
from models.service import Service
from notifications.dispatcher import NotificationDispatcher, SupabaseFunctionTransport
from utils.constants import MAX_CLIENT_NAME_LENGTH, MAX_NOTES_LENGTH
from utils.datetime_utils import Clock, format_time, get_default_clock, time_to_minutes
from utils.exceptions import SlotUnavailableError
from utils.logging_config import setup_logging
from utils.validation import sanitize_text

logger = setup_logging(name=__name__, log_file="booking.log")

SLOT_TAKEN_REASON = "This time is no longer available"

_CONTAINMENT_REASONS = {
    ReasonCode.OUTSIDE_HOURS: "The service does not fit within the opening hours",
    ReasonCode.BREAK_OVERLAP: "The service would overlap the break",
}


class SlotRejection(NamedTuple):
    """Why a (date, time, duration) cannot be booked."""

    kind: RejectionKind
    reason_code: str
    reason: str

    def to_result(self) -> BookingResult:
        return BookingResult.rejected(self.kind, self.reason, self.reason_code)


def check_slot(
    resolver: HoursResolver,
    snapshot: ScheduleSnapshot,
    staff_id: str,
    target_date: date,
    start_time: time,
    duration_minutes: int,
    appointments: Iterable[Appointment],
    exclude_ids: Collection[str] = (),
) -> Optional[SlotRejection]:
    """
    Full bookability check of one interval against a snapshot.

    Args:
        appointments: Appointments of the staff member (any dates)
        exclude_ids: Appointments being moved; they never conflict with themselves

    Returns:
        None if the interval can be booked, otherwise the rejection
    """
    validation = resolver.resolve(snapshot, target_date, staff_id)
    if not validation.is_valid:
        kind = (
            RejectionKind.CONFIGURATION
            if validation.reason_code in CONFIGURATION_REASONS
            else RejectionKind.VALIDATION
        )
        return SlotRejection(kind, validation.reason_code.value, validation.reason)

    start_minutes = time_to_minutes(start_time)
    misfit = check_fits_window(validation.window, start_minutes, duration_minutes)
    if misfit is not None:
        return SlotRejection(
            RejectionKind.VALIDATION, misfit.value, _CONTAINMENT_REASONS[misfit]
        )

    booked = booked_intervals(
        a
        for a in appointments
        if a.appointment_date == target_date and a.id not in exclude_ids
    )
    if find_conflict(start_minutes, duration_minutes, booked) is not None:
        return SlotRejection(RejectionKind.CONFLICT, "slot_taken", SLOT_TAKEN_REASON)
    return None


def divergence_changes(appointment: Appointment, new_date: date) -> Dict[str, Any]:
    """Stamp original_date the first time a series occurrence leaves its date."""
    if (
        appointment.is_recurring
        and new_date != appointment.appointment_date
        and appointment.original_date is None
    ):
        return {"original_date": appointment.appointment_date}
    return {}


def notification_data(appointment: Appointment, **extra: Any) -> Dict[str, Any]:
    data = {
        "appointment_id": appointment.id,
        "client_name": appointment.client_name or "",
        "service_name": appointment.service_name or "",
        "date": appointment.appointment_date.strftime("%d/%m/%Y"),
        "time": format_time(appointment.appointment_time),
    }
    data.update(extra)
    return data


async def resolve_client_id(db, request: BookingRequest) -> Optional[str]:
    """Use the given client id or find-or-create the client by phone."""
    if request.client_id:
        return request.client_id

    name = sanitize_text(request.client_name or "", MAX_CLIENT_NAME_LENGTH)
    client = await db.find_or_create_client(
        ClientCreate(
            barbershop_id=request.barbershop_id,
            name=name or request.client_phone,
            phone=request.client_phone,
        )
    )
    return client.id


def build_appointment(
    request: BookingRequest,
    service: Service,
    client_id: Optional[str],
    appointment_date: date,
    **recurrence: Any,
) -> AppointmentCreate:
    """Appointment row with service duration and price snapshotted."""
    return AppointmentCreate(
        barbershop_id=request.barbershop_id,
        staff_id=request.staff_id,
        service_id=service.id,
        client_id=client_id,
        client_name=sanitize_text(request.client_name or "", MAX_CLIENT_NAME_LENGTH)
        or None,
        client_phone=request.client_phone,
        service_name=service.name,
        service_price=service.price,
        duration=service.duration_minutes,
        appointment_date=appointment_date,
        appointment_time=request.appointment_time,
        notes=sanitize_text(request.notes or "", MAX_NOTES_LENGTH) or None,
        **recurrence,
    )


class BookingService:
    """Books, reschedules and cancels single appointments."""

    def __init__(
        self,
        db=None,
        notifier: Optional[NotificationDispatcher] = None,
        resolver: Optional[HoursResolver] = None,
        clock: Optional[Clock] = None,
    ):
        if db is None:
            from db import get_db_client

            db = get_db_client()
        self.db = db
        self.clock = clock or get_default_clock()
        self.resolver = resolver or HoursResolver(clock=self.clock)
        self.notifier = notifier or NotificationDispatcher(SupabaseFunctionTransport(db))

    async def _check(
        self,
        barbershop_id: str,
        staff_id: str,
        target_date: date,
        start_time: time,
        duration_minutes: int,
        exclude_ids: Collection[str] = (),
    ) -> Optional[SlotRejection]:
        snapshot = await self.db.get_schedule_snapshot(
            barbershop_id, staff_id, target_date, target_date
        )
        appointments = await self.db.list_staff_appointments(
            staff_id, target_date, target_date, ACTIVE_STATUSES
        )
        return check_slot(
            self.resolver,
            snapshot,
            staff_id,
            target_date,
            start_time,
            duration_minutes,
            appointments,
            exclude_ids,
        )

    async def book(self, request: BookingRequest) -> BookingResult:
        """
        Book one appointment.

        Returns:
            BookingResult; rejected results carry kind and a readable reason

        Raises:
            PersistenceError: Storage failure (nothing was written)
        """
        service = await self.db.get_service(request.service_id)

        rejection = await self._check(
            request.barbershop_id,
            request.staff_id,
            request.appointment_date,
            request.appointment_time,
            service.duration_minutes,
        )
        if rejection is not None:
            logger.info(
                f"Booking rejected for staff {request.staff_id} on "
                f"{request.appointment_date} {format_time(request.appointment_time)}: "
                f"{rejection.reason_code}"
            )
            return rejection.to_result()

        client_id = await resolve_client_id(self.db, request)
        try:
            appointment = await self.db.insert_appointment(
                build_appointment(request, service, client_id, request.appointment_date)
            )
        except SlotUnavailableError:
            logger.info(
                f"Slot taken concurrently for staff {request.staff_id} on "
                f"{request.appointment_date} {format_time(request.appointment_time)}"
            )
            return BookingResult.rejected(
                RejectionKind.CONFLICT, SLOT_TAKEN_REASON, "slot_taken"
            )

        logger.info(f"Created appointment {appointment.id}")
        self.notifier.fire_and_forget(
            appointment.client_phone, "booking_confirmed", notification_data(appointment)
        )
        return BookingResult.booked(appointment)

    async def reschedule(
        self, appointment_id: str, new_date: date, new_time: time
    ) -> BookingResult:
        """Move one appointment, re-validating the new slot without self-conflict."""
        appointment = await self.db.get_appointment(appointment_id)
        if appointment.status not in MUTABLE_STATUSES:
            return BookingResult.rejected(
                RejectionKind.VALIDATION,
                f"A {appointment.status.value} appointment cannot be rescheduled",
                "not_mutable",
            )

        rejection = await self._check(
            appointment.barbershop_id,
            appointment.staff_id,
            new_date,
            new_time,
            appointment.duration,
            exclude_ids={appointment.id},
        )
        if rejection is not None:
            return rejection.to_result()

        changes: Dict[str, Any] = {
            "appointment_date": new_date,
            "appointment_time": new_time,
        }
        changes.update(divergence_changes(appointment, new_date))
        try:
            updated = await self.db.update_appointment(appointment.id, changes)
        except SlotUnavailableError:
            return BookingResult.rejected(
                RejectionKind.CONFLICT, SLOT_TAKEN_REASON, "slot_taken"
            )

        logger.info(f"Rescheduled appointment {appointment.id} to {new_date} {new_time}")
        self.notifier.fire_and_forget(
            updated.client_phone, "booking_rescheduled", notification_data(updated)
        )
        return BookingResult.booked(updated)

    async def cancel(self, appointment_id: str) -> BookingResult:
        """Cancel one appointment, freeing its slot."""
        appointment = await self.db.get_appointment(appointment_id)
        if appointment.status == AppointmentStatus.CANCELED:
            return BookingResult.booked(appointment)
        if appointment.status not in MUTABLE_STATUSES:
            return BookingResult.rejected(
                RejectionKind.VALIDATION,
                f"A {appointment.status.value} appointment cannot be canceled",
                "not_mutable",
            )

        updated = await self.db.update_appointment(
            appointment.id, {"status": AppointmentStatus.CANCELED}
        )
        logger.info(f"Canceled appointment {appointment.id}")
        self.notifier.fire_and_forget(
            updated.client_phone, "booking_canceled", notification_data(updated)
        )
        return BookingResult.booked(updated)
