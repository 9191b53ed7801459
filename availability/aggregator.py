"""
Slot listing for one day and calendar colouring for a whole month.

Both paths go through compute_day_slots, so the single-day picker and the
month calendar can never disagree about the rules.
"""

import calendar
import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from config import settings
from models.appointment import ACTIVE_STATUSES, Appointment
from models.availability import DayAvailability, DaySlots, DayStatus
from models.schedule import ScheduleSnapshot

from .conflicts import booked_intervals, filter_available
from .hours_resolver import HoursResolver
from .slot_generator import generate_slots

logger = logging.getLogger(__name__)


def compute_day_slots(
    resolver: HoursResolver,
    snapshot: ScheduleSnapshot,
    staff_id: Optional[str],
    target_date: date,
    duration_minutes: int,
    appointments: Iterable[Appointment],
    interval_minutes: int,
    exclude_id: Optional[str] = None,
) -> DaySlots:
    """Resolve hours, generate the grid and drop slots taken by active appointments."""
    validation = resolver.resolve(snapshot, target_date, staff_id)
    if not validation.is_valid:
        return DaySlots(target_date=target_date, validation=validation)

    all_slots = generate_slots(validation.window, duration_minutes, interval_minutes)
    booked = booked_intervals(
        (a for a in appointments if a.appointment_date == target_date),
        exclude_id=exclude_id,
    )
    return DaySlots(
        target_date=target_date,
        validation=validation,
        all_slots=all_slots,
        available_slots=filter_available(all_slots, duration_minutes, booked),
    )


def classify_day(day: DaySlots, partial_threshold: float) -> DayAvailability:
    """Map a day's slot counts onto closed / full / partial / available."""
    if not day.validation.is_valid or day.total == 0:
        return DayAvailability(
            target_date=day.target_date,
            status=DayStatus.CLOSED,
            total=day.total,
            reason=day.validation.reason,
        )

    result = DayAvailability(
        target_date=day.target_date,
        status=DayStatus.AVAILABLE,
        available=day.available,
        total=day.total,
    )
    if day.available == 0:
        result.status = DayStatus.FULL
    elif result.occupancy_ratio >= partial_threshold:
        result.status = DayStatus.PARTIAL
    return result


def month_days(year: int, month: int) -> List[date]:
    _, last_day = calendar.monthrange(year, month)
    first = date(year, month, 1)
    return [first + timedelta(days=offset) for offset in range(last_day)]


def compute_month_availability(
    resolver: HoursResolver,
    snapshot: ScheduleSnapshot,
    staff_id: Optional[str],
    duration_minutes: int,
    appointments: Iterable[Appointment],
    days: Iterable[date],
    interval_minutes: int,
    partial_threshold: float,
) -> List[DayAvailability]:
    """Classify every day against one appointment fetch. Pure function."""
    by_date: Dict[date, List[Appointment]] = defaultdict(list)
    for appointment in appointments:
        by_date[appointment.appointment_date].append(appointment)

    return [
        classify_day(
            compute_day_slots(
                resolver,
                snapshot,
                staff_id,
                day,
                duration_minutes,
                by_date.get(day, []),
                interval_minutes,
            ),
            partial_threshold,
        )
        for day in days
    ]


class AvailabilityService:
    """Read side of the engine: loads data from the store and runs the rules."""

    def __init__(
        self,
        db=None,
        resolver: Optional[HoursResolver] = None,
        interval_minutes: Optional[int] = None,
        partial_threshold: Optional[float] = None,
    ):
        if db is None:
            from db import get_db_client

            db = get_db_client()
        self.db = db
        self.resolver = resolver or HoursResolver()
        self.interval_minutes = (
            settings.slot_interval_minutes if interval_minutes is None else interval_minutes
        )
        self.partial_threshold = (
            settings.partial_occupancy_threshold
            if partial_threshold is None
            else partial_threshold
        )

    async def get_day_slots(
        self,
        barbershop_id: str,
        staff_id: str,
        service_id: str,
        target_date: date,
        exclude_appointment_id: Optional[str] = None,
    ) -> DaySlots:
        """Bookable start times for one staff member, service and date."""
        service = await self.db.get_service(service_id)
        snapshot = await self.db.get_schedule_snapshot(
            barbershop_id, staff_id, target_date, target_date
        )
        appointments = await self.db.list_staff_appointments(
            staff_id, target_date, target_date, ACTIVE_STATUSES
        )
        return compute_day_slots(
            self.resolver,
            snapshot,
            staff_id,
            target_date,
            service.duration_minutes,
            appointments,
            self.interval_minutes,
            exclude_id=exclude_appointment_id,
        )

    async def get_month_availability(
        self,
        barbershop_id: str,
        staff_id: str,
        service_id: str,
        year: int,
        month: int,
    ) -> List[DayAvailability]:
        """Status and slot counts for every day of a visible month."""
        days = month_days(year, month)
        service = await self.db.get_service(service_id)
        snapshot = await self.db.get_schedule_snapshot(
            barbershop_id, staff_id, days[0], days[-1]
        )
        appointments = await self.db.list_staff_appointments(
            staff_id, days[0], days[-1], ACTIVE_STATUSES
        )
        logger.debug(
            f"Month availability {year}-{month:02d} for staff {staff_id}: "
            f"{len(appointments)} active appointments"
        )
        return compute_month_availability(
            self.resolver,
            snapshot,
            staff_id,
            service.duration_minutes,
            appointments,
            days,
            self.interval_minutes,
            self.partial_threshold,
        )
