"""
Waitlist for clients who found no free slot on their preferred date.
"""

from datetime import date
from typing import Optional

from availability.aggregator import AvailabilityService
from availability.hours_resolver import HoursResolver
from models.waitlist import WaitlistCreate, WaitlistJoinResult
from notifications.dispatcher import NotificationDispatcher, SupabaseFunctionTransport
from utils.datetime_utils import Clock, get_default_clock
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="booking.log")


class WaitlistService:
    """Queues clients for a date and expires stale entries."""

    def __init__(
        self,
        db=None,
        notifier: Optional[NotificationDispatcher] = None,
        availability: Optional[AvailabilityService] = None,
        clock: Optional[Clock] = None,
    ):
        if db is None:
            from db import get_db_client

            db = get_db_client()
        self.db = db
        self.clock = clock or get_default_clock()
        self.notifier = notifier or NotificationDispatcher(SupabaseFunctionTransport(db))
        if availability is None:
            availability = AvailabilityService(db, resolver=HoursResolver(clock=self.clock))
        self.availability = availability

    async def join(self, request: WaitlistCreate, force: bool = False) -> WaitlistJoinResult:
        """
        Add a client to the waitlist for a date.

        Joining is refused while the date still has free slots for the
        requested staff member and service, unless force is set.

        Returns:
            WaitlistJoinResult with the queue position on success
        """
        if request.preferred_date < self.clock.today():
            return WaitlistJoinResult(joined=False, reason="This date is in the past")

        if not force and request.staff_id and request.service_id:
            day = await self.availability.get_day_slots(
                request.barbershop_id,
                request.staff_id,
                request.service_id,
                request.preferred_date,
            )
            if day.available > 0:
                return WaitlistJoinResult(
                    joined=False,
                    reason="There are still free slots on this date",
                )

        entry = await self.db.create_waitlist_entry(request)
        position = await self.db.count_waiting(
            request.barbershop_id, request.preferred_date, request.staff_id
        )
        logger.info(
            f"Waitlist entry {entry.id} for {request.preferred_date} at position {position}"
        )

        self.notifier.fire_and_forget(
            entry.client_phone,
            "waitlist_joined",
            {
                "client_name": entry.client_name,
                "date": entry.preferred_date.strftime("%d/%m/%Y"),
                "position": position,
            },
        )
        return WaitlistJoinResult(joined=True, entry=entry, position=position)

    async def expire_past_entries(self, today: Optional[date] = None) -> int:
        """Expire waiting/notified entries whose preferred date has passed."""
        expired = await self.db.expire_waitlist_entries(today or self.clock.today())
        if expired:
            logger.info(f"Expired {expired} waitlist entries")
        return expired
