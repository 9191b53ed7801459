"""
Maintenance jobs using APScheduler.

- Hourly: WhatsApp reminders for appointments in the next
  `reminder_hours_before` hours.
- Daily: expire waitlist entries whose preferred date has passed.

Supports Redis backend for horizontal scaling (multiple instances).
"""

from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

# Redis jobstore is optional - only import if Redis is configured
try:
    from apscheduler.jobstores.redis import RedisJobStore

    REDIS_AVAILABLE = True
except ImportError:
    REDIS_AVAILABLE = False
    RedisJobStore = None

from booking.waitlist import WaitlistService
from config import settings
from models.appointment import MUTABLE_STATUSES, Appointment
from notifications.dispatcher import NotificationDispatcher, SupabaseFunctionTransport
from utils.datetime_utils import Clock, format_time, get_default_clock
from utils.exceptions import PersistenceError
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="scheduler.log", log_dir="logs")


def _create_scheduler() -> AsyncIOScheduler:
    """
    Create scheduler with Redis backend for clustering support.

    Falls back to default in-memory scheduler if Redis is not configured.
    """
    redis_url = settings.redis_url

    if redis_url and REDIS_AVAILABLE and RedisJobStore:
        try:
            from urllib.parse import urlparse

            parsed = urlparse(redis_url)
            host = parsed.hostname or "localhost"
            port = parsed.port or 6379
            db = int(parsed.path.lstrip("/")) if parsed.path.strip("/") else 0

            jobstores = {
                "default": RedisJobStore(
                    host=host, port=port, db=db, password=parsed.password
                )
            }
            logger.info(f"Scheduler using Redis backend: {host}:{port}/{db}")
            return AsyncIOScheduler(jobstores=jobstores, timezone=settings.timezone)
        except Exception as e:
            logger.warning(
                f"Failed to initialize Redis scheduler: {e}. Falling back to in-memory scheduler."
            )
            return AsyncIOScheduler(timezone=settings.timezone)

    if redis_url and not REDIS_AVAILABLE:
        logger.warning(
            "Redis URL configured but RedisJobStore not available. Install redis package."
        )
    logger.info("Scheduler using in-memory backend (single instance mode)")
    return AsyncIOScheduler(timezone=settings.timezone)


scheduler = _create_scheduler()


def _starts_at(appointment: Appointment, clock_now: datetime) -> datetime:
    return datetime.combine(
        appointment.appointment_date,
        appointment.appointment_time,
        tzinfo=clock_now.tzinfo,
    )


def needs_reminder(appointment: Appointment, now: datetime, horizon: datetime) -> bool:
    """Active, unpaused, not yet reminded and starting within (now, horizon]."""
    if appointment.status not in MUTABLE_STATUSES:
        return False
    if appointment.is_paused or appointment.reminder_sent is not None:
        return False
    if not appointment.client_phone:
        return False
    return now < _starts_at(appointment, now) <= horizon


async def check_and_send_reminders(
    db=None,
    notifier: Optional[NotificationDispatcher] = None,
    clock: Optional[Clock] = None,
    hours_before: Optional[int] = None,
) -> int:
    """
    Send reminders for upcoming appointments and stamp reminder_sent.

    Returns:
        Number of reminders sent
    """
    if db is None:
        from db import get_db_client

        db = get_db_client()
    notifier = notifier or NotificationDispatcher(SupabaseFunctionTransport(db))
    clock = clock or get_default_clock()
    now = clock.now()
    horizon = now + timedelta(hours=hours_before or settings.reminder_hours_before)

    try:
        appointments = await db.list_appointments_between(
            now.date(), horizon.date(), MUTABLE_STATUSES
        )
    except PersistenceError as e:
        logger.error(f"Database error checking reminders: {e}", exc_info=True)
        return 0

    due = [a for a in appointments if needs_reminder(a, now, horizon)]
    if not due:
        logger.debug("No appointments require reminders at this time")
        return 0

    logger.info(f"Processing {len(due)} appointments for reminders")
    sent_count = 0
    failed_count = 0

    for appointment in due:
        sent = await notifier.send(
            appointment.client_phone,
            "appointment_reminder",
            {
                "client_name": appointment.client_name or "",
                "service_name": appointment.service_name or "",
                "date": appointment.appointment_date.strftime("%d/%m/%Y"),
                "time": format_time(appointment.appointment_time),
            },
        )
        if not sent:
            failed_count += 1
            continue

        try:
            await db.mark_reminder_sent(appointment.id)
            sent_count += 1
        except PersistenceError as e:
            logger.warning(f"Failed to mark reminder as sent for {appointment.id}: {e}")
            failed_count += 1

    logger.info(
        f"Reminder processing complete: {sent_count} sent, {failed_count} failed"
    )
    return sent_count


async def expire_waitlist(db=None, clock: Optional[Clock] = None) -> int:
    """Daily job: expire stale waitlist entries."""
    if db is None:
        from db import get_db_client

        db = get_db_client()
    clock = clock or get_default_clock()
    service = WaitlistService(
        db,
        notifier=NotificationDispatcher(SupabaseFunctionTransport(db), enabled=False),
        clock=clock,
    )
    try:
        return await service.expire_past_entries()
    except PersistenceError as e:
        logger.error(f"Database error expiring waitlist: {e}", exc_info=True)
        return 0


def setup_scheduler() -> None:
    """Register maintenance jobs and start the scheduler."""
    # Run reminder check every hour
    scheduler.add_job(
        check_and_send_reminders,
        trigger=CronTrigger(minute=0),
        id="check_reminders",
        name="Check and send appointment reminders",
        replace_existing=True,
    )

    if settings.waitlist_expiry_enabled:
        scheduler.add_job(
            expire_waitlist,
            trigger=CronTrigger(hour=0, minute=5),
            id="expire_waitlist",
            name="Expire past waitlist entries",
            replace_existing=True,
        )

    scheduler.start()
    logger.info("Scheduler started")


def shutdown_scheduler() -> None:
    """Shutdown the scheduler."""
    scheduler.shutdown()
    logger.info("Scheduler stopped")
