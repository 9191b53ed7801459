"""Maintenance jobs: appointment reminders and waitlist expiry."""

from .reminders import (
    check_and_send_reminders,
    expire_waitlist,
    setup_scheduler,
    shutdown_scheduler,
)

__all__ = [
    "check_and_send_reminders",
    "expire_waitlist",
    "setup_scheduler",
    "shutdown_scheduler",
]
