"""
Fire-and-forget delivery of client notifications.

The booking path schedules a task and returns immediately; a failed
delivery is logged and never reaches the caller.
"""

import asyncio
from typing import Any, Dict, Optional, Set

from config import settings
from utils.exceptions import NotificationError
from utils.logging_config import setup_logging
from utils.validation import normalize_phone

from .templates import render

logger = setup_logging(name=__name__, log_file="notifications.log")


class SupabaseFunctionTransport:
    """Sends messages through a Supabase Edge Function."""

    def __init__(self, db=None, function_name: Optional[str] = None):
        if db is None:
            from db import get_db_client

            db = get_db_client()
        self.db = db
        self.function_name = function_name or settings.notification_function

    async def send(self, recipient: str, message: str, template: str) -> None:
        body = {"phone": recipient, "message": message, "template": template}
        try:
            await self.db.invoke_function(self.function_name, body)
        except Exception as e:
            raise NotificationError(
                f"Failed to deliver {template} to {recipient}: {e}"
            ) from e


class NotificationDispatcher:
    """Renders templates and hands them to a transport."""

    def __init__(self, transport=None, enabled: Optional[bool] = None):
        self.transport = transport or SupabaseFunctionTransport()
        self.enabled = settings.notifications_enabled if enabled is None else enabled
        self._pending: Set[asyncio.Task] = set()

    async def send(self, recipient: str, template: str, data: Dict[str, Any]) -> bool:
        """
        Deliver one notification and report whether it went out.

        Returns:
            True if sent, False if disabled, recipient-less or failed
        """
        phone = normalize_phone(recipient or "")
        if not self.enabled or not phone:
            logger.debug(f"Skipping {template} notification (enabled={self.enabled})")
            return False

        try:
            message = render(template, data)
            await self.transport.send(phone, message, template)
        except NotificationError as e:
            logger.error(f"Notification failed: {e}")
            return False
        except Exception as e:
            logger.error(
                f"Unexpected error sending {template} notification: {e}", exc_info=True
            )
            return False

        logger.info(f"Sent {template} notification to {phone}")
        return True

    def fire_and_forget(
        self, recipient: Optional[str], template: str, data: Dict[str, Any]
    ) -> Optional[asyncio.Task]:
        """Schedule a notification without waiting for it. Needs a running loop."""
        if not self.enabled or not recipient:
            return None

        task = asyncio.create_task(self.send(recipient, template, data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled notification (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
