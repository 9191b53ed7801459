"""
Message templates sent to clients over WhatsApp.
"""

from typing import Any, Dict

from utils.exceptions import NotificationError

TEMPLATES: Dict[str, str] = {
    "booking_confirmed": (
        "✅ Booking confirmed!\n\n"
        "Service: {service_name}\n"
        "Date: {date}\n"
        "Time: {time}\n\n"
        "See you soon! 💈"
    ),
    "booking_rescheduled": (
        "🔄 Your appointment was rescheduled.\n\n"
        "New date: {date}\n"
        "New time: {time}"
    ),
    "booking_canceled": (
        "❌ Your appointment on {date} at {time} was canceled."
    ),
    "series_created": (
        "📅 Recurring booking created!\n\n"
        "Service: {service_name}\n"
        "{description}\n"
        "Appointments: {count}\n"
        "First date: {date} at {time}"
    ),
    "waitlist_joined": (
        "📝 You are on the waitlist for {date}.\n\n"
        "Position: {position}\n"
        "We will let you know if a slot opens up."
    ),
    "appointment_reminder": (
        "🔔 Reminder: you have an appointment on {date} at {time}.\n\n"
        "Service: {service_name}\n"
        "See you soon! 💈"
    ),
}


class _MissingAsBlank(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render(template: str, data: Dict[str, Any]) -> str:
    """
    Render a template with the given data.

    Missing placeholders render as empty strings.

    Raises:
        NotificationError: Unknown template name
    """
    try:
        text = TEMPLATES[template]
    except KeyError as e:
        raise NotificationError(
            f"Unknown notification template: {template}", reason_code="unknown_template"
        ) from e
    return text.format_map(_MissingAsBlank(data))
