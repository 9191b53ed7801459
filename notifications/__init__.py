"""Client notifications (WhatsApp through a Supabase Edge Function)."""

from .dispatcher import NotificationDispatcher, SupabaseFunctionTransport
from .templates import TEMPLATES, render

__all__ = ["NotificationDispatcher", "SupabaseFunctionTransport", "TEMPLATES", "render"]
