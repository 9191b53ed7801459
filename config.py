"""
Configuration module for the salon scheduling engine.
Loads environment variables and provides typed configuration.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.constants import (
    DEFAULT_SLOT_INTERVAL_MINUTES,
    MAX_RECURRENCE_OCCURRENCES,
    PARTIAL_OCCUPANCY_THRESHOLD,
)

# Load .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""  # service_role key; bypasses RLS

    # Scheduling
    timezone: str = "America/Sao_Paulo"  # Used to decide what "today" is
    slot_interval_minutes: int = Field(default=DEFAULT_SLOT_INTERVAL_MINUTES, ge=5, le=240)
    partial_occupancy_threshold: float = Field(
        default=PARTIAL_OCCUPANCY_THRESHOLD, gt=0, le=1
    )
    max_recurrence_occurrences: int = Field(default=MAX_RECURRENCE_OCCURRENCES, ge=1)

    # Notifications
    notifications_enabled: bool = True
    notification_function: str = "send-whatsapp"  # Supabase Edge Function name
    reminder_hours_before: int = 24

    # Maintenance jobs
    waitlist_expiry_enabled: bool = True
    redis_url: Optional[str] = (
        None  # Redis connection URL for the APScheduler job store
    )

    # Runtime
    log_level: str = "INFO"
    environment: str = "development"  # development, staging, production

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def validate_all_required(self) -> None:
        """
        Validate that all required settings are present.

        Raises:
            ValueError: If required fields are missing or invalid
        """
        required_fields = ["supabase_url", "supabase_key"]

        missing = []
        for field in required_fields:
            value = getattr(self, field, None)
            if not value or str(value).lower().startswith("your_"):
                missing.append(field)

        if missing:
            raise ValueError(
                f"Missing or invalid required configuration: "
                f"{', '.join(missing)}. "
                f"Please check your .env file and ensure all required "
                f"values are set."
            )


# Global settings instance
settings = Settings()
