from datetime import timedelta
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReminderSettings(BaseSettings):
    # Scheduling
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_SCAN_INTERVAL_SECONDS: float = Field(default=60, gt=0)
    SCHEDULER_RUN_ON_STARTUP: bool = True
    SCHEDULER_BATCH_SIZE: Optional[int] = Field(default=None, ge=1)

    # Unsent reminders for appointments older than this are abandoned
    RETENTION_HOURS: float = Field(default=24, gt=0)

    # Store-wide sweep lease; renewed before every reminder, so it only has to
    # outlast one lookup + send
    SWEEP_LEASE_NAME: str = "reminder-dispatch"
    SWEEP_LEASE_SECONDS: float = Field(default=300, gt=0)

    # User directory
    USER_DIRECTORY_BACKEND: Literal["database", "supabase"] = "database"
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    USER_DIRECTORY_TIMEOUT_SECONDS: float = 10.0

    # Email
    SMTP_TIMEOUT_SECONDS: float = 30.0
    SUBJECT_PREFIX: str = "Reminder"

    # Metrics
    METRICS_ENABLED: bool = True

    @property
    def retention(self) -> timedelta:
        return timedelta(hours=self.RETENTION_HOURS)

    @property
    def sweep_lease_ttl(self) -> timedelta:
        return timedelta(seconds=self.SWEEP_LEASE_SECONDS)

    model_config = SettingsConfigDict(env_prefix="REMINDER_", env_file=".env", extra="ignore")


settings = ReminderSettings()
