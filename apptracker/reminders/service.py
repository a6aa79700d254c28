from typing import Optional

from sqlalchemy.orm import sessionmaker

from apptracker.services.email_service import EmailService
from .config import ReminderSettings, settings as reminder_settings
from .directory import build_user_directory
from .dispatcher import ReminderDispatcher
from .scheduler import ReminderScheduler


def build_dispatcher(
    config: Optional[ReminderSettings] = None,
    session_factory: Optional[sessionmaker] = None,
) -> ReminderDispatcher:
    config = config or reminder_settings
    return ReminderDispatcher(
        directory=build_user_directory(config, session_factory),
        sender=EmailService(timeout=config.SMTP_TIMEOUT_SECONDS),
        session_factory=session_factory,
        config=config,
    )


def build_scheduler(
    config: Optional[ReminderSettings] = None,
    session_factory: Optional[sessionmaker] = None,
) -> ReminderScheduler:
    config = config or reminder_settings
    return ReminderScheduler(
        build_dispatcher(config, session_factory),
        interval_seconds=config.SCHEDULER_SCAN_INTERVAL_SECONDS,
        run_on_start=config.SCHEDULER_RUN_ON_STARTUP,
    )
