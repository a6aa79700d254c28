import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from apptracker.core.config import settings
from apptracker.core.logging import configure_logging
from apptracker.db.base import Base
from apptracker.db import session as db_session
from apptracker import models  # noqa: F401  (register tables on Base.metadata)
from apptracker.reminders.api import router as reminders_router
from apptracker.reminders.config import settings as reminder_settings
from apptracker.reminders.scheduler import ReminderScheduler
from apptracker.reminders.service import build_scheduler

logger = logging.getLogger(__name__)


def _check_tables(engine: Engine) -> None:
    try:
        existing_tables = inspect(engine).get_table_names()
        missing_tables = [name for name in Base.metadata.tables if name not in existing_tables]
        if not missing_tables:
            logger.info("All required database tables exist")
        elif settings.is_development:
            logger.warning(f"Creating missing tables for local development: {missing_tables}")
            Base.metadata.create_all(bind=engine)
        else:
            logger.warning(f"Missing database tables: {missing_tables}")
    except Exception as e:
        logger.warning(f"Could not check database tables: {e}")


def create_app(
    engine: Optional[Engine] = None,
    scheduler_factory: Optional[Callable[[], ReminderScheduler]] = None,
    enable_scheduler: Optional[bool] = None,
    enable_metrics: Optional[bool] = None,
) -> FastAPI:
    engine = engine or db_session.engine
    scheduler_factory = scheduler_factory or build_scheduler
    if enable_scheduler is None:
        enable_scheduler = reminder_settings.SCHEDULER_ENABLED
    if enable_metrics is None:
        enable_metrics = reminder_settings.METRICS_ENABLED

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events"""
        logger.info(f"Starting up {settings.PROJECT_NAME}...")
        _check_tables(engine)

        scheduler = None
        if enable_scheduler:
            scheduler = scheduler_factory()
            app.state.reminder_scheduler = scheduler
            scheduler.start()
        else:
            app.state.reminder_scheduler = None
            logger.info("[Scheduler] Reminder scheduler disabled for this process")

        yield

        logger.info(f"Shutting down {settings.PROJECT_NAME}...")
        if scheduler is not None:
            await scheduler.stop()
            close = getattr(scheduler.dispatcher, "close", None)
            if close is not None:
                close()
        logger.info(f"{settings.PROJECT_NAME} shutdown complete")

    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)
    app.include_router(reminders_router, prefix=f"{settings.API_V1_STR}/reminders", tags=["reminders"])
    if enable_metrics:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics")
    return app


configure_logging()
app = create_app()


if __name__ == "__main__":
    uvicorn.run("apptracker.main:app", host="0.0.0.0", port=8000, workers=1)
