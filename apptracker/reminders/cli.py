#!/usr/bin/env python3
"""
Reminder scheduler process.

    python -m apptracker.reminders.cli sweep   # run one sweep and exit
    python -m apptracker.reminders.cli run     # run the scheduler loop in the foreground

Use ``run`` only when the API process has REMINDER_SCHEDULER_ENABLED=false;
two schedulers against one database send duplicates.
"""
import argparse
import asyncio
import json
import logging
import signal
import sys

# Load .env before the settings modules are imported
from dotenv import load_dotenv
load_dotenv()

from apptracker.core.logging import configure_logging
from apptracker.reminders.config import settings as reminder_settings
from apptracker.reminders.service import build_dispatcher, build_scheduler

logger = logging.getLogger(__name__)


async def _run_forever() -> None:
    scheduler = build_scheduler()
    stop_requested = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:  # pragma: no cover - Windows
            pass

    scheduler.start()
    try:
        await stop_requested.wait()
        logger.info("[Scheduler] Shutdown requested, finishing current sweep")
    finally:
        await scheduler.stop()
        scheduler.dispatcher.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Appointment reminder scheduler")
    parser.add_argument("command", choices=["sweep", "run"], help="sweep once, or run the periodic loop")
    parser.add_argument("--log-level", default=None, help="override LOG_LEVEL")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    if args.command == "sweep":
        dispatcher = build_dispatcher()
        try:
            stats = dispatcher.run_sweep()
        finally:
            dispatcher.close()
        print(json.dumps(stats.as_dict(), default=str, indent=2))
        return 0

    logger.info(
        f"[Scheduler] Starting reminder scheduler process "
        f"(interval={reminder_settings.SCHEDULER_SCAN_INTERVAL_SECONDS}s, retention={reminder_settings.RETENTION_HOURS}h)"
    )
    try:
        asyncio.run(_run_forever())
    except KeyboardInterrupt:
        logger.info("[Scheduler] Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
