import asyncio
import logging
import threading
from typing import ClassVar, Optional

from .dispatcher import ReminderDispatcher, SweepStats
from .exceptions import SchedulerAlreadyRunningError
from .metrics import scheduler_sweep_errors_total

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """
    Owns the periodic reminder sweep as a single asyncio task.

    Only one scheduler may run per process; a second ``start()`` raises
    SchedulerAlreadyRunningError. Sweeps run in a worker thread because the
    directory lookup, SMTP send and database calls block. A sweep always runs to
    completion: ``stop()`` waits for it instead of cancelling it, and sweeps
    never overlap (the next tick starts ``interval_seconds`` after the previous
    one started, or immediately if the sweep overran).
    """

    _active: ClassVar[Optional["ReminderScheduler"]] = None
    _registry_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, dispatcher: ReminderDispatcher, interval_seconds: float = 60, run_on_start: bool = True):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.dispatcher = dispatcher
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self.last_stats: Optional[SweepStats] = None
        self.sweep_count = 0
        self._task: Optional[asyncio.Task] = None
        self._stopping: Optional[asyncio.Event] = None
        self._sweep_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @classmethod
    def active(cls) -> Optional["ReminderScheduler"]:
        return cls._active

    def start(self) -> None:
        """Spawn the sweep loop on the running event loop."""
        with self._registry_lock:
            current = ReminderScheduler._active
            if current is not None and current.is_running:
                raise SchedulerAlreadyRunningError(
                    "A reminder scheduler is already running in this process"
                )
            ReminderScheduler._active = self

        self._stopping = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run_loop(), name="reminder-scheduler")
        logger.info(f"[Scheduler] Reminder scheduler started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Finish any in-flight sweep, then end the loop. Safe to call more than once."""
        if self._task is None:
            return
        if self._stopping is not None:
            self._stopping.set()
        try:
            await self._task
        finally:
            self._task = None
            with self._registry_lock:
                if ReminderScheduler._active is self:
                    ReminderScheduler._active = None
            logger.info("[Scheduler] Reminder scheduler stopped")

    async def run_once(self) -> SweepStats:
        """Run one sweep now, waiting for an in-flight sweep rather than overlapping it."""
        async with self._sweep_lock:
            stats = await asyncio.to_thread(self.dispatcher.run_sweep)
            self._record(stats)
            return stats

    def _record(self, stats: SweepStats) -> None:
        self.last_stats = stats
        self.sweep_count += 1

    async def _sweep_safely(self) -> None:
        try:
            await self.run_once()
        except Exception as e:
            # Keep ticking; the next sweep retries everything that was left unsent
            scheduler_sweep_errors_total.inc()
            logger.error(f"[Scheduler] Sweep failed: {e!r}", exc_info=True)

    async def _wait(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _run_loop(self) -> None:
        loop = asyncio.get_running_loop()
        if not self.run_on_start:
            await self._wait(self.interval_seconds)

        while not self._stopping.is_set():
            started = loop.time()
            await self._sweep_safely()
            if self._stopping.is_set():
                break
            elapsed = loop.time() - started
            await self._wait(max(0.0, self.interval_seconds - elapsed))
