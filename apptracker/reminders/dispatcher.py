import logging
import os
import socket
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol

from sqlalchemy.orm import Session, sessionmaker

from apptracker.core.logging import mask_email
from apptracker.db.session import SessionLocal
from apptracker.utils.timezone import format_human, to_utc_aware, utcnow
from .config import ReminderSettings, settings as reminder_settings
from .directory import UserDirectory
from .exceptions import UserNotFoundError
from .metrics import (
    reminders_due_total,
    reminders_dispatch_failed_total,
    reminders_dispatch_success_total,
    reminders_lookup_failed_total,
    reminders_mark_failed_total,
    scheduler_sweeps_locked_out_total,
    scheduler_sweeps_total,
)
from .repository import (
    DueReminder,
    acquire_sweep_lease,
    get_due_reminders,
    mark_dispatched,
    release_sweep_lease,
)

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    def send_notification(self, to_email: str, subject: str, body: str) -> bool:
        ...


@dataclass
class SweepStats:
    started_at: datetime
    finished_at: Optional[datetime] = None
    due: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    sent_ids: List[int] = field(default_factory=list)
    locked_out: bool = False

    @property
    def processed(self) -> int:
        return self.sent + self.failed + self.skipped

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _describe_lead(minutes: int) -> str:
    if minutes == 0:
        return "now"
    if minutes % 1440 == 0:
        days = minutes // 1440
        return f"in {days} day{'s' if days != 1 else ''}"
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"in {hours} hour{'s' if hours != 1 else ''}"
    return f"in {minutes} minute{'s' if minutes != 1 else ''}"


def compose_notification(reminder: DueReminder, subject_prefix: str = "Reminder") -> tuple[str, str]:
    """Subject and plain-text body for one due reminder."""
    subject = f"{subject_prefix}: {reminder.title}"
    when = format_human(reminder.scheduled_at, reminder.timezone)
    body = (
        f"This is a reminder for your appointment \"{reminder.title}\".\n"
        f"\n"
        f"When: {when}\n"
        f"Starts: {_describe_lead(reminder.reminder_minutes)}\n"
    )
    return subject, body


class ReminderDispatcher:
    """
    One sweep: query due reminders, then for each one resolve the owner, send,
    and mark it dispatched. Reminders are processed sequentially and each is
    isolated, so a failure leaves that reminder unsent for the next sweep and
    the loop moves on.

    Marking happens only after the sender confirms delivery. A crash between
    the two can re-send on the next sweep (at-least-once), never drop.
    """

    def __init__(
        self,
        directory: UserDirectory,
        sender: NotificationSender,
        session_factory: Optional[sessionmaker] = None,
        config: Optional[ReminderSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config or reminder_settings
        self.directory = directory
        self.sender = sender
        self.session_factory = session_factory or SessionLocal
        self.clock = clock
        # Identifies this dispatcher in the shared sweep lease
        self.holder = f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"

    @property
    def retention(self) -> timedelta:
        return self.config.retention

    def fetch_due(self, now: datetime) -> List[DueReminder]:
        db: Session = self.session_factory()
        try:
            return get_due_reminders(db, now, retention=self.retention, limit=self.config.SCHEDULER_BATCH_SIZE)
        finally:
            db.close()

    def run_sweep(self, now: Optional[datetime] = None) -> SweepStats:
        now = to_utc_aware(now) if now is not None else self.clock()
        stats = SweepStats(started_at=utcnow())

        if not self._hold_lease():
            stats.locked_out = True
            stats.finished_at = utcnow()
            scheduler_sweeps_locked_out_total.inc()
            logger.info(f"[Reminders] Sweep lease held by another process, skipping ({self.holder})")
            return stats

        scheduler_sweeps_total.inc()
        try:
            self._sweep(now, stats)
        finally:
            self._release_lease()

        stats.finished_at = utcnow()
        if stats.due:
            logger.info(
                f"[Reminders] Sweep complete: {stats.sent} sent, {stats.failed} failed, {stats.skipped} skipped"
            )
        return stats

    def _sweep(self, now: datetime, stats: SweepStats) -> None:
        due = self.fetch_due(now)
        stats.due = len(due)
        reminders_due_total.inc(stats.due)
        if due:
            logger.info(f"[Reminders] {stats.due} due reminder(s) at {now.isoformat()}")

        for reminder in due:
            # Renew before every send; a sweep that lost its lease stops sending
            if not self._hold_lease():
                logger.warning(f"[Reminders] Lost the sweep lease, leaving {stats.due - stats.processed} reminder(s)")
                break
            try:
                outcome = self.dispatch_one(reminder)
            except Exception as e:
                logger.error(f"[Reminders] Unexpected error on reminder {reminder.reminder_id}: {e!r}", exc_info=True)
                outcome = "failed"

            if outcome == "sent":
                stats.sent += 1
                stats.sent_ids.append(reminder.reminder_id)
            elif outcome == "skipped":
                stats.skipped += 1
            else:
                stats.failed += 1

    def _hold_lease(self) -> bool:
        db: Session = self.session_factory()
        try:
            return acquire_sweep_lease(
                db, self.config.SWEEP_LEASE_NAME, self.holder, self.clock(), self.config.sweep_lease_ttl
            )
        finally:
            db.close()

    def _release_lease(self) -> None:
        db: Session = self.session_factory()
        try:
            release_sweep_lease(db, self.config.SWEEP_LEASE_NAME, self.holder)
        except Exception as e:
            # Expires on its own after SWEEP_LEASE_SECONDS
            db.rollback()
            logger.warning(f"[Reminders] Could not release the sweep lease: {e!r}")
        finally:
            db.close()

    def close(self) -> None:
        """Release clients owned by the directory (e.g. the Supabase HTTP client)."""
        close = getattr(self.directory, "close", None)
        if close is not None:
            close()

    def dispatch_one(self, reminder: DueReminder) -> str:
        """Returns 'sent', 'skipped' (owner unresolved) or 'failed' (send or mark failed)."""
        rid = reminder.reminder_id

        try:
            address = self.directory.get_user_contact(reminder.user_id)
        except UserNotFoundError:
            logger.warning(f"[Reminders] Owner {reminder.user_id} of reminder {rid} not found, will retry")
            reminders_lookup_failed_total.inc()
            return "skipped"
        except Exception as e:
            logger.warning(f"[Reminders] Could not resolve owner {reminder.user_id} of reminder {rid}: {e}")
            reminders_lookup_failed_total.inc()
            return "skipped"

        subject, body = compose_notification(reminder, self.config.SUBJECT_PREFIX)
        try:
            delivered = self.sender.send_notification(address, subject, body)
        except Exception as e:
            logger.error(f"[Reminders] Send raised for reminder {rid} to {mask_email(address)}: {e!r}")
            delivered = False

        if not delivered:
            logger.error(f"[Reminders] Failed to send reminder {rid} to {mask_email(address)}, will retry")
            reminders_dispatch_failed_total.inc()
            return "failed"

        db: Session = self.session_factory()
        try:
            flipped = mark_dispatched(db, rid)
        except Exception as e:
            db.rollback()
            logger.error(f"[Reminders] Sent reminder {rid} but could not mark it dispatched: {e!r}")
            reminders_mark_failed_total.inc()
            return "failed"
        finally:
            db.close()

        if not flipped:
            # Row replaced or deleted mid-sweep by an appointment edit
            logger.info(f"[Reminders] Reminder {rid} changed while sending; nothing to mark")
        reminders_dispatch_success_total.inc()
        logger.info(
            f"[Reminders] Sent reminder {rid} ({reminder.reminder_minutes} min) for appointment "
            f"{reminder.appointment_id} to {mask_email(address)}"
        )
        return "sent"
