import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from apptracker.models import Appointment, Category, Reminder, SweepLease
from apptracker.utils.timezone import to_utc_aware, utcnow
from .exceptions import AppointmentNotFoundError, InvalidReminderError
from .metrics import reminders_replaced_total

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(hours=24)


@dataclass(frozen=True)
class DueReminder:
    reminder_id: int
    reminder_minutes: int
    appointment_id: int
    title: str
    scheduled_at: datetime  # UTC-aware
    timezone: Optional[str]
    user_id: str

    @property
    def trigger_at(self) -> datetime:
        return self.scheduled_at - timedelta(minutes=self.reminder_minutes)


def get_due_reminders(
    db: Session,
    now: datetime,
    retention: timedelta = DEFAULT_RETENTION,
    limit: Optional[int] = None,
) -> List[DueReminder]:
    """
    Unsent reminders whose trigger instant (scheduled_at - reminder_minutes) has
    passed, for appointments scheduled after ``now - retention``.

    The sent flag and the scheduled_at window (retention cutoff up to now plus
    the longest unsent lead) are filtered in SQL; the trigger comparison runs on
    UTC-normalised values so the same query works on PostgreSQL and SQLite.
    Rows come back grouped by appointment.
    """
    now = to_utc_aware(now)
    cutoff = now - retention

    # Nothing scheduled later than now + the longest unsent lead can be due yet
    max_lead = db.execute(
        select(func.max(Reminder.reminder_minutes)).where(Reminder.is_sent == False)  # noqa: E712
    ).scalar()
    if max_lead is None:
        return []
    horizon = now + timedelta(minutes=max_lead)

    stmt = (
        select(
            Reminder.id,
            Reminder.reminder_minutes,
            Appointment.id,
            Appointment.title,
            Appointment.scheduled_at,
            Appointment.timezone,
            Appointment.user_id,
        )
        .join(Appointment, Reminder.appointment_id == Appointment.id)
        .where(Reminder.is_sent == False)  # noqa: E712
        .where(Appointment.scheduled_at > cutoff)
        .where(Appointment.scheduled_at <= horizon)
        .order_by(Appointment.scheduled_at.asc(), Appointment.id.asc(), Reminder.reminder_minutes.desc())
    )

    due: List[DueReminder] = []
    for rid, minutes, appointment_id, title, scheduled_at, tz_name, user_id in db.execute(stmt):
        row = DueReminder(
            reminder_id=rid,
            reminder_minutes=minutes,
            appointment_id=appointment_id,
            title=title,
            scheduled_at=to_utc_aware(scheduled_at),
            timezone=tz_name,
            user_id=str(user_id),
        )
        # Trigger check on UTC-aware values; SQL only bounds the window
        if row.scheduled_at <= cutoff or row.trigger_at > now:
            continue
        due.append(row)
        if limit is not None and len(due) >= limit:
            break
    return due


def mark_dispatched(db: Session, reminder_id: int) -> bool:
    """Flip is_sent for one reminder. False if the row is gone or was already sent."""
    result = db.execute(
        update(Reminder)
        .where(Reminder.id == reminder_id)
        .where(Reminder.is_sent == False)  # noqa: E712
        .values(is_sent=True)
    )
    db.commit()
    return result.rowcount == 1


def get_reminders_for_appointment(db: Session, appointment_id: int) -> List[Reminder]:
    stmt = (
        select(Reminder)
        .where(Reminder.appointment_id == appointment_id)
        .order_by(Reminder.reminder_minutes.asc())
    )
    return list(db.execute(stmt).scalars())


def _normalize_minutes(reminder_minutes: Iterable[int]) -> List[int]:
    cleaned: List[int] = []
    for value in reminder_minutes:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidReminderError(f"Reminder minutes must be integers, got {value!r}")
        if value < 0:
            raise InvalidReminderError(f"Reminder minutes must be >= 0, got {value}")
        if value not in cleaned:
            cleaned.append(value)
    return cleaned


def replace_reminders(db: Session, appointment_id: int, reminder_minutes: Iterable[int]) -> List[Reminder]:
    """
    Replace an appointment's reminder set: delete every existing row, insert one
    unsent row per lead time. Prior dispatch state is discarded with the old rows.
    """
    minutes = _normalize_minutes(reminder_minutes)
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise AppointmentNotFoundError(appointment_id)

    try:
        db.execute(delete(Reminder).where(Reminder.appointment_id == appointment_id))
        new_rows = [Reminder(appointment_id=appointment_id, reminder_minutes=m, is_sent=False) for m in minutes]
        db.add_all(new_rows)
        db.commit()
    except Exception:
        db.rollback()
        raise

    # The bulk delete bypasses the session; drop any stale collection on the parent
    db.expire(appointment, ["reminders"])
    reminders_replaced_total.inc()
    logger.info(f"[Reminders] Replaced reminders for appointment {appointment_id}: {minutes}")
    return new_rows


def reschedule_appointment(
    db: Session,
    appointment_id: int,
    *,
    scheduled_at: Optional[datetime] = None,
    timezone: Optional[str] = None,
    title: Optional[str] = None,
    reminder_minutes: Optional[Iterable[int]] = None,
) -> Appointment:
    """
    Edit flow: update the appointment, then replace its reminders. When no new
    lead times are given the current ones are recreated, so every edit resets
    dispatch state.
    """
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise AppointmentNotFoundError(appointment_id)

    if reminder_minutes is None:
        reminder_minutes = [r.reminder_minutes for r in get_reminders_for_appointment(db, appointment_id)]
    # Validate before touching the appointment row
    minutes = _normalize_minutes(reminder_minutes)

    if scheduled_at is not None:
        appointment.scheduled_at = to_utc_aware(scheduled_at)
    if timezone is not None:
        appointment.timezone = timezone
    if title is not None:
        appointment.title = title
    appointment.updated_at = utcnow()
    db.add(appointment)
    db.flush()

    replace_reminders(db, appointment_id, minutes)
    db.refresh(appointment)
    return appointment


def delete_appointment(db: Session, appointment_id: int) -> bool:
    """Delete an appointment; its reminders and likes go with it (ORM + FK cascade)."""
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        return False
    db.delete(appointment)
    db.commit()
    logger.info(f"[Reminders] Deleted appointment {appointment_id} and its reminders")
    return True


def get_or_create_category(db: Session, category_name: str) -> Category:
    """Insert a category by name, returning the existing row when the name is taken."""
    name = (category_name or "").strip()
    if not name:
        raise ValueError("category_name must not be blank")

    existing = db.execute(select(Category).where(Category.category_name == name)).scalar_one_or_none()
    if existing:
        return existing

    category = Category(category_name=name)
    db.add(category)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent insert of the same name
        db.rollback()
        return db.execute(select(Category).where(Category.category_name == name)).scalar_one()
    db.refresh(category)
    return category


def acquire_sweep_lease(db: Session, name: str, holder: str, now: datetime, ttl: timedelta) -> bool:
    """
    Take or extend the sweep lease. True when ``holder`` owns it until ``now + ttl``.

    A lease held by someone else is only taken over once it has expired. Both
    paths are single statements, so concurrent callers against the same store
    cannot both win.
    """
    now = to_utc_aware(now)
    expires_at = now + ttl
    result = db.execute(
        update(SweepLease)
        .where(SweepLease.name == name)
        .where(or_(SweepLease.holder == holder, SweepLease.expires_at <= now))
        .values(holder=holder, expires_at=expires_at)
    )
    if result.rowcount == 1:
        db.commit()
        return True

    try:
        db.execute(insert(SweepLease).values(name=name, holder=holder, expires_at=expires_at))
        db.commit()
    except IntegrityError:
        # Row exists and is held by a live holder
        db.rollback()
        return False
    return True


def release_sweep_lease(db: Session, name: str, holder: str) -> bool:
    result = db.execute(delete(SweepLease).where(SweepLease.name == name).where(SweepLease.holder == holder))
    db.commit()
    return result.rowcount == 1
