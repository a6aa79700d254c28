from datetime import datetime, timedelta, timezone as dt_timezone
from typing import List, Optional, Set

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from apptracker.db.base import Base
from apptracker.db.session import build_engine
from apptracker.models import Appointment, Reminder, User
from apptracker.reminders.config import ReminderSettings
from apptracker.reminders.exceptions import UserNotFoundError
from apptracker.reminders.scheduler import ReminderScheduler

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=dt_timezone.utc)


class FakeDirectory:
    def __init__(self, contacts: Optional[dict] = None, broken: Optional[Set[str]] = None):
        self.contacts = dict(contacts or {})
        self.broken = set(broken or ())
        self.lookups: List[str] = []
        self.closed = False

    def get_user_contact(self, user_id: str) -> str:
        self.lookups.append(user_id)
        if user_id in self.broken:
            raise ConnectionError("directory unavailable")
        if user_id not in self.contacts:
            raise UserNotFoundError(user_id)
        return self.contacts[user_id]

    def close(self) -> None:
        self.closed = True


class FakeSender:
    def __init__(self, failing: Optional[Set[str]] = None, raising: Optional[Set[str]] = None):
        self.failing = set(failing or ())
        self.raising = set(raising or ())
        self.sent: List[tuple] = []
        self.attempts: List[tuple] = []

    def send_notification(self, to_email: str, subject: str, body: str) -> bool:
        self.attempts.append((to_email, subject, body))
        if to_email in self.raising:
            raise OSError("connection reset")
        if to_email in self.failing:
            return False
        self.sent.append((to_email, subject, body))
        return True


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def reminder_config():
    return ReminderSettings(
        SCHEDULER_SCAN_INTERVAL_SECONDS=60,
        RETENTION_HOURS=24,
        USER_DIRECTORY_BACKEND="database",
        METRICS_ENABLED=False,
    )


@pytest.fixture
def directory():
    return FakeDirectory({"user-1": "alice@example.com", "user-2": "bob@example.com"})


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture(autouse=True)
def _reset_scheduler_registry():
    ReminderScheduler._active = None
    yield
    ReminderScheduler._active = None


@pytest.fixture
def make_appointment(db):
    def _make(
        scheduled_at: datetime,
        reminder_minutes=(15,),
        user_id: str = "user-1",
        title: str = "Dentist",
        timezone: Optional[str] = "Europe/London",
        sent: bool = False,
    ) -> Appointment:
        if db.get(User, user_id) is None:
            db.add(User(id=user_id, email=f"{user_id}@example.com"))
        appointment = Appointment(title=title, scheduled_at=scheduled_at, timezone=timezone, user_id=user_id)
        appointment.reminders = [Reminder(reminder_minutes=m, is_sent=sent) for m in reminder_minutes]
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make


def minutes(n: int) -> timedelta:
    return timedelta(minutes=n)
