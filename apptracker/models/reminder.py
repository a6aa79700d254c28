from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import relationship

from apptracker.db.base import Base
from apptracker.utils.timezone import utcnow


class Reminder(Base):
    """
    Email reminder firing ``reminder_minutes`` before its appointment.

    ``is_sent`` has one writer per direction: the dispatcher flips it to True
    after a confirmed send, and the only way back to False is the lifecycle
    replace (delete + recreate) run when the appointment is edited.
    """
    __tablename__ = "reminders"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, index=True)
    reminder_minutes = Column(Integer, nullable=False)
    is_sent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    appointment = relationship("Appointment", back_populates="reminders")

    __table_args__ = (
        CheckConstraint("reminder_minutes >= 0", name="ck_reminders_minutes_non_negative"),
        Index("ix_reminders_is_sent_appointment", "is_sent", "appointment_id"),
        # Ids of deleted reminders must never come back: mark_dispatched matches by id
        {"sqlite_autoincrement": True},
    )
