from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from apptracker.db.base import Base
from apptracker.db.types import UTCDateTime
from apptracker.utils.timezone import utcnow


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)  # owner id from the auth provider
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)

    title = Column(String, nullable=False)
    scheduled_at = Column(UTCDateTime, nullable=False)
    timezone = Column(String, nullable=True)  # IANA name the user scheduled in, e.g. Europe/London

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    category = relationship("Category", back_populates="appointments")
    reminders = relationship(
        "Reminder",
        back_populates="appointment",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Reminder.reminder_minutes",
    )
    likes = relationship(
        "AppointmentLike",
        back_populates="appointment",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_appointments_scheduled_at", "scheduled_at"),
    )


class AppointmentLike(Base):
    __tablename__ = "appointment_likes"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    appointment = relationship("Appointment", back_populates="likes")

    __table_args__ = (
        UniqueConstraint("appointment_id", "user_id", name="uq_appointment_likes_appointment_user"),
    )
