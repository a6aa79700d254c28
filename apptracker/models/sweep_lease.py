from sqlalchemy import Column, String

from apptracker.db.base import Base
from apptracker.db.types import UTCDateTime


class SweepLease(Base):
    """
    Store-wide lease for the reminder sweep. Whoever holds the unexpired row
    for ``name`` is the only process allowed to send reminders.
    """
    __tablename__ = "scheduler_leases"

    name = Column(String, primary_key=True)
    holder = Column(String, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)
