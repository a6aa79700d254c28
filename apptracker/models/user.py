from sqlalchemy import Column, String, DateTime

from apptracker.db.base import Base
from apptracker.utils.timezone import utcnow


class User(Base):
    """Account owned by the auth provider; mirrored here so reminders can resolve an address."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)  # opaque auth-provider id
    email = Column(String, unique=True, index=True, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
