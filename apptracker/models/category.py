from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from apptracker.db.base import Base
from apptracker.utils.timezone import utcnow


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    category_name = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    appointments = relationship("Appointment", back_populates="category", passive_deletes=True)
