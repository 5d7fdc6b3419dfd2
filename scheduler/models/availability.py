"""Availability model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from scheduler.database import Base


class AvailabilityRule(Base):
    """Recurring weekly open window, optionally limited to one event type."""
    __tablename__ = "availability_rules"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday
    start_time = Column(String(5), nullable=False)  # HH:mm
    end_time = Column(String(5), nullable=False)
    event_type_id = Column(Integer, ForeignKey("event_types.id"), nullable=True)
