"""Blocked time model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from scheduler.database import Base


class BlockedTime(Base):
    """One-off interval during which the owner cannot be booked."""
    __tablename__ = "blocked_times"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    reason = Column(String, nullable=False)
