"""User model definitions."""

from sqlalchemy import Column, Integer, String
from scheduler.database import Base


class User(Base):
    """Owner of event types, availability, blocked times and bookings."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, unique=True, index=True, nullable=False)
    name = Column(String)
    bio = Column(String)
    timezone = Column(String, default="UTC")
    hashed_password = Column(String)
