"""Records and store interfaces the scheduling engine reads from and writes to."""

from __future__ import annotations

import enum
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from scheduler.scheduling.intervals import Interval


class BookingStatus(str, enum.Enum):
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'
    RESCHEDULED = 'RESCHEDULED'

    @property
    def is_live(self) -> bool:
        return self is not BookingStatus.CANCELLED


@dataclass(frozen=True)
class EventTypeRecord:
    id: int
    user_id: int
    duration_minutes: int
    is_active: bool = True


@dataclass(frozen=True)
class AvailabilityRule:
    id: int
    user_id: int
    day_of_week: int  # 0=Sunday
    start_time: str  # HH:mm
    end_time: str
    event_type_id: int | None = None


@dataclass(frozen=True)
class BlockedPeriod:
    id: int
    user_id: int
    interval: Interval
    reason: str = ''


@dataclass(frozen=True)
class BookingDetails:
    """Descriptive booking fields the engine carries but never inspects."""
    title: str = ''
    description: str | None = None
    attendee_name: str = ''
    attendee_email: str = ''
    attendee_phone: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class BookingRecord:
    id: int
    user_id: int
    event_type_id: int
    interval: Interval
    status: BookingStatus
    details: BookingDetails = field(default_factory=BookingDetails)
    created_at: datetime | None = None


class EventTypeStore(Protocol):
    def get(self, event_type_id: int) -> EventTypeRecord | None:
        ...


class WeeklyAvailabilityStore(Protocol):
    def rules_for(self, user_id: int, day_of_week: int, event_type_id: int | None) -> list[AvailabilityRule]:
        """Rules for the event type plus general rules, ordered by start time."""
        ...


class BlockedTimeStore(Protocol):
    def intervals_for(self, user_id: int, window: Interval) -> list[Interval]:
        ...


class BookingStore(Protocol):
    def intervals_for(
        self,
        user_id: int,
        window: Interval,
        event_type_id: int | None = None,
        exclude_booking_id: int | None = None,
    ) -> list[Interval]:
        """Intervals of non-cancelled bookings intersecting ``window``."""
        ...

    def get(self, booking_id: int) -> BookingRecord | None:
        ...

    def add(
        self,
        user_id: int,
        event_type_id: int,
        interval: Interval,
        status: BookingStatus,
        details: BookingDetails,
    ) -> BookingRecord:
        ...

    def update(
        self,
        booking_id: int,
        interval: Interval,
        status: BookingStatus,
        details: BookingDetails,
    ) -> BookingRecord:
        ...

    def lock_owner(self, user_id: int) -> AbstractContextManager[None]:
        """Hold the store-level write lock for one owner's bookings."""
        ...
