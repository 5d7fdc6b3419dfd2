"""Errors raised by the scheduling engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from scheduler.scheduling.intervals import Interval


class SchedulingError(Exception):
    """Base class for every rejection the engine can produce."""

    detail = 'Scheduling request rejected.'

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.detail)
        self.detail = detail or self.detail


class NotFoundError(SchedulingError):
    detail = 'Not found.'


class EventTypeNotFound(NotFoundError):
    detail = 'Event type not found.'


class BookingNotFound(NotFoundError):
    detail = 'Booking not found.'


class EventTypeInactive(SchedulingError):
    detail = 'Event type not found or inactive.'


class InvalidTimeRange(SchedulingError):
    detail = 'Start time must be before end time.'


class TimeConflict(SchedulingError):
    """The requested interval overlaps a live booking or a blocked interval."""

    detail = 'Time slot conflicts with an existing booking.'

    def __init__(self, detail: str | None = None, conflicting: Interval | None = None):
        super().__init__(detail)
        self.conflicting = conflicting
