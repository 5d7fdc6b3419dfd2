"""Dictionary-backed stores, used by tests and local tooling."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from itertools import count
from typing import Iterator

from scheduler.scheduling.intervals import Interval, parse_wall_clock
from scheduler.scheduling.stores import (
    AvailabilityRule,
    BlockedPeriod,
    BookingDetails,
    BookingRecord,
    BookingStatus,
    EventTypeRecord,
)


class InMemoryEventTypeStore:
    def __init__(self, event_types: list[EventTypeRecord] | None = None):
        self._event_types = {event_type.id: event_type for event_type in event_types or []}

    def put(self, event_type: EventTypeRecord) -> EventTypeRecord:
        self._event_types[event_type.id] = event_type
        return event_type

    def get(self, event_type_id: int) -> EventTypeRecord | None:
        return self._event_types.get(event_type_id)


class InMemoryAvailabilityStore:
    def __init__(self, rules: list[AvailabilityRule] | None = None):
        self._rules: list[AvailabilityRule] = list(rules or [])

    def add(self, rule: AvailabilityRule) -> AvailabilityRule:
        self._rules.append(rule)
        return rule

    def rules_for(self, user_id: int, day_of_week: int, event_type_id: int | None) -> list[AvailabilityRule]:
        matching = [
            rule
            for rule in self._rules
            if rule.user_id == user_id
            and rule.day_of_week == day_of_week
            and (rule.event_type_id is None or rule.event_type_id == event_type_id)
        ]
        return sorted(matching, key=lambda rule: parse_wall_clock(rule.start_time))


class InMemoryBlockedTimeStore:
    def __init__(self, blocks: list[BlockedPeriod] | None = None):
        self._blocks: list[BlockedPeriod] = list(blocks or [])

    def add(self, block: BlockedPeriod) -> BlockedPeriod:
        self._blocks.append(block)
        return block

    def intervals_for(self, user_id: int, window: Interval) -> list[Interval]:
        return [
            block.interval
            for block in self._blocks
            if block.user_id == user_id and block.interval.overlaps(window)
        ]


class InMemoryBookingStore:
    def __init__(self):
        self._bookings: dict[int, BookingRecord] = {}
        self._ids = count(1)

    def all(self) -> list[BookingRecord]:
        return sorted(self._bookings.values(), key=lambda booking: booking.interval.start)

    def intervals_for(
        self,
        user_id: int,
        window: Interval,
        event_type_id: int | None = None,
        exclude_booking_id: int | None = None,
    ) -> list[Interval]:
        return [
            booking.interval
            for booking in self._bookings.values()
            if booking.user_id == user_id
            and booking.status.is_live
            and booking.id != exclude_booking_id
            and (event_type_id is None or booking.event_type_id == event_type_id)
            and booking.interval.overlaps(window)
        ]

    def get(self, booking_id: int) -> BookingRecord | None:
        return self._bookings.get(booking_id)

    def add(
        self,
        user_id: int,
        event_type_id: int,
        interval: Interval,
        status: BookingStatus,
        details: BookingDetails,
    ) -> BookingRecord:
        booking = BookingRecord(
            id=next(self._ids),
            user_id=user_id,
            event_type_id=event_type_id,
            interval=interval,
            status=status,
            details=details,
            created_at=datetime.now(),
        )
        self._bookings[booking.id] = booking
        return booking

    def update(
        self,
        booking_id: int,
        interval: Interval,
        status: BookingStatus,
        details: BookingDetails,
    ) -> BookingRecord:
        booking = replace(self._bookings[booking_id], interval=interval, status=status, details=details)
        self._bookings[booking_id] = booking
        return booking

    @contextmanager
    def lock_owner(self, user_id: int) -> Iterator[None]:
        # Writers are already serialized in-process by the commit protocol.
        yield
