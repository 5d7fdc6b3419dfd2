"""
Bookable slot generation for one calendar day.

Slots are anchored to a fixed 30-minute grid inside each weekly availability
rule, independent of the event type's duration. The last slot of a rule is
not clipped to the rule's end time, so a 09:00-09:45 rule with a 60-minute
event type offers 09:00-10:00. Existing clients rely on that behaviour.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator

from scheduler.scheduling.conflicts import ConflictArbiter
from scheduler.scheduling.errors import EventTypeNotFound
from scheduler.scheduling.intervals import (
    Interval,
    day_of_week,
    day_window,
    format_wall_clock,
    parse_wall_clock,
)
from scheduler.scheduling.stores import (
    AvailabilityRule,
    BlockedTimeStore,
    BookingStore,
    EventTypeRecord,
    EventTypeStore,
    WeeklyAvailabilityStore,
)

logger = logging.getLogger(__name__)

SLOT_INTERVAL_MINUTES = 30


@dataclass(frozen=True)
class Slot:
    time: str  # HH:mm
    start_time: datetime
    end_time: datetime

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)


def iterate_rule_candidates(rule: AvailabilityRule, day: date, duration_minutes: int) -> Iterator[Interval]:
    current = datetime.combine(day, parse_wall_clock(rule.start_time))
    rule_end = datetime.combine(day, parse_wall_clock(rule.end_time))

    while current < rule_end:
        yield Interval.from_wall_clock(day, current.time(), duration_minutes)
        current += timedelta(minutes=SLOT_INTERVAL_MINUTES)


class SlotGenerator:
    def __init__(
        self,
        event_types: EventTypeStore,
        availability: WeeklyAvailabilityStore,
        blocked_times: BlockedTimeStore,
        bookings: BookingStore,
        arbiter: ConflictArbiter | None = None,
    ):
        self.event_types = event_types
        self.availability = availability
        self.blocked_times = blocked_times
        self.bookings = bookings
        self.arbiter = arbiter or ConflictArbiter()

    def resolve_event_type(self, event_type_id: int) -> EventTypeRecord:
        event_type = self.event_types.get(event_type_id)
        if event_type is None:
            raise EventTypeNotFound()
        return event_type

    def iter_slots(self, event_type_id: int, day: date) -> Iterator[Slot]:
        """Yield open slots rule by rule, in each rule's own order."""
        event_type = self.resolve_event_type(event_type_id)
        rules = self.availability.rules_for(event_type.user_id, day_of_week(day), event_type.id)
        if not rules:
            return

        # Widen past midnight so an unclipped tail slot still sees late conflicts.
        window = day_window(day)
        window = Interval(window.start, window.end + timedelta(minutes=event_type.duration_minutes))
        occupied = self.bookings.intervals_for(event_type.user_id, window)
        occupied += self.blocked_times.intervals_for(event_type.user_id, window)

        for rule in rules:
            for candidate in iterate_rule_candidates(rule, day, event_type.duration_minutes):
                if self.arbiter.accepts(candidate, occupied):
                    yield Slot(
                        time=format_wall_clock(candidate.start),
                        start_time=candidate.start,
                        end_time=candidate.end,
                    )

    def slots_for(self, event_type_id: int, day: date) -> list[Slot]:
        slots = sorted(self.iter_slots(event_type_id, day), key=lambda slot: slot.time)
        logger.debug('Resolved %d slots for event type %s on %s', len(slots), event_type_id, day)
        return slots
