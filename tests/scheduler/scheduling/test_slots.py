from datetime import date, datetime
from itertools import count

import pytest

from scheduler.scheduling.errors import EventTypeNotFound
from scheduler.scheduling.intervals import Interval
from scheduler.scheduling.memory_stores import (
    InMemoryAvailabilityStore,
    InMemoryBlockedTimeStore,
    InMemoryBookingStore,
    InMemoryEventTypeStore,
)
from scheduler.scheduling.slots import SlotGenerator, iterate_rule_candidates
from scheduler.scheduling.stores import (
    AvailabilityRule,
    BlockedPeriod,
    BookingDetails,
    BookingStatus,
    EventTypeRecord,
)

MONDAY = date(2026, 1, 5)
OWNER_ID = 1


def at(hour: int, minute: int = 0, day: date = MONDAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


class Calendar:
    def __init__(self):
        self.event_types = InMemoryEventTypeStore()
        self.availability = InMemoryAvailabilityStore()
        self.blocked_times = InMemoryBlockedTimeStore()
        self.bookings = InMemoryBookingStore()
        self.rule_ids = count(1)
        self.generator = SlotGenerator(self.event_types, self.availability, self.blocked_times, self.bookings)

    def event_type(self, event_type_id: int = 1, duration_minutes: int = 30) -> EventTypeRecord:
        return self.event_types.put(EventTypeRecord(id=event_type_id, user_id=OWNER_ID, duration_minutes=duration_minutes))

    def rule(self, start_time: str, end_time: str, day_of_week: int = 1, event_type_id: int | None = None) -> None:
        self.availability.add(
            AvailabilityRule(
                id=next(self.rule_ids),
                user_id=OWNER_ID,
                day_of_week=day_of_week,
                start_time=start_time,
                end_time=end_time,
                event_type_id=event_type_id,
            )
        )

    def book(
        self,
        start: datetime,
        end: datetime,
        status: BookingStatus = BookingStatus.CONFIRMED,
        event_type_id: int = 1,
        user_id: int = OWNER_ID,
    ) -> None:
        self.bookings.add(user_id, event_type_id, Interval(start, end), status, BookingDetails())

    def times(self, event_type_id: int = 1, day: date = MONDAY) -> list[str]:
        return [slot.time for slot in self.generator.slots_for(event_type_id, day)]


@pytest.fixture
def calendar() -> Calendar:
    calendar = Calendar()
    calendar.event_type()
    calendar.rule('09:00', '17:00')
    return calendar


def half_hours(first_hour: int, last_hour: int) -> list[str]:
    return [f'{hour:02d}:{minute:02d}' for hour in range(first_hour, last_hour) for minute in (0, 30)]


def test_open_monday_yields_every_half_hour(calendar: Calendar) -> None:
    slots = calendar.generator.slots_for(1, MONDAY)

    assert [slot.time for slot in slots] == half_hours(9, 17)
    assert len(slots) == 16
    assert slots[0].start_time == at(9)
    assert slots[0].end_time == at(9, 30)
    assert slots[-1].end_time == at(17)


def test_confirmed_booking_removes_its_slot(calendar: Calendar) -> None:
    calendar.book(at(10), at(10, 30), status=BookingStatus.CONFIRMED)

    times = calendar.times()

    assert '10:00' not in times
    assert len(times) == 15


def test_cancelled_booking_does_not_block_slots(calendar: Calendar) -> None:
    calendar.book(at(10), at(10, 30), status=BookingStatus.CANCELLED)

    assert calendar.times() == half_hours(9, 17)


def test_lunch_block_removes_both_half_hours(calendar: Calendar) -> None:
    calendar.blocked_times.add(BlockedPeriod(id=1, user_id=OWNER_ID, interval=Interval(at(12), at(13)), reason='Lunch'))

    times = calendar.times()

    assert '12:00' not in times
    assert '12:30' not in times
    assert len(times) == 14


def test_bookings_of_other_event_types_still_occupy_the_owner(calendar: Calendar) -> None:
    calendar.event_type(event_type_id=2)
    calendar.book(at(15), at(16), status=BookingStatus.PENDING, event_type_id=2)

    times = calendar.times()

    assert '15:00' not in times
    assert '15:30' not in times


def test_other_owners_bookings_are_ignored(calendar: Calendar) -> None:
    calendar.book(at(9), at(17), user_id=99)

    assert calendar.times() == half_hours(9, 17)


def test_longer_event_types_still_advance_on_the_half_hour_grid() -> None:
    calendar = Calendar()
    calendar.event_type(duration_minutes=60)
    calendar.rule('09:00', '10:00')

    slots = calendar.generator.slots_for(1, MONDAY)

    assert slots[0].interval == Interval(at(9), at(10))
    assert [slot.time for slot in slots] == ['09:00', '09:30']
    assert slots[-1].end_time == at(10, 30)


def test_last_slot_is_not_clipped_to_rule_end() -> None:
    calendar = Calendar()
    calendar.event_type(duration_minutes=60)
    calendar.rule('09:00', '09:45')

    slots = calendar.generator.slots_for(1, MONDAY)

    assert slots[0].start_time == at(9)
    assert slots[0].end_time == at(10)


def test_tail_slot_sees_conflicts_after_the_rule_end() -> None:
    calendar = Calendar()
    calendar.event_type(duration_minutes=60)
    calendar.rule('09:00', '09:45')
    calendar.book(at(10), at(10, 30), status=BookingStatus.CONFIRMED)

    assert calendar.times() == ['09:00']


def test_tail_slot_past_midnight_sees_next_day_bookings() -> None:
    calendar = Calendar()
    calendar.event_type(duration_minutes=60)
    calendar.rule('23:00', '23:45')
    tuesday = date(2026, 1, 6)
    calendar.book(at(0, day=tuesday), at(0, 15, day=tuesday))

    assert calendar.times() == ['23:00']


def test_general_and_event_type_rules_are_merged_in_time_order() -> None:
    calendar = Calendar()
    calendar.event_type(event_type_id=1)
    calendar.event_type(event_type_id=2)
    calendar.rule('14:00', '15:00')
    calendar.rule('09:00', '10:00', event_type_id=1)
    calendar.rule('11:00', '12:00', event_type_id=2)

    assert calendar.times(event_type_id=1) == ['09:00', '09:30', '14:00', '14:30']
    assert calendar.times(event_type_id=2) == ['11:00', '11:30', '14:00', '14:30']


def test_day_without_rules_has_no_slots(calendar: Calendar) -> None:
    assert calendar.times(day=date(2026, 1, 6)) == []


def test_sunday_rules_use_day_zero() -> None:
    calendar = Calendar()
    calendar.event_type()
    calendar.rule('10:00', '11:00', day_of_week=0)

    assert calendar.times(day=date(2026, 1, 4)) == ['10:00', '10:30']
    assert calendar.times(day=MONDAY) == []


def test_slot_generation_is_repeatable(calendar: Calendar) -> None:
    calendar.book(at(11), at(12), status=BookingStatus.CONFIRMED)

    assert calendar.generator.slots_for(1, MONDAY) == calendar.generator.slots_for(1, MONDAY)


def test_missing_event_type_is_rejected(calendar: Calendar) -> None:
    with pytest.raises(EventTypeNotFound):
        calendar.generator.slots_for(42, MONDAY)


def test_iterate_rule_candidates_walks_until_rule_end() -> None:
    rule = AvailabilityRule(id=1, user_id=OWNER_ID, day_of_week=1, start_time='09:15', end_time='10:00')

    candidates = list(iterate_rule_candidates(rule, MONDAY, 45))

    assert candidates == [
        Interval(at(9, 15), at(10)),
        Interval(at(9, 45), at(10, 30)),
    ]
