from datetime import datetime

import pytest

from scheduler.scheduling.conflicts import ConflictArbiter
from scheduler.scheduling.errors import TimeConflict
from scheduler.scheduling.intervals import Interval


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 1, 5, hour, minute)


@pytest.fixture
def existing() -> list[Interval]:
    return [Interval(at(10), at(11)), Interval(at(13), at(14))]


def test_accepts_interval_that_touches_existing_ones(existing: list[Interval]) -> None:
    arbiter = ConflictArbiter()

    assert arbiter.accepts(Interval(at(11), at(13)), existing)
    assert arbiter.accepts(Interval(at(9), at(10)), existing)


def test_rejects_any_overlap(existing: list[Interval]) -> None:
    arbiter = ConflictArbiter()

    assert not arbiter.accepts(Interval(at(10, 59), at(11, 30)), existing)
    assert not arbiter.accepts(Interval(at(12), at(15)), existing)


def test_accepts_anything_when_nothing_is_booked() -> None:
    assert ConflictArbiter().accepts(Interval(at(0), at(23)), [])


def test_find_conflict_returns_first_overlapping_interval(existing: list[Interval]) -> None:
    conflict = ConflictArbiter().find_conflict(Interval(at(10, 30), at(13, 30)), existing)

    assert conflict == Interval(at(10), at(11))


def test_check_raises_with_detail_and_conflicting_interval(existing: list[Interval]) -> None:
    with pytest.raises(TimeConflict) as exception_info:
        ConflictArbiter().check(Interval(at(13, 30), at(14, 30)), existing, 'This time slot is no longer available.')

    assert exception_info.value.detail == 'This time slot is no longer available.'
    assert exception_info.value.conflicting == Interval(at(13), at(14))


def test_check_uses_default_detail() -> None:
    with pytest.raises(TimeConflict) as exception_info:
        ConflictArbiter().check(Interval(at(9), at(10)), [Interval(at(9), at(9, 30))])

    assert exception_info.value.detail == 'Time slot conflicts with an existing booking.'
