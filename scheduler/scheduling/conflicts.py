"""Admission control for candidate and requested intervals."""

from __future__ import annotations

import enum
from typing import Iterable

from scheduler.scheduling.errors import TimeConflict
from scheduler.scheduling.intervals import Interval


class ConflictScope(str, enum.Enum):
    """Which of the owner's bookings a new booking is checked against."""

    USER = 'user'
    EVENT_TYPE = 'event_type'


class ConflictArbiter:
    """
    Accepts an interval iff it overlaps none of the existing ones.

    There is no tolerance and no preemption: touching endpoints are fine,
    any other overlap rejects.
    """

    def find_conflict(self, candidate: Interval, existing: Iterable[Interval]) -> Interval | None:
        for interval in existing:
            if candidate.overlaps(interval):
                return interval
        return None

    def accepts(self, candidate: Interval, existing: Iterable[Interval]) -> bool:
        return self.find_conflict(candidate, existing) is None

    def check(self, candidate: Interval, existing: Iterable[Interval], detail: str | None = None) -> None:
        conflicting = self.find_conflict(candidate, existing)
        if conflicting is not None:
            raise TimeConflict(detail, conflicting=conflicting)
