"""Half-open time ranges in the owner's wall-clock frame."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from scheduler.scheduling.errors import InvalidTimeRange

WALL_CLOCK_FORMAT = '%H:%M'


def parse_wall_clock(value: str) -> time:
    """Parse an ``HH:mm`` string (hours may be a single digit)."""
    return datetime.strptime(value.strip(), WALL_CLOCK_FORMAT).time()


def format_wall_clock(value: time | datetime) -> str:
    return value.strftime(WALL_CLOCK_FORMAT)


@dataclass(frozen=True)
class Interval:
    """
    Immutable ``[start, end)`` range.

    Intervals that only touch at an endpoint do not overlap.
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidTimeRange(f'Start time {self.start} must be before end time {self.end}.')

    @classmethod
    def from_wall_clock(cls, day: date, start: str | time, duration_minutes: int) -> Interval:
        start_time = parse_wall_clock(start) if isinstance(start, str) else start
        start_at = datetime.combine(day, start_time)
        return cls(start_at, start_at + timedelta(minutes=duration_minutes))

    def overlaps(self, other: Interval) -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, point: datetime) -> bool:
        return self.start <= point < self.end

    def clip(self, bounds: Interval) -> Interval | None:
        """Return the part of this interval inside ``bounds``, or None when disjoint."""
        if not self.overlaps(bounds):
            return None
        return Interval(max(self.start, bounds.start), min(self.end, bounds.end))

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def __str__(self) -> str:
        return f"{self.start.isoformat(timespec='minutes')} - {self.end.isoformat(timespec='minutes')}"


def overlaps(a: Interval, b: Interval) -> bool:
    return a.overlaps(b)


def day_window(day: date) -> Interval:
    """Midnight-to-midnight window for one calendar day."""
    start = datetime.combine(day, time.min)
    return Interval(start, start + timedelta(days=1))


def day_of_week(day: date) -> int:
    """Calendar weekday with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7
