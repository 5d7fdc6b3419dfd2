"""
Booking admission and commit.

A booking request moves REQUESTED -> VALIDATED -> COMMITTED, or ends in
REJECTED with one of EventTypeNotFound, EventTypeInactive, TimeConflict or
BookingNotFound. The conflict check and the write run while holding the
owner's lock, both in-process and in the store, so two concurrent requests
for the same owner cannot both pass the check.
"""

from __future__ import annotations

import enum
import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Iterable, Iterator, Mapping

from scheduler.scheduling.conflicts import ConflictArbiter, ConflictScope
from scheduler.scheduling.errors import (
    BookingNotFound,
    EventTypeInactive,
    EventTypeNotFound,
    SchedulingError,
)
from scheduler.scheduling.intervals import Interval
from scheduler.scheduling.stores import (
    BlockedTimeStore,
    BookingDetails,
    BookingRecord,
    BookingStatus,
    BookingStore,
    EventTypeRecord,
    EventTypeStore,
)

logger = logging.getLogger(__name__)

CommitHook = Callable[[BookingRecord], None]

CONFLICT_DETAILS = {
    ConflictScope.USER: 'Time slot conflicts with an existing booking.',
    ConflictScope.EVENT_TYPE: 'This time slot is no longer available.',
}

_owner_locks: dict[int, Lock] = {}
_owner_locks_guard = Lock()


@contextmanager
def owner_lock(user_id: int) -> Iterator[None]:
    with _owner_locks_guard:
        lock = _owner_locks.setdefault(user_id, Lock())
    with lock:
        yield


class CommitState(str, enum.Enum):
    REQUESTED = 'requested'
    VALIDATED = 'validated'
    COMMITTED = 'committed'
    REJECTED = 'rejected'


@dataclass
class CommitAttempt:
    owner_id: int
    interval: Interval
    scope: ConflictScope
    state: CommitState = CommitState.REQUESTED
    reason: str | None = None

    def advance(self, state: CommitState) -> None:
        logger.debug('Booking for owner %s at %s: %s -> %s', self.owner_id, self.interval, self.state.value, state.value)
        self.state = state

    def reject(self, error: SchedulingError) -> SchedulingError:
        self.state = CommitState.REJECTED
        self.reason = type(error).__name__
        logger.info('Booking for owner %s at %s rejected: %s', self.owner_id, self.interval, error.detail)
        return error


class BookingCommitProtocol:
    def __init__(
        self,
        event_types: EventTypeStore,
        blocked_times: BlockedTimeStore,
        bookings: BookingStore,
        arbiter: ConflictArbiter | None = None,
        on_commit: Iterable[CommitHook] = (),
    ):
        self.event_types = event_types
        self.blocked_times = blocked_times
        self.bookings = bookings
        self.arbiter = arbiter or ConflictArbiter()
        self.on_commit = list(on_commit)

    def create(
        self,
        owner_id: int,
        event_type_id: int,
        interval: Interval,
        scope: ConflictScope = ConflictScope.USER,
        status: BookingStatus = BookingStatus.PENDING,
        details: BookingDetails | None = None,
    ) -> BookingRecord:
        attempt = CommitAttempt(owner_id=owner_id, interval=interval, scope=scope)

        try:
            event_type = self._resolve_event_type(owner_id, event_type_id)
            with owner_lock(owner_id), self.bookings.lock_owner(owner_id):
                self._check_conflicts(attempt, event_type.id)
                attempt.advance(CommitState.VALIDATED)
                booking = self.bookings.add(owner_id, event_type.id, interval, status, details or BookingDetails())
        except SchedulingError as exc:
            raise attempt.reject(exc) from None

        attempt.advance(CommitState.COMMITTED)
        logger.info('Booking %s committed for owner %s at %s', booking.id, owner_id, interval)
        self._run_hooks(booking)
        return booking

    def update(
        self,
        owner_id: int,
        booking_id: int,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        status: BookingStatus | None = None,
        detail_changes: Mapping[str, Any] | None = None,
        scope: ConflictScope = ConflictScope.USER,
    ) -> BookingRecord:
        """
        Apply changes to an existing booking.

        The stored booking is read and merged with the changes while the
        owner's lock is held. The overlap check is re-run, ignoring the
        booking's own interval, whenever the time changes or a cancelled
        booking is revived. Moving a booking into CANCELLED is always allowed.
        """
        attempt = None
        try:
            with owner_lock(owner_id), self.bookings.lock_owner(owner_id):
                current = self.bookings.get(booking_id)
                if current is None or current.user_id != owner_id:
                    raise BookingNotFound()

                interval = Interval(start_time or current.interval.start, end_time or current.interval.end)
                new_status = status or current.status
                details = replace(current.details, **detail_changes) if detail_changes else current.details
                attempt = CommitAttempt(owner_id=owner_id, interval=interval, scope=scope)

                if new_status.is_live and (interval != current.interval or not current.status.is_live):
                    self._check_conflicts(attempt, current.event_type_id, exclude_booking_id=current.id)
                attempt.advance(CommitState.VALIDATED)
                booking = self.bookings.update(current.id, interval, new_status, details)
        except SchedulingError as exc:
            if attempt is None:
                raise
            raise attempt.reject(exc) from None

        attempt.advance(CommitState.COMMITTED)
        return booking

    def _resolve_event_type(self, owner_id: int, event_type_id: int) -> EventTypeRecord:
        event_type = self.event_types.get(event_type_id)
        if event_type is None or event_type.user_id != owner_id:
            raise EventTypeNotFound()
        if not event_type.is_active:
            raise EventTypeInactive()
        return event_type

    def _check_conflicts(
        self,
        attempt: CommitAttempt,
        event_type_id: int,
        exclude_booking_id: int | None = None,
    ) -> None:
        scoped_event_type = event_type_id if attempt.scope is ConflictScope.EVENT_TYPE else None
        occupied = self.bookings.intervals_for(
            attempt.owner_id,
            attempt.interval,
            event_type_id=scoped_event_type,
            exclude_booking_id=exclude_booking_id,
        )
        self.arbiter.check(attempt.interval, occupied, CONFLICT_DETAILS[attempt.scope])
        self.arbiter.check(
            attempt.interval,
            self.blocked_times.intervals_for(attempt.owner_id, attempt.interval),
            'This time is blocked.',
        )

    def _run_hooks(self, booking: BookingRecord) -> None:
        for hook in self.on_commit:
            try:
                hook(booking)
            except Exception:
                logger.exception('Post-commit hook %r failed for booking %s', hook, booking.id)
