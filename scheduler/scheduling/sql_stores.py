"""SQLAlchemy-backed implementations of the scheduling stores."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from scheduler.models.availability import AvailabilityRule as AvailabilityRuleRow
from scheduler.models.blocked_time import BlockedTime
from scheduler.models.booking import Booking
from scheduler.models.event_type import EventType
from scheduler.models.user import User
from scheduler.scheduling.intervals import Interval
from scheduler.scheduling.stores import (
    AvailabilityRule,
    BookingDetails,
    BookingRecord,
    BookingStatus,
    EventTypeRecord,
)


def event_type_to_record(event_type: EventType) -> EventTypeRecord:
    return EventTypeRecord(
        id=event_type.id,
        user_id=event_type.user_id,
        duration_minutes=event_type.duration_minutes,
        is_active=bool(event_type.is_active),
    )


def rule_to_record(rule: AvailabilityRuleRow) -> AvailabilityRule:
    return AvailabilityRule(
        id=rule.id,
        user_id=rule.user_id,
        day_of_week=rule.day_of_week,
        start_time=rule.start_time,
        end_time=rule.end_time,
        event_type_id=rule.event_type_id,
    )


def booking_to_record(booking: Booking) -> BookingRecord:
    return BookingRecord(
        id=booking.id,
        user_id=booking.user_id,
        event_type_id=booking.event_type_id,
        interval=Interval(booking.start_time, booking.end_time),
        status=BookingStatus(booking.status),
        details=BookingDetails(
            title=booking.title,
            description=booking.description,
            attendee_name=booking.attendee_name,
            attendee_email=booking.attendee_email,
            attendee_phone=booking.attendee_phone,
            notes=booking.notes,
        ),
        created_at=booking.created_at,
    )


class SqlEventTypeStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, event_type_id: int) -> EventTypeRecord | None:
        event_type = self.db.query(EventType).filter(EventType.id == event_type_id).first()
        return event_type_to_record(event_type) if event_type else None


class SqlAvailabilityStore:
    def __init__(self, db: Session):
        self.db = db

    def rules_for(self, user_id: int, day_of_week: int, event_type_id: int | None) -> list[AvailabilityRule]:
        scope = AvailabilityRuleRow.event_type_id.is_(None)
        if event_type_id is not None:
            scope = scope | (AvailabilityRuleRow.event_type_id == event_type_id)

        rules = self.db.query(AvailabilityRuleRow).filter(
            AvailabilityRuleRow.user_id == user_id,
            AvailabilityRuleRow.day_of_week == day_of_week,
            scope,
        ).order_by(AvailabilityRuleRow.start_time.asc(), AvailabilityRuleRow.id.asc()).all()

        return [rule_to_record(rule) for rule in rules]


class SqlBlockedTimeStore:
    def __init__(self, db: Session):
        self.db = db

    def intervals_for(self, user_id: int, window: Interval) -> list[Interval]:
        blocked_times = self.db.query(BlockedTime.start_time, BlockedTime.end_time).filter(
            BlockedTime.user_id == user_id,
            BlockedTime.start_time < window.end,
            BlockedTime.end_time > window.start,
        ).all()
        return [Interval(start_time, end_time) for start_time, end_time in blocked_times]


class SqlBookingStore:
    def __init__(self, db: Session):
        self.db = db

    def intervals_for(
        self,
        user_id: int,
        window: Interval,
        event_type_id: int | None = None,
        exclude_booking_id: int | None = None,
    ) -> list[Interval]:
        query = self.db.query(Booking.start_time, Booking.end_time).filter(
            Booking.user_id == user_id,
            Booking.status != BookingStatus.CANCELLED.value,
            Booking.start_time < window.end,
            Booking.end_time > window.start,
        )
        if event_type_id is not None:
            query = query.filter(Booking.event_type_id == event_type_id)
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)

        return [Interval(start_time, end_time) for start_time, end_time in query.all()]

    def get(self, booking_id: int) -> BookingRecord | None:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        return booking_to_record(booking) if booking else None

    def add(
        self,
        user_id: int,
        event_type_id: int,
        interval: Interval,
        status: BookingStatus,
        details: BookingDetails,
    ) -> BookingRecord:
        booking = Booking(
            user_id=user_id,
            event_type_id=event_type_id,
            start_time=interval.start,
            end_time=interval.end,
            status=status.value,
            title=details.title,
            description=details.description,
            attendee_name=details.attendee_name,
            attendee_email=details.attendee_email,
            attendee_phone=details.attendee_phone,
            notes=details.notes,
        )
        self.db.add(booking)
        self.db.commit()
        self.db.refresh(booking)
        return booking_to_record(booking)

    def update(
        self,
        booking_id: int,
        interval: Interval,
        status: BookingStatus,
        details: BookingDetails,
    ) -> BookingRecord:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).one()
        booking.start_time = interval.start
        booking.end_time = interval.end
        booking.status = status.value
        booking.title = details.title
        booking.description = details.description
        booking.attendee_name = details.attendee_name
        booking.attendee_email = details.attendee_email
        booking.attendee_phone = details.attendee_phone
        booking.notes = details.notes
        self.db.commit()
        self.db.refresh(booking)
        return booking_to_record(booking)

    @contextmanager
    def lock_owner(self, user_id: int) -> Iterator[None]:
        # Row lock on the owner; held until the write transaction commits.
        # SQLite ignores FOR UPDATE and serializes writers on its own.
        self.db.query(User.id).filter(User.id == user_id).with_for_update().first()
        try:
            yield
        except BaseException:
            self.db.rollback()
            raise
