import logging
from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.database import ensure_schema
from scheduler.scheduling.booking import BookingCommitProtocol, CommitHook
from scheduler.scheduling.errors import (
    EventTypeInactive,
    NotFoundError,
    SchedulingError,
    TimeConflict,
)
from scheduler.scheduling.slots import SlotGenerator
from scheduler.scheduling.sql_stores import (
    SqlAvailabilityStore,
    SqlBlockedTimeStore,
    SqlBookingStore,
    SqlEventTypeStore,
)

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'
TIME_FORMAT_PATTERN = r'^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$'

# Called with every committed booking (meeting links, notifications).
commit_hooks: list[CommitHook] = []


def ensure_database_ready() -> None:
    try:
        ensure_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


def database_unavailable(exc: SQLAlchemyError) -> HTTPException:
    logger.exception('Database operation failed: %s', exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def to_http_exception(exc: SchedulingError) -> HTTPException:
    status_code = status.HTTP_400_BAD_REQUEST
    if isinstance(exc, (NotFoundError, EventTypeInactive)):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, TimeConflict):
        status_code = status.HTTP_409_CONFLICT
    return HTTPException(status_code=status_code, detail=exc.detail)


def build_slot_generator(db: Session) -> SlotGenerator:
    return SlotGenerator(
        event_types=SqlEventTypeStore(db),
        availability=SqlAvailabilityStore(db),
        blocked_times=SqlBlockedTimeStore(db),
        bookings=SqlBookingStore(db),
    )


def build_commit_protocol(db: Session) -> BookingCommitProtocol:
    return BookingCommitProtocol(
        event_types=SqlEventTypeStore(db),
        blocked_times=SqlBlockedTimeStore(db),
        bookings=SqlBookingStore(db),
        on_commit=commit_hooks,
    )


def to_wall_clock(value: datetime | None) -> datetime | None:
    """Drop any UTC offset; all scheduling happens in the owner's naive wall-clock frame."""
    if value is None or value.tzinfo is None:
        return value
    return value.replace(tzinfo=None)
