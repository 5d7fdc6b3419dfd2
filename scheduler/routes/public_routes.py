from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.core import config
from scheduler.core.rate_limit import RateLimiter
from scheduler.database import get_db
from scheduler.models.availability import AvailabilityRule
from scheduler.models.booking import Booking
from scheduler.models.event_type import EventType
from scheduler.models.user import User
from scheduler.routes.availability_routes import AvailabilityRuleResponse
from scheduler.routes.booking_routes import AttendeeFields
from scheduler.routes.common import (
    build_commit_protocol,
    database_unavailable,
    ensure_database_ready,
    to_http_exception,
)
from scheduler.routes.event_type_routes import EventTypeResponse
from scheduler.scheduling.conflicts import ConflictScope
from scheduler.scheduling.errors import SchedulingError
from scheduler.scheduling.intervals import Interval
from scheduler.scheduling.stores import BookingDetails, BookingStatus

router = APIRouter(tags=['public'])

public_booking_limiter = RateLimiter(
    max_requests=config.PUBLIC_BOOKING_RATE_LIMIT,
    window_seconds=config.PUBLIC_BOOKING_RATE_WINDOW_SECONDS,
)


class PublicBookingRequest(AttendeeFields):
    pass


class PublicUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str | None = None
    username: str
    bio: str | None = None
    timezone: str | None = None


class BusyIntervalResponse(BaseModel):
    start_time: datetime
    end_time: datetime


class PublicEventResponse(BaseModel):
    user: PublicUserResponse
    event_type: EventTypeResponse
    availability: list[AvailabilityRuleResponse]
    existing_bookings: list[BusyIntervalResponse]


class PublicBookingSummary(BaseModel):
    id: int
    start_time: datetime
    end_time: datetime
    attendee_name: str
    attendee_email: str


class PublicBookingResponse(BaseModel):
    message: str
    booking: PublicBookingSummary


def get_public_user(username: str, db: Session) -> User:
    user = db.query(User).filter(User.username == username).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='User not found.',
        )
    return user


def get_public_event_type(user: User, slug: str, db: Session, active_only: bool = True) -> EventType:
    query = db.query(EventType).filter(
        EventType.user_id == user.id,
        EventType.slug == slug,
    )
    if active_only:
        query = query.filter(EventType.is_active.is_(True))

    event_type = query.first()
    if not event_type:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Event type not found.',
        )
    return event_type


@router.get('/{username}/{slug}', response_model=PublicEventResponse)
def get_public_event(username: str, slug: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        user = get_public_user(username, db)
        event_type = get_public_event_type(user, slug, db)

        availability = db.query(AvailabilityRule).filter(
            AvailabilityRule.user_id == user.id,
            AvailabilityRule.event_type_id == event_type.id,
        ).order_by(AvailabilityRule.day_of_week.asc(), AvailabilityRule.start_time.asc()).all()

        now = datetime.now()
        lookahead_end = now + timedelta(days=config.PUBLIC_BOOKING_LOOKAHEAD_DAYS)
        existing_bookings = db.query(Booking.start_time, Booking.end_time).filter(
            Booking.user_id == user.id,
            Booking.event_type_id == event_type.id,
            Booking.status != BookingStatus.CANCELLED.value,
            Booking.start_time >= now,
            Booking.start_time <= lookahead_end,
        ).order_by(Booking.start_time.asc()).all()

        return PublicEventResponse(
            user=PublicUserResponse.model_validate(user),
            event_type=EventTypeResponse.model_validate(event_type),
            availability=[AvailabilityRuleResponse.model_validate(rule) for rule in availability],
            existing_bookings=[
                BusyIntervalResponse(start_time=start_time, end_time=end_time)
                for start_time, end_time in existing_bookings
            ],
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post(
    '/{username}/{slug}',
    response_model=PublicBookingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(public_booking_limiter)],
)
def create_public_booking(
    username: str,
    slug: str,
    data: PublicBookingRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        user = get_public_user(username, db)
        event_type = get_public_event_type(user, slug, db, active_only=False)

        booking = build_commit_protocol(db).create(
            owner_id=user.id,
            event_type_id=event_type.id,
            interval=Interval(data.start_time, data.end_time),
            scope=ConflictScope.EVENT_TYPE,
            status=BookingStatus.CONFIRMED,
            details=BookingDetails(
                title=event_type.title,
                description=event_type.description,
                attendee_name=data.attendee_name,
                attendee_email=data.attendee_email,
                attendee_phone=data.attendee_phone,
                notes=data.notes,
            ),
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return PublicBookingResponse(
        message='Booking created successfully',
        booking=PublicBookingSummary(
            id=booking.id,
            start_time=booking.interval.start,
            end_time=booking.interval.end,
            attendee_name=booking.details.attendee_name,
            attendee_email=booking.details.attendee_email,
        ),
    )
