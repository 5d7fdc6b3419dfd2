from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.auth.dependencies import get_current_user
from scheduler.database import get_db
from scheduler.models.booking import Booking
from scheduler.models.user import User
from scheduler.routes.common import (
    build_commit_protocol,
    database_unavailable,
    ensure_database_ready,
    to_http_exception,
    to_wall_clock,
)
from scheduler.scheduling.conflicts import ConflictScope
from scheduler.scheduling.errors import SchedulingError
from scheduler.scheduling.intervals import Interval
from scheduler.scheduling.stores import BookingDetails, BookingRecord, BookingStatus

router = APIRouter(tags=['bookings'])

MAX_NOTES_LENGTH = 600


def normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    local_part, _, domain = normalized.partition('@')
    if not local_part or '.' not in domain:
        raise ValueError('Invalid attendee email.')
    return normalized


def normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_NOTES_LENGTH} characters or fewer.')

    return normalized


class AttendeeFields(BaseModel):
    attendee_name: str = Field(min_length=1)
    attendee_email: str
    attendee_phone: str | None = None
    notes: str | None = None
    start_time: datetime
    end_time: datetime

    @field_validator('attendee_email')
    @classmethod
    def validate_attendee_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_time(cls, value: datetime) -> datetime:
        return to_wall_clock(value)

    @model_validator(mode='after')
    def validate_time_range(self):
        if self.start_time >= self.end_time:
            raise ValueError('Start time must be before end time.')
        return self


class CreateBookingRequest(AttendeeFields):
    title: str = Field(min_length=1)
    description: str | None = None
    event_type_id: int
    status: BookingStatus = BookingStatus.PENDING


class UpdateBookingRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    status: BookingStatus | None = None
    attendee_name: str | None = Field(default=None, min_length=1)
    attendee_email: str | None = None
    attendee_phone: str | None = None
    notes: str | None = None

    @field_validator('attendee_email')
    @classmethod
    def validate_attendee_email(cls, value: str | None) -> str | None:
        return normalize_email(value) if value is not None else None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_time(cls, value: datetime | None) -> datetime | None:
        return to_wall_clock(value)


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_type_id: int
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    attendee_name: str
    attendee_email: str
    attendee_phone: str | None = None
    notes: str | None = None
    created_at: datetime | None = None


def booking_response(booking: BookingRecord) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        event_type_id=booking.event_type_id,
        title=booking.details.title,
        description=booking.details.description,
        start_time=booking.interval.start,
        end_time=booking.interval.end,
        status=booking.status,
        attendee_name=booking.details.attendee_name,
        attendee_email=booking.details.attendee_email,
        attendee_phone=booking.details.attendee_phone,
        notes=booking.details.notes,
        created_at=booking.created_at,
    )


def get_owned_booking(booking_id: int, user: User, db: Session) -> Booking:
    booking = db.query(Booking).filter(
        Booking.id == booking_id,
        Booking.user_id == user.id,
    ).first()
    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Booking not found.',
        )
    return booking


@router.get('', response_model=list[BookingResponse])
def list_bookings(
    booking_status: BookingStatus | None = Query(default=None, alias='status'),
    event_type_id: int | None = Query(default=None),
    upcoming: bool = Query(default=False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Booking).filter(Booking.user_id == current_user.id)
        if booking_status is not None:
            query = query.filter(Booking.status == booking_status.value)
        if event_type_id is not None:
            query = query.filter(Booking.event_type_id == event_type_id)
        if upcoming:
            query = query.filter(Booking.start_time >= datetime.now())

        return query.order_by(Booking.start_time.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        booking = build_commit_protocol(db).create(
            owner_id=current_user.id,
            event_type_id=data.event_type_id,
            interval=Interval(data.start_time, data.end_time),
            scope=ConflictScope.USER,
            status=data.status,
            details=BookingDetails(
                title=data.title,
                description=data.description,
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

    return booking_response(booking)


@router.get('/{booking_id}', response_model=BookingResponse)
def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return get_owned_booking(booking_id, current_user, db)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.put('/{booking_id}', response_model=BookingResponse)
def update_booking(
    booking_id: int,
    data: UpdateBookingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        detail_changes = data.model_dump(
            include={'title', 'description', 'attendee_name', 'attendee_email', 'attendee_phone', 'notes'},
            exclude_unset=True,
            exclude_none=True,
        )

        booking = build_commit_protocol(db).update(
            owner_id=current_user.id,
            booking_id=booking_id,
            start_time=data.start_time,
            end_time=data.end_time,
            status=data.status,
            detail_changes=detail_changes,
            scope=ConflictScope.USER,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return booking_response(booking)


@router.delete('/{booking_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        booking = get_owned_booking(booking_id, current_user, db)
        db.delete(booking)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
