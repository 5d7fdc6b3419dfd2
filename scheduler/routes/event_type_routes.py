from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.auth.dependencies import get_current_user
from scheduler.database import get_db
from scheduler.models.availability import AvailabilityRule
from scheduler.models.booking import Booking
from scheduler.models.event_type import EventType
from scheduler.models.user import User
from scheduler.routes.common import database_unavailable, ensure_database_ready

router = APIRouter(tags=['event-types'])

SLUG_PATTERN = r'^[a-z0-9-]+$'
COLOR_PATTERN = r'^#[0-9A-Fa-f]{6}$'


class CreateEventTypeRequest(BaseModel):
    title: str = Field(min_length=1)
    slug: str = Field(min_length=1, pattern=SLUG_PATTERN)
    description: str | None = None
    duration_minutes: int = Field(ge=1)
    color: str | None = Field(default=None, pattern=COLOR_PATTERN)
    is_active: bool = True


class UpdateEventTypeRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    slug: str | None = Field(default=None, min_length=1, pattern=SLUG_PATTERN)
    description: str | None = None
    duration_minutes: int | None = Field(default=None, ge=1)
    color: str | None = Field(default=None, pattern=COLOR_PATTERN)
    is_active: bool | None = None


class EventTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    slug: str
    description: str | None = None
    duration_minutes: int
    color: str | None = None
    is_active: bool
    created_at: datetime | None = None


def get_owned_event_type(event_type_id: int, user: User, db: Session) -> EventType:
    event_type = db.query(EventType).filter(
        EventType.id == event_type_id,
        EventType.user_id == user.id,
    ).first()
    if not event_type:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Event type not found.',
        )
    return event_type


def ensure_slug_available(slug: str, user: User, db: Session, exclude_event_type_id: int | None = None) -> None:
    query = db.query(EventType).filter(
        EventType.user_id == user.id,
        EventType.slug == slug,
    )
    if exclude_event_type_id is not None:
        query = query.filter(EventType.id != exclude_event_type_id)

    if query.first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='An event type with this slug already exists.',
        )


@router.get('', response_model=list[EventTypeResponse])
def list_event_types(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return db.query(EventType).filter(
            EventType.user_id == current_user.id,
        ).order_by(EventType.created_at.desc(), EventType.id.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('', response_model=EventTypeResponse, status_code=status.HTTP_201_CREATED)
def create_event_type(
    data: CreateEventTypeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        ensure_slug_available(data.slug, current_user, db)

        event_type = EventType(user_id=current_user.id, **data.model_dump())
        db.add(event_type)
        db.commit()
        db.refresh(event_type)

        return event_type
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.get('/{event_type_id}', response_model=EventTypeResponse)
def get_event_type(
    event_type_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return get_owned_event_type(event_type_id, current_user, db)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.put('/{event_type_id}', response_model=EventTypeResponse)
def update_event_type(
    event_type_id: int,
    data: UpdateEventTypeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        event_type = get_owned_event_type(event_type_id, current_user, db)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if 'slug' in changes:
            ensure_slug_available(changes['slug'], current_user, db, exclude_event_type_id=event_type.id)

        for field_name, value in changes.items():
            setattr(event_type, field_name, value)
        db.commit()
        db.refresh(event_type)

        return event_type
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/{event_type_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_event_type(
    event_type_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        event_type = get_owned_event_type(event_type_id, current_user, db)

        has_bookings = db.query(Booking.id).filter(Booking.event_type_id == event_type.id).first()
        if has_bookings:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Cannot delete event type with existing bookings.',
            )

        db.query(AvailabilityRule).filter(AvailabilityRule.event_type_id == event_type.id).delete()
        db.delete(event_type)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
