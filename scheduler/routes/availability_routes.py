from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.auth.dependencies import get_current_user
from scheduler.database import get_db
from scheduler.models.availability import AvailabilityRule
from scheduler.models.event_type import EventType
from scheduler.models.user import User
from scheduler.routes.common import (
    TIME_FORMAT_PATTERN,
    build_slot_generator,
    database_unavailable,
    ensure_database_ready,
    to_http_exception,
)
from scheduler.scheduling.conflicts import ConflictArbiter
from scheduler.scheduling.errors import SchedulingError
from scheduler.scheduling.intervals import Interval, format_wall_clock, parse_wall_clock

router = APIRouter(tags=['availability'])

# Any fixed day works; rules are compared by wall-clock time only.
REFERENCE_DAY = date(2000, 1, 1)


def normalize_wall_clock(value: str | None) -> str | None:
    if value is None:
        return None
    return format_wall_clock(parse_wall_clock(value))


def wall_clock_interval(start_time: str, end_time: str) -> Interval:
    return Interval(
        datetime.combine(REFERENCE_DAY, parse_wall_clock(start_time)),
        datetime.combine(REFERENCE_DAY, parse_wall_clock(end_time)),
    )


class AvailabilityRuleRequest(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: str = Field(pattern=TIME_FORMAT_PATTERN)
    end_time: str = Field(pattern=TIME_FORMAT_PATTERN)
    event_type_id: int | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_time(cls, value: str) -> str:
        return normalize_wall_clock(value)

    @model_validator(mode='after')
    def validate_time_range(self) -> 'AvailabilityRuleRequest':
        if self.start_time >= self.end_time:
            raise ValueError('Start time must be before end time')
        return self


class AvailabilityRuleUpdateRequest(BaseModel):
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    start_time: str | None = Field(default=None, pattern=TIME_FORMAT_PATTERN)
    end_time: str | None = Field(default=None, pattern=TIME_FORMAT_PATTERN)
    event_type_id: int | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_time(cls, value: str | None) -> str | None:
        return normalize_wall_clock(value)


class AvailabilityRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    day_of_week: int
    start_time: str
    end_time: str
    event_type_id: int | None = None


class SlotResponse(BaseModel):
    time: str
    start_time: datetime
    end_time: datetime


def ensure_event_type_owned(event_type_id: int | None, user: User, db: Session) -> None:
    if event_type_id is None:
        return

    event_type = db.query(EventType).filter(
        EventType.id == event_type_id,
        EventType.user_id == user.id,
    ).first()
    if not event_type:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Event type not found.',
        )


def find_overlapping_rule(
    user_id: int,
    day_of_week: int,
    event_type_id: int | None,
    start_time: str,
    end_time: str,
    db: Session,
    exclude_rule_id: int | None = None,
) -> AvailabilityRule | None:
    """Return a rule of the same user/day/event-type scope that overlaps the window."""
    query = db.query(AvailabilityRule).filter(
        AvailabilityRule.user_id == user_id,
        AvailabilityRule.day_of_week == day_of_week,
    )
    if event_type_id is None:
        query = query.filter(AvailabilityRule.event_type_id.is_(None))
    else:
        query = query.filter(AvailabilityRule.event_type_id == event_type_id)
    if exclude_rule_id is not None:
        query = query.filter(AvailabilityRule.id != exclude_rule_id)

    requested = wall_clock_interval(start_time, end_time)
    arbiter = ConflictArbiter()
    for rule in query.all():
        if not arbiter.accepts(requested, [wall_clock_interval(rule.start_time, rule.end_time)]):
            return rule
    return None


@router.get('', response_model=list[AvailabilityRuleResponse])
def list_availability(
    event_type_id: int | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(AvailabilityRule).filter(AvailabilityRule.user_id == current_user.id)
        if event_type_id is not None:
            query = query.filter(AvailabilityRule.event_type_id == event_type_id)

        return query.order_by(AvailabilityRule.day_of_week.asc(), AvailabilityRule.start_time.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('', response_model=AvailabilityRuleResponse, status_code=status.HTTP_201_CREATED)
def create_availability(
    data: AvailabilityRuleRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        ensure_event_type_owned(data.event_type_id, current_user, db)

        if find_overlapping_rule(
            current_user.id, data.day_of_week, data.event_type_id, data.start_time, data.end_time, db
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Time range overlaps with existing availability.',
            )

        rule = AvailabilityRule(user_id=current_user.id, **data.model_dump())
        db.add(rule)
        db.commit()
        db.refresh(rule)

        return rule
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.put('/{rule_id}', response_model=AvailabilityRuleResponse)
def update_availability(
    rule_id: int,
    data: AvailabilityRuleUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        rule = db.query(AvailabilityRule).filter(
            AvailabilityRule.id == rule_id,
            AvailabilityRule.user_id == current_user.id,
        ).first()
        if not rule:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Availability not found.',
            )

        # An explicit null event_type_id turns the rule into a general one.
        changes = {
            field_name: value
            for field_name, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field_name == 'event_type_id'
        }
        merged = {
            'day_of_week': rule.day_of_week,
            'start_time': rule.start_time,
            'end_time': rule.end_time,
            'event_type_id': rule.event_type_id,
            **changes,
        }

        if merged['start_time'] >= merged['end_time']:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Start time must be before end time.',
            )

        ensure_event_type_owned(merged['event_type_id'], current_user, db)

        if find_overlapping_rule(current_user.id, db=db, exclude_rule_id=rule.id, **merged):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Time range overlaps with existing availability.',
            )

        for field_name, value in changes.items():
            setattr(rule, field_name, value)
        db.commit()
        db.refresh(rule)

        return rule
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/{rule_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_availability(
    rule_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        rule = db.query(AvailabilityRule).filter(
            AvailabilityRule.id == rule_id,
            AvailabilityRule.user_id == current_user.id,
        ).first()
        if not rule:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Availability not found.',
            )

        db.delete(rule)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.get('/slots', response_model=list[SlotResponse])
def list_available_slots(
    day: date = Query(..., alias='date'),
    event_type_id: int = Query(...),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        slots = build_slot_generator(db).slots_for(event_type_id, day)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return [SlotResponse(time=slot.time, start_time=slot.start_time, end_time=slot.end_time) for slot in slots]
