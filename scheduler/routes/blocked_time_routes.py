from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.auth.dependencies import get_current_user
from scheduler.database import get_db
from scheduler.models.blocked_time import BlockedTime
from scheduler.models.user import User
from scheduler.routes.common import database_unavailable, ensure_database_ready, to_wall_clock

router = APIRouter(tags=['blocked-times'])

BLOCKED_TIME_CONFLICT_DETAIL = 'Time slot conflicts with existing blocked time.'


def normalize_reason(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Reason is required.')
    return normalized


class CreateBlockedTimeRequest(BaseModel):
    start_time: datetime
    end_time: datetime
    reason: str = Field(min_length=1)

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_time(cls, value: datetime) -> datetime:
        return to_wall_clock(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        return normalize_reason(value)

    @model_validator(mode='after')
    def validate_time_range(self) -> 'CreateBlockedTimeRequest':
        if self.start_time >= self.end_time:
            raise ValueError('Start time must be before end time.')
        return self


class UpdateBlockedTimeRequest(BaseModel):
    start_time: datetime | None = None
    end_time: datetime | None = None
    reason: str | None = Field(default=None, min_length=1)

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_time(cls, value: datetime | None) -> datetime | None:
        return to_wall_clock(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return normalize_reason(value) if value is not None else None


class BlockedTimeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    start_time: datetime
    end_time: datetime
    reason: str


def find_overlapping_block(
    user_id: int,
    start_time: datetime,
    end_time: datetime,
    db: Session,
    exclude_block_id: int | None = None,
) -> BlockedTime | None:
    query = db.query(BlockedTime).filter(
        BlockedTime.user_id == user_id,
        BlockedTime.start_time < end_time,
        BlockedTime.end_time > start_time,
    )
    if exclude_block_id is not None:
        query = query.filter(BlockedTime.id != exclude_block_id)
    return query.first()


def get_owned_block(block_id: int, user: User, db: Session) -> BlockedTime:
    blocked_time = db.query(BlockedTime).filter(
        BlockedTime.id == block_id,
        BlockedTime.user_id == user.id,
    ).first()
    if not blocked_time:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Blocked time not found.',
        )
    return blocked_time


@router.get('', response_model=list[BlockedTimeResponse])
def list_blocked_times(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return db.query(BlockedTime).filter(
            BlockedTime.user_id == current_user.id,
        ).order_by(BlockedTime.start_time.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('', response_model=BlockedTimeResponse, status_code=status.HTTP_201_CREATED)
def create_blocked_time(
    data: CreateBlockedTimeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        if find_overlapping_block(current_user.id, data.start_time, data.end_time, db):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=BLOCKED_TIME_CONFLICT_DETAIL,
            )

        blocked_time = BlockedTime(
            user_id=current_user.id,
            start_time=data.start_time,
            end_time=data.end_time,
            reason=data.reason,
        )
        db.add(blocked_time)
        db.commit()
        db.refresh(blocked_time)

        return blocked_time
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.put('/{block_id}', response_model=BlockedTimeResponse)
def update_blocked_time(
    block_id: int,
    data: UpdateBlockedTimeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        blocked_time = get_owned_block(block_id, current_user, db)

        if data.start_time or data.end_time:
            start_time = data.start_time or blocked_time.start_time
            end_time = data.end_time or blocked_time.end_time

            if start_time >= end_time:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail='Start time must be before end time.',
                )

            if find_overlapping_block(current_user.id, start_time, end_time, db, exclude_block_id=blocked_time.id):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=BLOCKED_TIME_CONFLICT_DETAIL,
                )

            blocked_time.start_time = start_time
            blocked_time.end_time = end_time

        if data.reason:
            blocked_time.reason = data.reason

        db.commit()
        db.refresh(blocked_time)

        return blocked_time
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/{block_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_blocked_time(
    block_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        blocked_time = get_owned_block(block_id, current_user, db)
        db.delete(blocked_time)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
