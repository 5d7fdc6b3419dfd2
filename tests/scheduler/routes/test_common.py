from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from scheduler.routes.common import (
    DATABASE_UNAVAILABLE_DETAIL,
    database_unavailable,
    ensure_database_ready,
    to_http_exception,
    to_wall_clock,
)
from scheduler.scheduling.errors import (
    BookingNotFound,
    EventTypeInactive,
    EventTypeNotFound,
    InvalidTimeRange,
    TimeConflict,
)


@pytest.mark.parametrize(
    ('error', 'status_code'),
    [
        (EventTypeNotFound(), 404),
        (BookingNotFound(), 404),
        (EventTypeInactive(), 404),
        (TimeConflict(), 409),
        (InvalidTimeRange(), 400),
    ],
)
def test_to_http_exception_maps_status(error, status_code: int) -> None:
    exception = to_http_exception(error)

    assert exception.status_code == status_code
    assert exception.detail == error.detail


def test_database_unavailable_hides_driver_error() -> None:
    exception = database_unavailable(OperationalError('SELECT 1', {}, Exception('connection refused')))

    assert exception.status_code == 503
    assert exception.detail == DATABASE_UNAVAILABLE_DETAIL


def test_ensure_database_ready_wraps_schema_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_schema():
        raise OperationalError('CREATE INDEX', {}, Exception('disk I/O error'))

    monkeypatch.setattr('scheduler.routes.common.ensure_schema', broken_schema)

    with pytest.raises(HTTPException) as exception_info:
        ensure_database_ready()

    assert exception_info.value.status_code == 503


def test_to_wall_clock_drops_offset_only() -> None:
    aware = datetime(2026, 1, 5, 9, 0, tzinfo=timezone(timedelta(hours=-5)))

    assert to_wall_clock(aware) == datetime(2026, 1, 5, 9, 0)
    assert to_wall_clock(datetime(2026, 1, 5, 9, 0)) == datetime(2026, 1, 5, 9, 0)
    assert to_wall_clock(None) is None
