from datetime import date, datetime

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from scheduler.models.availability import AvailabilityRule
from scheduler.models.booking import Booking
from scheduler.routes.availability_routes import (
    AvailabilityRuleRequest,
    AvailabilityRuleUpdateRequest,
    create_availability,
    delete_availability,
    list_availability,
    list_available_slots,
    update_availability,
)


@pytest.fixture(autouse=True)
def skip_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('scheduler.routes.availability_routes.ensure_database_ready', lambda: None)


def test_availability_request_pads_hours() -> None:
    request = AvailabilityRuleRequest(day_of_week=1, start_time='9:00', end_time='17:30')

    assert request.start_time == '09:00'
    assert request.end_time == '17:30'


@pytest.mark.parametrize(
    ('start_time', 'end_time'),
    [
        ('10:00', '10:00'),
        ('11:00', '10:00'),
        ('24:00', '25:00'),
        ('9am', '10am'),
    ],
)
def test_availability_request_rejects_bad_windows(start_time: str, end_time: str) -> None:
    with pytest.raises(ValidationError):
        AvailabilityRuleRequest(day_of_week=1, start_time=start_time, end_time=end_time)


def test_availability_request_rejects_unknown_weekday() -> None:
    with pytest.raises(ValidationError):
        AvailabilityRuleRequest(day_of_week=7, start_time='09:00', end_time='10:00')


def test_create_availability_stores_rule(db, owner, event_type) -> None:
    rule = create_availability(
        data=AvailabilityRuleRequest(day_of_week=1, start_time='09:00', end_time='12:00', event_type_id=event_type.id),
        current_user=owner,
        db=db,
    )

    assert rule.user_id == owner.id
    assert rule.event_type_id == event_type.id
    assert db.query(AvailabilityRule).count() == 1


def test_create_availability_rejects_overlap_in_same_scope(db, owner, monday_rule) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_availability(
            data=AvailabilityRuleRequest(day_of_week=1, start_time='16:30', end_time='18:00'),
            current_user=owner,
            db=db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Time range overlaps with existing availability.'


def test_create_availability_allows_adjacent_and_other_scopes(db, owner, event_type, monday_rule) -> None:
    create_availability(
        data=AvailabilityRuleRequest(day_of_week=1, start_time='17:00', end_time='18:00'),
        current_user=owner,
        db=db,
    )
    create_availability(
        data=AvailabilityRuleRequest(day_of_week=1, start_time='10:00', end_time='11:00', event_type_id=event_type.id),
        current_user=owner,
        db=db,
    )

    assert db.query(AvailabilityRule).count() == 3


def test_create_availability_rejects_foreign_event_type(db, owner, other_user, event_type_factory) -> None:
    foreign = event_type_factory(other_user, slug='foreign')

    with pytest.raises(HTTPException) as exception_info:
        create_availability(
            data=AvailabilityRuleRequest(day_of_week=1, start_time='09:00', end_time='10:00', event_type_id=foreign.id),
            current_user=owner,
            db=db,
        )

    assert exception_info.value.status_code == 404


def test_list_availability_filters_by_event_type(db, owner, event_type, monday_rule) -> None:
    db.add(AvailabilityRule(user_id=owner.id, day_of_week=2, start_time='09:00', end_time='10:00', event_type_id=event_type.id))
    db.commit()

    everything = list_availability(event_type_id=None, current_user=owner, db=db)
    scoped = list_availability(event_type_id=event_type.id, current_user=owner, db=db)

    assert [rule.day_of_week for rule in everything] == [1, 2]
    assert [rule.event_type_id for rule in scoped] == [event_type.id]


def test_update_availability_can_clear_event_type(db, owner, event_type) -> None:
    rule = AvailabilityRule(user_id=owner.id, day_of_week=3, start_time='09:00', end_time='10:00', event_type_id=event_type.id)
    db.add(rule)
    db.commit()

    updated = update_availability(
        rule_id=rule.id,
        data=AvailabilityRuleUpdateRequest(event_type_id=None, end_time='11:00'),
        current_user=owner,
        db=db,
    )

    assert updated.event_type_id is None
    assert updated.end_time == '11:00'


def test_update_availability_rejects_inverted_window(db, owner, monday_rule) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_availability(
            rule_id=monday_rule.id,
            data=AvailabilityRuleUpdateRequest(start_time='18:00'),
            current_user=owner,
            db=db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Start time must be before end time.'


def test_update_availability_rejects_overlap_with_sibling(db, owner, monday_rule) -> None:
    sibling = AvailabilityRule(user_id=owner.id, day_of_week=1, start_time='18:00', end_time='19:00')
    db.add(sibling)
    db.commit()

    with pytest.raises(HTTPException) as exception_info:
        update_availability(
            rule_id=sibling.id,
            data=AvailabilityRuleUpdateRequest(start_time='16:00'),
            current_user=owner,
            db=db,
        )

    assert exception_info.value.status_code == 400


def test_update_availability_hides_other_users_rules(db, other_user, monday_rule) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_availability(
            rule_id=monday_rule.id,
            data=AvailabilityRuleUpdateRequest(end_time='18:00'),
            current_user=other_user,
            db=db,
        )

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Availability not found.'


def test_delete_availability_removes_rule(db, owner, monday_rule) -> None:
    delete_availability(rule_id=monday_rule.id, current_user=owner, db=db)

    assert db.query(AvailabilityRule).count() == 0


def test_list_available_slots_returns_open_monday(db, event_type, monday_rule) -> None:
    slots = list_available_slots(day=date(2026, 1, 5), event_type_id=event_type.id, db=db)

    assert len(slots) == 16
    assert slots[0].time == '09:00'
    assert slots[0].start_time == datetime(2026, 1, 5, 9, 0)
    assert slots[-1].time == '16:30'


def test_list_available_slots_skips_booked_time(db, owner, event_type, monday_rule) -> None:
    db.add(Booking(
        user_id=owner.id,
        event_type_id=event_type.id,
        title='Intro call',
        start_time=datetime(2026, 1, 5, 10, 0),
        end_time=datetime(2026, 1, 5, 10, 30),
        status='CONFIRMED',
        attendee_name='Ada Lovelace',
        attendee_email='ada@example.com',
    ))
    db.commit()

    slots = list_available_slots(day=date(2026, 1, 5), event_type_id=event_type.id, db=db)

    assert len(slots) == 15
    assert '10:00' not in [slot.time for slot in slots]


def test_list_available_slots_is_empty_without_rules(db, event_type) -> None:
    assert list_available_slots(day=date(2026, 1, 5), event_type_id=event_type.id, db=db) == []


def test_list_available_slots_rejects_missing_event_type(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_available_slots(day=date(2026, 1, 5), event_type_id=404, db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Event type not found.'
