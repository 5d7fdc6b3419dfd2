import os

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
os.environ.setdefault('JWT_SECRET_KEY', 'test-only-signing-key-0123456789abcdef')

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from scheduler.database import Base  # noqa: E402
from scheduler.models.availability import AvailabilityRule  # noqa: E402
from scheduler.models import blocked_time, booking  # noqa: E402,F401
from scheduler.models.event_type import EventType  # noqa: E402
from scheduler.models.user import User  # noqa: E402
from scheduler.routes import common  # noqa: E402


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_commit_hooks():
    common.commit_hooks.clear()
    yield
    common.commit_hooks.clear()


def make_user(db, username: str = 'owner', email: str | None = None) -> User:
    user = User(email=email or f'{username}@example.com', username=username, name=username.title())
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_event_type(
    db,
    user: User,
    slug: str = 'intro-call',
    duration_minutes: int = 30,
    is_active: bool = True,
) -> EventType:
    event_type = EventType(
        user_id=user.id,
        title=slug.replace('-', ' ').title(),
        slug=slug,
        duration_minutes=duration_minutes,
        is_active=is_active,
    )
    db.add(event_type)
    db.commit()
    db.refresh(event_type)
    return event_type


@pytest.fixture
def user_factory(db):
    return lambda username, **kwargs: make_user(db, username, **kwargs)


@pytest.fixture
def event_type_factory(db):
    return lambda user, **kwargs: make_event_type(db, user, **kwargs)


@pytest.fixture
def owner(db) -> User:
    return make_user(db, 'owner')


@pytest.fixture
def other_user(db) -> User:
    return make_user(db, 'other')


@pytest.fixture
def event_type(db, owner) -> EventType:
    return make_event_type(db, owner)


@pytest.fixture
def monday_rule(db, owner) -> AvailabilityRule:
    rule = AvailabilityRule(user_id=owner.id, day_of_week=1, start_time='09:00', end_time='17:00')
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule
