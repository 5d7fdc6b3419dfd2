from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from scheduler.core import config


def build_engine(database_url: str):
    connect_args = {'check_same_thread': False} if database_url.startswith('sqlite') else {}
    return create_engine(database_url, echo=config.SQL_ECHO, connect_args=connect_args)


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_schema_checked = False

INDEX_STATEMENTS = {
    'bookings': [
        'CREATE INDEX IF NOT EXISTS idx_bookings_user_time_range ON bookings(user_id, start_time, end_time)',
        'CREATE INDEX IF NOT EXISTS idx_bookings_event_type_start ON bookings(event_type_id, start_time)',
    ],
    'blocked_times': [
        'CREATE INDEX IF NOT EXISTS idx_blocked_times_user_time_range ON blocked_times(user_id, start_time, end_time)',
    ],
    'availability_rules': [
        'CREATE INDEX IF NOT EXISTS idx_availability_rules_user_day ON availability_rules(user_id, day_of_week)',
    ],
}


def ensure_schema(bind=None) -> None:
    global _schema_checked

    if _schema_checked and bind is None:
        return

    with _schema_lock:
        if _schema_checked and bind is None:
            return

        target = bind or engine
        existing_tables = set(inspect(target).get_table_names())

        with target.begin() as connection:
            for table_name, statements in INDEX_STATEMENTS.items():
                if table_name not in existing_tables:
                    continue
                for statement in statements:
                    connection.execute(text(statement))

        if bind is None:
            _schema_checked = True


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
