import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from scheduler.core import config
from scheduler.database import Base, engine, ensure_schema
from scheduler.models import availability, blocked_time, booking, event_type, user  # noqa: F401
from scheduler.routes import (
    auth_routes,
    availability_routes,
    blocked_time_routes,
    booking_routes,
    event_type_routes,
    public_routes,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

config.validate_runtime_config()

app = FastAPI(title='Scheduler API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Scheduler API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(event_type_routes.router, prefix='/event-types')
app.include_router(availability_routes.router, prefix='/availability')
app.include_router(blocked_time_routes.router, prefix='/blocked-times')
app.include_router(booking_routes.router, prefix='/bookings')
app.include_router(public_routes.router, prefix='/public')
