import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from clinicbook.core import config
from clinicbook.database import Base, engine, ensure_booking_schema, ensure_schedule_schema
from clinicbook.models import booking, doctor, membership, schedule, user  # noqa: F401  registers tables
from clinicbook.routes import (
    availability_routes,
    booking_routes,
    function_routes,
    payment_routes,
    realtime_routes,
)

config.validate_runtime_config()

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_schedule_schema()
        ensure_booking_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')


@app.get('/')
def root():
    return {'status': 'Clinic Booking API Running'}


app.include_router(availability_routes.router, prefix='/availability')
app.include_router(booking_routes.router, prefix='/bookings')
# Served on both the primary and the fallback path of the function gateway.
app.include_router(function_routes.router, prefix='/functions/v1')
app.include_router(function_routes.router, prefix='/functions')
app.include_router(payment_routes.router, prefix='/payments')
app.include_router(realtime_routes.router, prefix='/realtime')
