import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL")

engine = create_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_schedule_schema_checked = False
_booking_schema_checked = False

ACTIVE_BOOKING_PREDICATE = "status <> 'cancelled'"


def ensure_schedule_schema(bind=None) -> None:
    global _schedule_schema_checked

    if _schedule_schema_checked:
        return

    with _schema_lock:
        if _schedule_schema_checked:
            return

        bind = bind or engine
        inspector = inspect(bind)

        if 'doctor_schedules' not in inspector.get_table_names():
            _schedule_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('doctor_schedules')}
        migration_steps = [
            ('is_available', 'ALTER TABLE doctor_schedules ADD COLUMN is_available BOOLEAN DEFAULT TRUE'),
        ]

        with bind.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_doctor_schedules_doctor_day '
                    'ON doctor_schedules(doctor_id, day_of_week)'
                )
            )

        _schedule_schema_checked = True


def ensure_booking_schema(bind=None) -> None:
    global _booking_schema_checked

    if _booking_schema_checked:
        return

    with _schema_lock:
        if _booking_schema_checked:
            return

        bind = bind or engine
        inspector = inspect(bind)

        if 'bookings' not in inspector.get_table_names():
            _booking_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('bookings')}
        migration_steps = [
            ('payment_status', "ALTER TABLE bookings ADD COLUMN payment_status VARCHAR DEFAULT 'pending'"),
            ('doctor_notes', 'ALTER TABLE bookings ADD COLUMN doctor_notes VARCHAR'),
            ('updated_at', 'ALTER TABLE bookings ADD COLUMN updated_at TIMESTAMP'),
        ]

        with bind.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            # The booking table is the sole arbiter of slot occupancy.
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_bookings_active_slot '
                    'ON bookings(doctor_id, appointment_date, appointment_time) '
                    f'WHERE {ACTIVE_BOOKING_PREDICATE}'
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_bookings_user_created ON bookings(user_id, created_at)')
            )

        _booking_schema_checked = True
