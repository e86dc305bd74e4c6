import os
from datetime import date, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from clinicbook.database import Base  # noqa: E402
from clinicbook.models.booking import Booking  # noqa: E402,F401
from clinicbook.models.doctor import Doctor  # noqa: E402
from clinicbook.models.membership import Membership  # noqa: E402
from clinicbook.models.schedule import DoctorSchedule  # noqa: E402,F401
from clinicbook.models.user import User  # noqa: E402


def next_weekday(weekday: int, today: date | None = None) -> date:
    """Next date strictly after ``today`` falling on ``weekday`` (0=Sunday)."""
    today = today or date.today()
    days_ahead = (weekday - today.isoweekday() % 7) % 7 or 7
    return today + timedelta(days=days_ahead)


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def patient(db) -> User:
    user = User(email='patient@example.com', role='patient')
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_patient(db) -> User:
    user = User(email='second.patient@example.com', role='patient')
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def doctor(db) -> Doctor:
    user = User(email='dr.mokoena@example.com', role='doctor')
    db.add(user)
    db.commit()
    db.refresh(user)

    doctor = Doctor(user_id=user.id, first_name='Thandi', last_name='Mokoena', consultation_fee=45000)
    db.add(doctor)
    db.commit()
    db.refresh(doctor)
    return doctor


@pytest.fixture
def premium_patient(db, patient) -> User:
    db.add(Membership(user_id=patient.id, membership_type='premium', is_active=True, free_bookings_remaining=1))
    db.commit()
    return patient


@pytest.fixture
def upcoming_monday() -> date:
    return next_weekday(1)
