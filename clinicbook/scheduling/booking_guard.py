"""Write-time conflict guard for new bookings.

The pre-check below gives a friendly answer for the common case, but the
partial unique index on active (doctor, date, time) rows is what actually
prevents a double booking when two requests race past the pre-check.
"""

import logging
from datetime import date

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinicbook.models.booking import Booking
from clinicbook.models.doctor import Doctor
from clinicbook.scheduling.clock import normalize_clock_time
from clinicbook.scheduling.errors import DoctorNotFound, SlotUnavailable
from clinicbook.scheduling.fees import consume_free_credit, get_membership, quote_booking_fee
from clinicbook.scheduling.realtime import as_record, change_feed
from clinicbook.scheduling.slots import scheduled_times

logger = logging.getLogger(__name__)

ACTIVE_SLOT_INDEX = 'uq_bookings_active_slot'


def is_active_slot_collision(exc: IntegrityError) -> bool:
    # Postgres names the index; SQLite lists the indexed columns.
    message = str(exc.orig)
    return ACTIVE_SLOT_INDEX in message or 'bookings.appointment_time' in message


def find_active_booking(db: Session, doctor_id: int, appointment_date: date, appointment_time: str) -> Booking | None:
    return db.query(Booking).filter(
        Booking.doctor_id == doctor_id,
        Booking.appointment_date == appointment_date,
        Booking.appointment_time == appointment_time,
        Booking.status != 'cancelled',
    ).first()


def has_conflict(db: Session, doctor_id: int, appointment_date: date, appointment_time: str) -> bool:
    return find_active_booking(db, doctor_id, appointment_date, appointment_time) is not None


def create_booking(
    db: Session,
    *,
    user_id: int,
    doctor_id: int,
    appointment_date: date,
    appointment_time: str,
    patient_notes: str | None = None,
) -> Booking:
    try:
        appointment_time = normalize_clock_time(appointment_time)
    except ValueError as exc:
        raise SlotUnavailable('Requested time is not a valid appointment slot') from exc

    doctor = db.get(Doctor, doctor_id)
    if doctor is None:
        raise DoctorNotFound()

    if appointment_time not in scheduled_times(db, doctor_id, appointment_date):
        raise SlotUnavailable('Doctor is not available at the requested time')

    existing = find_active_booking(db, doctor_id, appointment_date, appointment_time)
    if existing is not None:
        if existing.user_id == user_id:
            # A retried create whose first attempt already committed.
            logger.info('User %s already holds booking %s; returning it', user_id, existing.id)
            return existing
        raise SlotUnavailable()

    quote = quote_booking_fee(get_membership(db, user_id))

    booking = Booking(
        user_id=user_id,
        doctor_id=doctor_id,
        appointment_date=appointment_date,
        appointment_time=appointment_time,
        status='pending',
        payment_status='pending',
        consultation_fee=doctor.consultation_fee or 0,
        booking_fee=quote.booking_fee,
        total_amount=quote.booking_fee,
        patient_notes=patient_notes,
    )

    try:
        db.add(booking)
        db.commit()
        db.refresh(booking)
    except IntegrityError as exc:
        db.rollback()
        if not is_active_slot_collision(exc):
            raise
        existing = find_active_booking(db, doctor_id, appointment_date, appointment_time)
        if existing is not None and existing.user_id == user_id:
            logger.info('User %s already holds booking %s; returning it', user_id, existing.id)
            return existing
        logger.info(
            'Booking for doctor %s at %s %s lost the race to a concurrent booking',
            doctor_id,
            appointment_date,
            appointment_time,
        )
        raise SlotUnavailable() from exc
    except SQLAlchemyError:
        db.rollback()
        raise

    if quote.consumes_free_credit:
        consume_free_credit(db, user_id)

    logger.info('Created booking %s for doctor %s at %s %s', booking.id, doctor_id, appointment_date, appointment_time)
    change_feed.publish('bookings', 'INSERT', as_record(booking))
    return booking
