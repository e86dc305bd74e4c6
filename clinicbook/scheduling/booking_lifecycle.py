import logging
from datetime import date, datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinicbook.models.booking import PAYMENT_STATUSES, Booking
from clinicbook.scheduling.errors import BookingNotFound, BookingStateError
from clinicbook.scheduling.realtime import as_record, change_feed

logger = logging.getLogger(__name__)

BOOKING_VIEWS = ('all', 'upcoming', 'past', 'cancelled')


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise BookingNotFound()
    return booking


def get_user_booking(db: Session, booking_id: int, user_id: int) -> Booking:
    booking = get_booking(db, booking_id)
    if booking.user_id != user_id:
        raise BookingNotFound()
    return booking


def _transition(db: Session, booking: Booking, **changes) -> Booking:
    for attribute, value in changes.items():
        setattr(booking, attribute, value)
    db.commit()
    db.refresh(booking)
    change_feed.publish('bookings', 'UPDATE', as_record(booking))
    return booking


def cancel_booking(db: Session, booking_id: int, user_id: int, today: date | None = None) -> Booking:
    today = today or date.today()
    booking = get_user_booking(db, booking_id, user_id)

    if booking.status != 'pending':
        raise BookingStateError('Only pending bookings can be cancelled.')
    if booking.appointment_date <= today:
        raise BookingStateError('Bookings can only be cancelled before the appointment date.')

    logger.info('User %s cancelled booking %s', user_id, booking_id)
    return _transition(db, booking, status='cancelled')


def _get_doctor_booking(db: Session, booking_id: int, doctor_id: int) -> Booking:
    booking = get_booking(db, booking_id)
    if booking.doctor_id != doctor_id:
        raise BookingNotFound()
    return booking


def confirm_booking(db: Session, booking_id: int, doctor_id: int, doctor_notes: str | None = None) -> Booking:
    booking = _get_doctor_booking(db, booking_id, doctor_id)
    if booking.status != 'pending':
        raise BookingStateError('Only pending bookings can be approved.')

    changes = {'status': 'confirmed'}
    if doctor_notes is not None:
        changes['doctor_notes'] = doctor_notes
    return _transition(db, booking, **changes)


def reject_booking(db: Session, booking_id: int, doctor_id: int, doctor_notes: str | None = None) -> Booking:
    booking = _get_doctor_booking(db, booking_id, doctor_id)
    if booking.status != 'pending':
        raise BookingStateError('Only pending bookings can be rejected.')

    changes = {'status': 'cancelled'}
    if doctor_notes is not None:
        changes['doctor_notes'] = doctor_notes
    return _transition(db, booking, **changes)


def complete_booking(db: Session, booking_id: int, doctor_id: int, today: date | None = None) -> Booking:
    today = today or date.today()
    booking = _get_doctor_booking(db, booking_id, doctor_id)

    if booking.status != 'confirmed':
        raise BookingStateError('Only confirmed bookings can be completed.')
    if booking.appointment_date > today:
        raise BookingStateError('Bookings can only be completed once the appointment date has passed.')

    return _transition(db, booking, status='completed')


def record_payment(db: Session, booking_id: int, payment_status: str) -> Booking:
    if payment_status not in PAYMENT_STATUSES:
        raise ValueError(f'Unknown payment status: {payment_status}')

    booking = get_booking(db, booking_id)
    if booking.payment_status == 'paid':
        # Payment notifications can be redelivered; a paid booking stays paid.
        return booking

    logger.info('Booking %s payment status %s -> %s', booking_id, booking.payment_status, payment_status)
    return _transition(db, booking, payment_status=payment_status)


def list_user_bookings(db: Session, user_id: int, view: str = 'all', today: date | None = None) -> list[Booking]:
    if view not in BOOKING_VIEWS:
        raise ValueError(f'Unknown booking view: {view}')

    today = today or date.today()
    query = db.query(Booking).filter(Booking.user_id == user_id)

    if view == 'upcoming':
        query = query.filter(Booking.appointment_date >= today, Booking.status != 'cancelled')
    elif view == 'past':
        query = query.filter((Booking.appointment_date < today) | (Booking.status == 'completed'))
    elif view == 'cancelled':
        query = query.filter(Booking.status == 'cancelled')

    return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()


def list_pending_for_doctor(db: Session, doctor_id: int) -> list[Booking]:
    return db.query(Booking).filter(
        Booking.doctor_id == doctor_id,
        Booking.status == 'pending',
    ).order_by(Booking.created_at.asc(), Booking.id.asc()).all()


def list_upcoming_for_doctor(db: Session, doctor_id: int, today: date | None = None) -> list[Booking]:
    today = today or date.today()
    return db.query(Booking).filter(
        Booking.doctor_id == doctor_id,
        Booking.appointment_date >= today,
        Booking.status != 'cancelled',
    ).order_by(Booking.appointment_date.asc(), Booking.appointment_time.asc()).all()


def doctor_stats(db: Session, doctor_id: int, now: datetime | None = None) -> dict[str, int]:
    now = now or datetime.now()
    month_start = datetime(now.year, now.month, 1)

    total_bookings = db.query(func.count(Booking.id)).filter(Booking.doctor_id == doctor_id).scalar() or 0
    pending_bookings = db.query(func.count(Booking.id)).filter(
        Booking.doctor_id == doctor_id,
        Booking.status == 'pending',
    ).scalar() or 0
    monthly_revenue = db.query(func.coalesce(func.sum(Booking.total_amount), 0)).filter(
        Booking.doctor_id == doctor_id,
        Booking.status == 'completed',
        Booking.created_at >= month_start,
    ).scalar() or 0

    return {
        'total_bookings': int(total_bookings),
        'pending_bookings': int(pending_bookings),
        'monthly_revenue': int(monthly_revenue),
    }
