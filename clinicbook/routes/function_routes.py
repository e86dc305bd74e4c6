"""Server side of the remote functions called through the function gateway.

Responses use the ``{success, ...}`` envelope the gateway unwraps, so errors
are returned as JSON bodies rather than FastAPI's ``{detail}`` shape.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicbook.auth.dependencies import get_current_user, get_db
from clinicbook.models.doctor import Doctor
from clinicbook.models.user import User
from clinicbook.routes.common import DATABASE_UNAVAILABLE_DETAIL, ensure_database_ready
from clinicbook.schemas import BookingResponse, CreateBookingRequest, CreatePaymentRequest
from clinicbook.scheduling import payfast
from clinicbook.scheduling.booking_guard import create_booking
from clinicbook.scheduling.booking_lifecycle import get_user_booking
from clinicbook.scheduling.errors import BookingNotFound, DoctorNotFound, SlotUnavailable

router = APIRouter(tags=['functions'])

logger = logging.getLogger(__name__)


def _failure(status_code: int, error: str, code: str | None = None) -> JSONResponse:
    body = {'success': False, 'error': error}
    if code:
        body['code'] = code
    return JSONResponse(status_code=status_code, content=body)


@router.post('/create-booking')
def create_booking_function(
    data: CreateBookingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        booking = create_booking(
            db,
            user_id=current_user.id,
            doctor_id=data.doctor_id,
            appointment_date=data.appointment_date,
            appointment_time=data.appointment_time,
            patient_notes=data.patient_notes,
        )
    except SlotUnavailable as exc:
        return _failure(status.HTTP_409_CONFLICT, exc.message, SlotUnavailable.code)
    except DoctorNotFound as exc:
        return _failure(status.HTTP_404_NOT_FOUND, exc.message)
    except SQLAlchemyError:
        db.rollback()
        logger.exception('create-booking failed for user %s', current_user.id)
        return _failure(status.HTTP_503_SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_DETAIL)

    return {'success': True, 'booking': jsonable_encoder(BookingResponse.model_validate(booking))}


@router.post('/create-payfast-payment')
def create_payfast_payment_function(
    data: CreatePaymentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        booking = get_user_booking(db, data.booking_id, current_user.id)
    except BookingNotFound as exc:
        return _failure(status.HTTP_404_NOT_FOUND, exc.message)
    except SQLAlchemyError:
        logger.exception('create-payfast-payment failed for booking %s', data.booking_id)
        return _failure(status.HTTP_503_SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_DETAIL)

    if booking.status == 'cancelled' or booking.payment_status == 'paid':
        return _failure(status.HTTP_400_BAD_REQUEST, 'This booking does not need a payment.')
    if data.amount != booking.booking_fee:
        return _failure(status.HTTP_400_BAD_REQUEST, 'Payment amount does not match the booking fee.')

    doctor = db.get(Doctor, booking.doctor_id)
    payment_url = payfast.build_payment_url(
        booking_id=booking.id,
        amount_cents=booking.booking_fee,
        description=data.description,
        doctor_name=data.doctor_name or (doctor.display_name if doctor else ''),
        appointment_date=booking.appointment_date,
        appointment_time=booking.appointment_time,
    )

    return {'success': True, 'payment_url': payment_url}
