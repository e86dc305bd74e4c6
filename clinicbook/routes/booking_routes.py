import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicbook.auth.dependencies import get_access_token, get_current_doctor, get_current_user, get_db
from clinicbook.core import config
from clinicbook.models.doctor import Doctor
from clinicbook.models.user import User
from clinicbook.routes.common import database_unavailable, ensure_database_ready, to_http_exception
from clinicbook.schemas import BookAndPayRequest, BookingOutcomeResponse, BookingResponse
from clinicbook.scheduling import booking_lifecycle
from clinicbook.scheduling.errors import BookingError
from clinicbook.scheduling.gateway import FunctionGateway
from clinicbook.scheduling.orchestrator import BookingOrchestrator, BookingOutcome
from clinicbook.scheduling.slots import is_within_booking_window

router = APIRouter(tags=['bookings'])

logger = logging.getLogger(__name__)


class DoctorNotesRequest(BaseModel):
    doctor_notes: str | None = None


class DoctorStatsResponse(BaseModel):
    total_bookings: int
    pending_bookings: int
    monthly_revenue: int


def get_function_gateway():
    gateway = FunctionGateway()
    try:
        yield gateway
    finally:
        gateway.close()


def _outcome_response(outcome: BookingOutcome) -> BookingOutcomeResponse:
    return BookingOutcomeResponse(
        state=outcome.state.value,
        booking=outcome.booking,
        payment_url=outcome.payment_url,
        message=outcome.message,
        history=[state.value for state in outcome.history],
    )


@router.post('', response_model=BookingOutcomeResponse, status_code=status.HTTP_201_CREATED)
def book_and_pay(
    data: BookAndPayRequest,
    current_user: User = Depends(get_current_user),
    access_token: str = Depends(get_access_token),
    gateway: FunctionGateway = Depends(get_function_gateway),
    db: Session = Depends(get_db),
):
    if not is_within_booking_window(data.appointment_date):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Appointments can be booked from tomorrow up to {config.BOOKING_MAX_DAYS_AHEAD} days ahead.',
        )

    ensure_database_ready()

    orchestrator = BookingOrchestrator(db, gateway)
    try:
        outcome = orchestrator.book_and_pay(
            user_id=current_user.id,
            doctor_id=data.doctor_id,
            appointment_date=data.appointment_date,
            appointment_time=data.appointment_time,
            patient_notes=data.patient_notes,
            payment_method=data.payment_method,
            access_token=access_token,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Booking for user %s failed', current_user.id)
        raise database_unavailable() from exc

    return _outcome_response(outcome)


@router.get('/me', response_model=list[BookingResponse])
def list_my_bookings(
    view: str = Query(default='all'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if view not in booking_lifecycle.BOOKING_VIEWS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid booking view.')

    ensure_database_ready()

    try:
        return booking_lifecycle.list_user_bookings(db, current_user.id, view)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/{booking_id}/cancel', response_model=BookingResponse)
def cancel_my_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return booking_lifecycle.cancel_booking(db, booking_id, current_user.id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{booking_id}/retry-payment', response_model=BookingOutcomeResponse)
def retry_payment(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    access_token: str = Depends(get_access_token),
    gateway: FunctionGateway = Depends(get_function_gateway),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        outcome = BookingOrchestrator(db, gateway).retry_payment(booking_id, current_user.id, access_token)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return _outcome_response(outcome)


@router.get('/doctor/pending', response_model=list[BookingResponse])
def list_pending_bookings(
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return booking_lifecycle.list_pending_for_doctor(db, doctor.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/doctor/upcoming', response_model=list[BookingResponse])
def list_upcoming_bookings(
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return booking_lifecycle.list_upcoming_for_doctor(db, doctor.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/doctor/stats', response_model=DoctorStatsResponse)
def get_doctor_stats(
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return booking_lifecycle.doctor_stats(db, doctor.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def _doctor_transition(transition, booking_id: int, doctor: Doctor, db: Session, **kwargs):
    ensure_database_ready()

    try:
        return transition(db, booking_id, doctor.id, **kwargs)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{booking_id}/confirm', response_model=BookingResponse)
def confirm_booking(
    booking_id: int,
    data: DoctorNotesRequest | None = None,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    doctor_notes = data.doctor_notes if data else None
    return _doctor_transition(booking_lifecycle.confirm_booking, booking_id, doctor, db, doctor_notes=doctor_notes)


@router.post('/{booking_id}/reject', response_model=BookingResponse)
def reject_booking(
    booking_id: int,
    data: DoctorNotesRequest | None = None,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    doctor_notes = data.doctor_notes if data else None
    return _doctor_transition(booking_lifecycle.reject_booking, booking_id, doctor, db, doctor_notes=doctor_notes)


@router.post('/{booking_id}/complete', response_model=BookingResponse)
def complete_booking(
    booking_id: int,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    return _doctor_transition(booking_lifecycle.complete_booking, booking_id, doctor, db)
