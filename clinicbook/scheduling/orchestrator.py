"""Sequencing of booking creation and payment initiation.

One attempt moves through::

    idle -> creating -> created -> payment_pending
         -> payment_url_ready -> redirected
         -> payment_fallback  -> failed_with_pending_booking

A booking that has been created is never dropped because the payment step
failed: the attempt ends with the booking left ``pending`` for payment and a
message telling the patient to retry payment later.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from sqlalchemy.orm import Session

from clinicbook.models.booking import Booking
from clinicbook.models.doctor import Doctor
from clinicbook.schemas import BookingResponse
from clinicbook.scheduling.booking_guard import create_booking, find_active_booking
from clinicbook.scheduling.booking_lifecycle import get_user_booking
from clinicbook.scheduling.errors import (
    BookingStateError,
    DoctorNotFound,
    FunctionRejected,
    PaymentInitiationFailure,
    SlotUnavailable,
    TransportFailure,
)
from clinicbook.scheduling.gateway import FunctionGateway

logger = logging.getLogger(__name__)

PAYMENT_PENDING_MESSAGE = 'Payment pending. You can retry payment from Booking History.'


class BookingState(str, Enum):
    IDLE = 'idle'
    CREATING = 'creating'
    CREATED = 'created'
    PAYMENT_PENDING = 'payment_pending'
    PAYMENT_URL_READY = 'payment_url_ready'
    PAYMENT_FALLBACK = 'payment_fallback'
    REDIRECTED = 'redirected'
    FAILED_WITH_PENDING_BOOKING = 'failed_with_pending_booking'


@dataclass
class BookingOutcome:
    booking: BookingResponse | None = None
    payment_url: str | None = None
    message: str | None = None
    history: list[BookingState] = field(default_factory=lambda: [BookingState.IDLE])

    @property
    def state(self) -> BookingState:
        return self.history[-1]

    def advance(self, state: BookingState) -> None:
        logger.info('Booking attempt %s -> %s', self.state.value, state.value)
        self.history.append(state)


def compose_patient_notes(patient_notes: str | None, payment_method: str) -> str:
    payment_line = f"Payment method: {payment_method.replace('_', ' ')}"
    if not patient_notes:
        return payment_line
    return f'{patient_notes}\n{payment_line}'


def payment_description(doctor: Doctor | None) -> str:
    if doctor is None:
        return 'Booking fee for appointment'
    return f'Booking fee for appointment with {doctor.display_name}'


class BookingOrchestrator:
    def __init__(self, db: Session, gateway: FunctionGateway):
        self.db = db
        self.gateway = gateway

    def book_and_pay(
        self,
        *,
        user_id: int,
        doctor_id: int,
        appointment_date: date,
        appointment_time: str,
        patient_notes: str | None = None,
        payment_method: str = 'cash',
        access_token: str | None = None,
    ) -> BookingOutcome:
        doctor = self.db.get(Doctor, doctor_id)
        if doctor is None:
            raise DoctorNotFound()

        outcome = BookingOutcome()
        outcome.advance(BookingState.CREATING)
        notes = compose_patient_notes(patient_notes, payment_method)

        outcome.booking = self._create(
            user_id=user_id,
            doctor_id=doctor_id,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            patient_notes=notes,
            access_token=access_token,
        )
        outcome.advance(BookingState.CREATED)

        return self._pay(outcome, doctor, access_token)

    def retry_payment(self, booking_id: int, user_id: int, access_token: str | None = None) -> BookingOutcome:
        booking = get_user_booking(self.db, booking_id, user_id)
        if booking.status == 'cancelled' or booking.payment_status == 'paid':
            raise BookingStateError('This booking does not need a payment.')

        outcome = BookingOutcome(booking=BookingResponse.model_validate(booking))
        outcome.advance(BookingState.CREATED)
        return self._pay(outcome, self.db.get(Doctor, booking.doctor_id), access_token)

    def _create(self, *, access_token: str | None, **booking_fields) -> BookingResponse:
        payload = {
            'doctor_id': booking_fields['doctor_id'],
            'appointment_date': booking_fields['appointment_date'].isoformat(),
            'appointment_time': booking_fields['appointment_time'],
            'patient_notes': booking_fields['patient_notes'],
        }

        try:
            remote_booking = self.gateway.create_booking(payload, access_token)
        except FunctionRejected as exc:
            if not exc.is_slot_conflict:
                raise
            own_booking = self._find_own_booking(**booking_fields)
            if own_booking is None:
                raise SlotUnavailable() from exc
            logger.info('create-booking conflicted with booking %s already held by the patient', own_booking.id)
            return BookingResponse.model_validate(own_booking)
        except TransportFailure:
            logger.warning('create-booking unreachable; creating booking directly')
            return BookingResponse.model_validate(create_booking(self.db, **booking_fields))

        return BookingResponse.model_validate(remote_booking)

    def _find_own_booking(
        self,
        *,
        user_id: int,
        doctor_id: int,
        appointment_date: date,
        appointment_time: str,
        **_,
    ) -> Booking | None:
        """The active booking on the slot when it belongs to ``user_id``; a lost reply can leave one behind."""
        booking = find_active_booking(self.db, doctor_id, appointment_date, appointment_time)
        if booking is None or booking.user_id != user_id:
            return None
        return booking

    def _pay(self, outcome: BookingOutcome, doctor: Doctor | None, access_token: str | None) -> BookingOutcome:
        booking = outcome.booking
        outcome.advance(BookingState.PAYMENT_PENDING)

        try:
            outcome.payment_url = self._initiate_payment(booking, doctor, access_token)
        except PaymentInitiationFailure as exc:
            logger.warning('Payment initiation failed for booking %s: %s', booking.id, exc)
            outcome.advance(BookingState.PAYMENT_FALLBACK)
            outcome.booking = self._ensure_booking_persisted(booking)
            outcome.message = PAYMENT_PENDING_MESSAGE
            outcome.advance(BookingState.FAILED_WITH_PENDING_BOOKING)
            return outcome

        outcome.advance(BookingState.PAYMENT_URL_READY)
        outcome.advance(BookingState.REDIRECTED)
        return outcome

    def _initiate_payment(self, booking: BookingResponse, doctor: Doctor | None, access_token: str | None) -> str:
        payload = {
            'booking_id': booking.id,
            'amount': booking.booking_fee,
            'description': payment_description(doctor),
            'doctor_name': doctor.display_name if doctor is not None else '',
            'date': booking.appointment_date.isoformat(),
            'time': booking.appointment_time,
        }

        try:
            return self.gateway.create_payfast_payment(payload, access_token)
        except (TransportFailure, FunctionRejected) as exc:
            raise PaymentInitiationFailure(str(exc)) from exc

    def _ensure_booking_persisted(self, booking: BookingResponse) -> BookingResponse:
        """Keep the slot claim: create the booking directly if it is not stored locally."""
        stored = self.db.get(Booking, booking.id)
        if stored is not None:
            return BookingResponse.model_validate(stored)

        logger.warning('Booking %s not visible locally; creating it directly', booking.id)
        created = create_booking(
            self.db,
            user_id=booking.user_id,
            doctor_id=booking.doctor_id,
            appointment_date=booking.appointment_date,
            appointment_time=booking.appointment_time,
            patient_notes=booking.patient_notes,
        )
        return BookingResponse.model_validate(created)
