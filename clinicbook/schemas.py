"""Request and response models shared by the routes and the booking core."""

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from clinicbook.core import config
from clinicbook.scheduling.clock import normalize_clock_time

PAYMENT_METHODS = ('medical_aid', 'cash', 'card')


class BookingResponse(BaseModel):
    id: int
    user_id: int
    doctor_id: int
    appointment_date: date
    appointment_time: str
    status: str
    payment_status: str
    consultation_fee: int
    booking_fee: int
    total_amount: int
    patient_notes: str | None = None
    doctor_notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class CreateBookingRequest(BaseModel):
    doctor_id: int
    appointment_date: date
    appointment_time: str
    patient_notes: str | None = None

    @field_validator('appointment_time')
    @classmethod
    def validate_appointment_time(cls, value: str) -> str:
        return normalize_clock_time(value)

    @field_validator('patient_notes')
    @classmethod
    def validate_patient_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > config.MAX_PATIENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {config.MAX_PATIENT_NOTES_LENGTH} characters or fewer.')

        return normalized


class BookAndPayRequest(CreateBookingRequest):
    payment_method: str = 'cash'

    @field_validator('payment_method')
    @classmethod
    def validate_payment_method(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in PAYMENT_METHODS:
            raise ValueError('Invalid payment method.')
        return normalized


class CreatePaymentRequest(BaseModel):
    booking_id: int
    amount: int = Field(ge=0)
    description: str
    doctor_name: str = ''
    date: date
    time: str

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return normalize_clock_time(value)


class BookingOutcomeResponse(BaseModel):
    state: str
    booking: BookingResponse
    payment_url: str | None = None
    message: str | None = None
    history: list[str] = []
