from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicbook.auth.dependencies import get_current_doctor, get_db
from clinicbook.models.doctor import Doctor
from clinicbook.routes.common import database_unavailable, ensure_database_ready, to_http_exception
from clinicbook.scheduling.errors import BookingError
from clinicbook.scheduling.schedule_store import WEEKDAYS, get_schedule, save_schedule, schedule_selections
from clinicbook.scheduling.slots import available_slots, is_within_booking_window

router = APIRouter(tags=['availability'])


class SlotResponse(BaseModel):
    time: str
    available: bool

    class Config:
        from_attributes = True


class ScheduleWindowResponse(BaseModel):
    id: int
    doctor_id: int
    day_of_week: int
    start_time: str
    end_time: str
    is_available: bool

    class Config:
        from_attributes = True


class ScheduleSelectionRequest(BaseModel):
    days: dict[int, list[str]]

    @field_validator('days')
    @classmethod
    def validate_days(cls, value: dict[int, list[str]]) -> dict[int, list[str]]:
        invalid_days = [day for day in value if day not in WEEKDAYS]
        if invalid_days:
            raise ValueError('Day of week must be between 0 (Sunday) and 6 (Saturday).')
        return value


class ScheduleResponse(BaseModel):
    doctor_id: int
    windows: list[ScheduleWindowResponse]
    selections: dict[int, list[str]]


def _schedule_response(doctor_id: int, windows) -> ScheduleResponse:
    return ScheduleResponse(
        doctor_id=doctor_id,
        windows=[ScheduleWindowResponse.model_validate(window) for window in windows],
        selections=schedule_selections(windows),
    )


@router.get('/doctors/{doctor_id}/slots', response_model=list[SlotResponse])
def list_doctor_slots(
    doctor_id: int,
    slot_date: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    if not is_within_booking_window(slot_date):
        return []

    ensure_database_ready()

    try:
        return available_slots(db, doctor_id, slot_date)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/doctors/{doctor_id}/schedule', response_model=ScheduleResponse)
def get_doctor_schedule(doctor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        if db.get(Doctor, doctor_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Doctor not found.')
        return _schedule_response(doctor_id, get_schedule(db, doctor_id))
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/schedule', response_model=ScheduleResponse)
def get_my_schedule(
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return _schedule_response(doctor.id, get_schedule(db, doctor.id))
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/schedule', response_model=ScheduleResponse)
def save_my_schedule(
    data: ScheduleSelectionRequest,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        windows = save_schedule(db, doctor.id, data.days)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return _schedule_response(doctor.id, windows)
