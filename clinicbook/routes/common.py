from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from clinicbook.database import ensure_booking_schema, ensure_schedule_schema
from clinicbook.scheduling.errors import (
    BookingError,
    BookingNotFound,
    BookingStateError,
    DoctorNotFound,
    FunctionRejected,
    InvalidScheduleSelection,
    SchedulePersistenceError,
    SlotUnavailable,
)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'
SLOT_UNAVAILABLE_DETAIL = 'Slot Unavailable: Time slot no longer available. Please choose another time.'


def ensure_database_ready() -> None:
    try:
        ensure_schedule_schema()
        ensure_booking_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def to_http_exception(exc: BookingError) -> HTTPException:
    if isinstance(exc, SlotUnavailable):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=SLOT_UNAVAILABLE_DETAIL)
    if isinstance(exc, (DoctorNotFound, BookingNotFound)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, (BookingStateError, InvalidScheduleSelection)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    if isinstance(exc, SchedulePersistenceError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Failed to save schedule. Your previous schedule is unchanged; please try again.',
        )
    if isinstance(exc, FunctionRejected):
        return HTTPException(status_code=exc.status_code, detail=exc.message)

    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message)
