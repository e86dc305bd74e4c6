from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from sqlalchemy.orm import Session

from clinicbook.core import config
from clinicbook.models.booking import Booking
from clinicbook.models.schedule import DoctorSchedule
from clinicbook.scheduling.clock import day_of_week, iterate_slot_times, normalize_clock_time


@dataclass(frozen=True)
class Slot:
    time: str
    available: bool


def booking_window(today: date | None = None) -> tuple[date, date]:
    today = today or date.today()
    return (
        today + timedelta(days=config.BOOKING_MIN_DAYS_AHEAD),
        today + timedelta(days=config.BOOKING_MAX_DAYS_AHEAD),
    )


def is_within_booking_window(on_date: date, today: date | None = None) -> bool:
    earliest, latest = booking_window(today)
    return earliest <= on_date <= latest


def get_schedule_windows(db: Session, doctor_id: int, on_date: date) -> list[DoctorSchedule]:
    return db.query(DoctorSchedule).filter(
        DoctorSchedule.doctor_id == doctor_id,
        DoctorSchedule.day_of_week == day_of_week(on_date),
        DoctorSchedule.is_available.is_(True),
    ).order_by(DoctorSchedule.id.asc()).all()


def get_taken_times(db: Session, doctor_id: int, on_date: date) -> set[str]:
    rows = db.query(Booking.appointment_time).filter(
        Booking.doctor_id == doctor_id,
        Booking.appointment_date == on_date,
        Booking.status != 'cancelled',
    ).all()
    return {normalize_clock_time(appointment_time) for (appointment_time,) in rows}


def derive_slots(windows: Iterable, taken_times: set[str]) -> list[Slot]:
    """Expand schedule windows into half-hour slots marked against taken times.

    Overlapping windows collapse to one slot per time; the window processed
    last decides the flag.
    """
    slots_by_time: dict[str, bool] = {}
    for window in windows:
        for slot_time in iterate_slot_times(window.start_time, window.end_time):
            slots_by_time[slot_time] = slot_time not in taken_times

    return [Slot(time=slot_time, available=available) for slot_time, available in sorted(slots_by_time.items())]


def available_slots(db: Session, doctor_id: int, on_date: date) -> list[Slot]:
    windows = get_schedule_windows(db, doctor_id, on_date)
    if not windows:
        return []

    return derive_slots(windows, get_taken_times(db, doctor_id, on_date))


def scheduled_times(db: Session, doctor_id: int, on_date: date) -> set[str]:
    return {slot.time for slot in derive_slots(get_schedule_windows(db, doctor_id, on_date), set())}
