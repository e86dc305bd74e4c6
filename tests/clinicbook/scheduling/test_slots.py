from datetime import date
from types import SimpleNamespace

from clinicbook.models.booking import Booking
from clinicbook.models.schedule import DoctorSchedule
from clinicbook.scheduling.slots import (
    Slot,
    available_slots,
    booking_window,
    derive_slots,
    is_within_booking_window,
)

MONDAY = date(2026, 1, 5)


def _window(start_time: str, end_time: str) -> SimpleNamespace:
    return SimpleNamespace(start_time=start_time, end_time=end_time)


def test_derive_slots_marks_taken_times_unavailable() -> None:
    slots = derive_slots([_window('08:00', '10:00')], {'09:00'})

    assert slots == [
        Slot(time='08:00', available=True),
        Slot(time='08:30', available=True),
        Slot(time='09:00', available=False),
        Slot(time='09:30', available=True),
    ]


def test_derive_slots_deduplicates_overlapping_windows_in_time_order() -> None:
    slots = derive_slots([_window('10:00', '11:00'), _window('09:00', '10:30')], set())

    assert [slot.time for slot in slots] == ['09:00', '09:30', '10:00', '10:30']


def test_derive_slots_zero_length_window_produces_nothing() -> None:
    assert derive_slots([_window('09:00', '09:00')], set()) == []


def test_booking_window_runs_from_tomorrow_to_thirty_days_ahead() -> None:
    earliest, latest = booking_window(date(2026, 1, 1))

    assert earliest == date(2026, 1, 2)
    assert latest == date(2026, 1, 31)
    assert not is_within_booking_window(date(2026, 1, 1), today=date(2026, 1, 1))
    assert is_within_booking_window(date(2026, 1, 31), today=date(2026, 1, 1))
    assert not is_within_booking_window(date(2026, 2, 1), today=date(2026, 1, 1))


def test_available_slots_is_empty_when_doctor_is_closed(db, doctor) -> None:
    assert available_slots(db, doctor.id, MONDAY) == []


def test_available_slots_ignores_cancelled_bookings_and_unavailable_windows(db, doctor, patient) -> None:
    db.add_all([
        DoctorSchedule(doctor_id=doctor.id, day_of_week=1, start_time='08:00', end_time='09:30', is_available=True),
        DoctorSchedule(doctor_id=doctor.id, day_of_week=2, start_time='08:00', end_time='17:00', is_available=False),
        Booking(
            user_id=patient.id,
            doctor_id=doctor.id,
            appointment_date=MONDAY,
            appointment_time='08:00',
            status='cancelled',
        ),
        Booking(
            user_id=patient.id,
            doctor_id=doctor.id,
            appointment_date=MONDAY,
            appointment_time='08:30',
            status='confirmed',
        ),
    ])
    db.commit()

    slots = available_slots(db, doctor.id, MONDAY)

    assert slots == [
        Slot(time='08:00', available=True),
        Slot(time='08:30', available=False),
        Slot(time='09:00', available=True),
    ]
    assert available_slots(db, doctor.id, date(2026, 1, 6)) == []


def test_available_slots_is_repeatable_without_writes(db, doctor) -> None:
    db.add(DoctorSchedule(doctor_id=doctor.id, day_of_week=1, start_time='13:00', end_time='15:00'))
    db.commit()

    assert available_slots(db, doctor.id, MONDAY) == available_slots(db, doctor.id, MONDAY)
