from datetime import date

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from clinicbook.routes.availability_routes import (
    ScheduleSelectionRequest,
    get_doctor_schedule,
    get_my_schedule,
    list_doctor_slots,
    save_my_schedule,
)
from clinicbook.scheduling.slots import Slot


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('clinicbook.routes.availability_routes.ensure_database_ready', lambda: None)


def test_schedule_selection_request_rejects_unknown_weekday() -> None:
    with pytest.raises(ValidationError):
        ScheduleSelectionRequest(days={7: ['09:00']})


def test_save_my_schedule_returns_windows_and_selections(db, doctor) -> None:
    response = save_my_schedule(
        data=ScheduleSelectionRequest(days={1: ['08:00', '09:30'], 3: []}),
        doctor=doctor,
        db=db,
    )

    assert [(window.day_of_week, window.start_time, window.end_time) for window in response.windows] == [
        (1, '08:00', '10:00'),
    ]
    assert response.selections[1] == ['08:00', '08:30', '09:00', '09:30']
    assert response.selections[3] == []
    assert get_my_schedule(doctor=doctor, db=db).windows == response.windows


def test_save_my_schedule_rejects_off_boundary_time(db, doctor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        save_my_schedule(data=ScheduleSelectionRequest(days={1: ['09:15']}), doctor=doctor, db=db)

    assert exception_info.value.status_code == 400


def test_save_my_schedule_reports_failed_save(db, doctor, monkeypatch: pytest.MonkeyPatch) -> None:
    save_my_schedule(data=ScheduleSelectionRequest(days={1: ['09:00']}), doctor=doctor, db=db)
    original_commit = db.commit

    def failing_commit():
        raise OperationalError('COMMIT', {}, Exception('connection lost'))

    monkeypatch.setattr(db, 'commit', failing_commit)

    with pytest.raises(HTTPException) as exception_info:
        save_my_schedule(data=ScheduleSelectionRequest(days={2: ['10:00']}), doctor=doctor, db=db)

    assert exception_info.value.status_code == 503
    monkeypatch.setattr(db, 'commit', original_commit)
    assert [window.day_of_week for window in get_my_schedule(doctor=doctor, db=db).windows] == [1]


def test_get_doctor_schedule_returns_not_found_for_unknown_doctor(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_doctor_schedule(doctor_id=404, db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Doctor not found.'


def test_list_doctor_slots_marks_booked_times(db, doctor, patient, upcoming_monday) -> None:
    from clinicbook.scheduling.booking_guard import create_booking

    save_my_schedule(data=ScheduleSelectionRequest(days={1: ['09:00', '09:30']}), doctor=doctor, db=db)
    create_booking(
        db,
        user_id=patient.id,
        doctor_id=doctor.id,
        appointment_date=upcoming_monday,
        appointment_time='09:30',
    )

    slots = list_doctor_slots(doctor_id=doctor.id, slot_date=upcoming_monday, db=db)

    assert slots == [Slot('09:00', True), Slot('09:30', False)]


def test_list_doctor_slots_is_empty_outside_booking_window(db, doctor) -> None:
    save_my_schedule(
        data=ScheduleSelectionRequest(days={day: ['09:00'] for day in range(7)}),
        doctor=doctor,
        db=db,
    )

    assert list_doctor_slots(doctor_id=doctor.id, slot_date=date.today(), db=db) == []
