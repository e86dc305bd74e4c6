"""Persistence of a doctor's weekly availability.

A doctor's schedule is one contiguous window per weekday. Saving takes the
half-hour start times picked for each weekday and stores the envelope
``[min, max + increment)``; gaps inside the picked range are not kept, and
loading expands each window back into its full run of half-hour times.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicbook.core import config
from clinicbook.models.schedule import DoctorSchedule
from clinicbook.scheduling.clock import (
    is_slot_boundary,
    iterate_slot_times,
    normalize_clock_time,
    to_clock_time,
    to_minutes,
)
from clinicbook.scheduling.errors import InvalidScheduleSelection, SchedulePersistenceError
from clinicbook.scheduling.realtime import as_record, change_feed

logger = logging.getLogger(__name__)

WEEKDAYS = range(7)


@dataclass(frozen=True)
class WindowSpec:
    day_of_week: int
    start_time: str
    end_time: str


def collapse_selection(selected_times: Iterable[str]) -> tuple[str, str] | None:
    normalized: set[str] = set()
    for selected_time in selected_times:
        try:
            value = normalize_clock_time(selected_time)
        except ValueError as exc:
            raise InvalidScheduleSelection(str(exc)) from exc
        if not is_slot_boundary(value):
            raise InvalidScheduleSelection(
                f'Times must be on {config.SLOT_INCREMENT_MINUTES}-minute boundaries: {value}'
            )
        normalized.add(value)

    if not normalized:
        return None

    ordered = sorted(normalized)
    start_time = ordered[0]
    end_time = to_clock_time(to_minutes(ordered[-1]) + config.SLOT_INCREMENT_MINUTES)
    if to_minutes(end_time) <= to_minutes(start_time):
        return None
    return start_time, end_time


def compute_windows(selections: Mapping[int, Iterable[str]]) -> list[WindowSpec]:
    windows: list[WindowSpec] = []
    for weekday, selected_times in sorted(selections.items()):
        if weekday not in WEEKDAYS:
            raise InvalidScheduleSelection(f'Day of week must be between 0 and 6, got {weekday}.')

        window = collapse_selection(selected_times or ())
        if window is None:
            continue
        windows.append(WindowSpec(day_of_week=weekday, start_time=window[0], end_time=window[1]))

    return windows


def get_schedule(db: Session, doctor_id: int) -> list[DoctorSchedule]:
    return db.query(DoctorSchedule).filter(
        DoctorSchedule.doctor_id == doctor_id,
    ).order_by(DoctorSchedule.day_of_week.asc(), DoctorSchedule.start_time.asc()).all()


def schedule_selections(windows: Iterable[DoctorSchedule]) -> dict[int, list[str]]:
    selections: dict[int, set[str]] = {weekday: set() for weekday in WEEKDAYS}
    for window in windows:
        if not window.is_available:
            continue
        selections[window.day_of_week].update(iterate_slot_times(window.start_time, window.end_time))

    return {weekday: sorted(times) for weekday, times in selections.items()}


def save_schedule(db: Session, doctor_id: int, selections: Mapping[int, Iterable[str]]) -> list[DoctorSchedule]:
    """Replace the doctor's schedule with the windows computed from ``selections``.

    Delete and insert commit together, so a failed save leaves the previous
    schedule in place.
    """
    windows = compute_windows(selections)

    try:
        db.query(DoctorSchedule).filter(
            DoctorSchedule.doctor_id == doctor_id,
        ).delete()

        rows = [
            DoctorSchedule(
                doctor_id=doctor_id,
                day_of_week=window.day_of_week,
                start_time=window.start_time,
                end_time=window.end_time,
                is_available=True,
            )
            for window in windows
        ]
        db.add_all(rows)
        db.commit()
        for row in rows:
            db.refresh(row)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to save schedule for doctor %s', doctor_id)
        raise SchedulePersistenceError() from exc

    logger.info('Saved %d schedule windows for doctor %s', len(rows), doctor_id)
    change_feed.publish('doctor_schedules', 'REPLACE', {'doctor_id': doctor_id, 'windows': [as_record(row) for row in rows]})
    return rows
