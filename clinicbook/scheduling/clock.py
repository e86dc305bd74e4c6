"""Clock-time helpers for half-hour slot arithmetic.

Times travel as zero-padded 24-hour ``HH:MM`` strings so that string order is
time order. Weekdays use 0 = Sunday through 6 = Saturday.
"""

import re
from datetime import date

from clinicbook.core import config

CLOCK_TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)(:[0-5]\d)?$')
END_OF_DAY = '24:00'
MINUTES_PER_DAY = 24 * 60


def normalize_clock_time(value: str, allow_end_of_day: bool = False) -> str:
    """Return ``value`` as ``HH:MM``; database drivers may append seconds."""
    if not isinstance(value, str):
        raise ValueError(f'Invalid clock time: {value!r}')

    candidate = value.strip()
    if allow_end_of_day and candidate[:5] == END_OF_DAY:
        return END_OF_DAY

    if not CLOCK_TIME_PATTERN.match(candidate):
        raise ValueError(f'Invalid clock time: {value!r}')
    return candidate[:5]


def to_minutes(value: str) -> int:
    hours, minutes = normalize_clock_time(value, allow_end_of_day=True).split(':')
    return int(hours) * 60 + int(minutes)


def to_clock_time(minutes: int) -> str:
    if minutes < 0 or minutes > MINUTES_PER_DAY:
        raise ValueError(f'Minutes out of range: {minutes}')
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def is_slot_boundary(value: str) -> bool:
    return to_minutes(value) % config.SLOT_INCREMENT_MINUTES == 0


def iterate_slot_times(start_time: str, end_time: str) -> list[str]:
    """Slot starts from ``start_time`` (inclusive) to ``end_time`` (exclusive)."""
    current = to_minutes(start_time)
    end = to_minutes(end_time)
    slot_times: list[str] = []

    while current < end:
        slot_times.append(to_clock_time(current))
        current += config.SLOT_INCREMENT_MINUTES

    return slot_times


def day_of_week(value: date) -> int:
    return value.isoweekday() % 7
