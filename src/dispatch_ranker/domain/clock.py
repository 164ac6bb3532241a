"""Time-of-day helpers shared by validation, estimation and rendering."""

from __future__ import annotations

import re
from datetime import date, time

from ..exceptions import InvalidTimeError

_HHMM_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*$")


def parse_time_of_day(text: str) -> time:
    """Parse `HH:MM` (optionally `HH:MM:SS`) into a `time`."""
    match = _HHMM_RE.match(text)
    if match is None:
        raise InvalidTimeError(text)
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InvalidTimeError(text)
    return time(hour, minute)


def format_time_of_day(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def time_from_minutes(minutes: int) -> time:
    """Build a time from minutes after midnight, clamped to the same day."""
    minutes = max(0, min(minutes, 23 * 60 + 59))
    return time(minutes // 60, minutes % 60)


def day_name(value: date) -> str:
    return value.strftime("%A")
