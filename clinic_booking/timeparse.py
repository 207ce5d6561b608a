"""Parsing and formatting of time-of-day values.

The backend and older screens hand us times in many shapes ("9:00 AM", "09:00:00",
"14:30", a bare hour, or an [hour, minute] pair). Everything is normalized into a
24-hour TimeOfDay. Unrecognized input falls back to DEFAULT_TIME rather than raising.
"""

import logging
import re
from typing import List, Optional, Sequence, Tuple

from clinic_booking import config
from clinic_booking.models import TimeOfDay

logger = logging.getLogger(__name__)

DEFAULT_TIME = TimeOfDay(hours=config.DEFAULT_TIME_HOURS, minutes=config.DEFAULT_TIME_MINUTES)

TimeInput = str | Sequence[int] | None

_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("HH:mm:ss", re.compile(r"^(\d{1,2}):(\d{2}):(\d{2})$")),
    ("HH:mm", re.compile(r"^(\d{2}):(\d{2})$")),
    ("H:mm", re.compile(r"^(\d):(\d{2})$")),
    ("H:m", re.compile(r"^(\d{1,2}):(\d)$")),
    ("H", re.compile(r"^(\d{1,2})$")),
]
_MERIDIEM = re.compile(r"^(\d{1,2})(?::(\d{2}))?(AM|PM)$", re.IGNORECASE)


def _build(hours: int, minutes: int) -> Optional[TimeOfDay]:
    if 0 <= hours <= 23 and 0 <= minutes <= 59:
        return TimeOfDay(hours=hours, minutes=minutes)
    return None


def _from_pair(value: Sequence) -> Optional[TimeOfDay]:
    if isinstance(value, (str, bytes)) or len(value) < 2:
        return None
    try:
        return _build(int(value[0]), int(value[1]))
    except (TypeError, ValueError):
        return None


def _from_meridiem(clean: str) -> Optional[TimeOfDay]:
    match = _MERIDIEM.match(clean)
    if not match:
        return None
    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    if not 1 <= hours <= 12:
        return None
    is_pm = match.group(3).upper() == "PM"
    if is_pm and hours != 12:
        hours += 12
    elif not is_pm and hours == 12:
        hours = 0
    return _build(hours, minutes)


def parse(value: TimeInput) -> TimeOfDay:
    """Parses any supported time representation into a 24-hour TimeOfDay.

    Patterns are tried in a fixed order: [hour, minute] pair, HH:mm:ss, HH:mm, H:mm,
    H:m, bare hour, then AM/PM-suffixed times. The first match wins.

    Returns:
        The parsed time, or DEFAULT_TIME (09:00) for empty or unrecognized input.
    """
    if value is None or value == "":
        logger.debug("Empty time value, using default")
        return DEFAULT_TIME

    if not isinstance(value, str):
        parsed = _from_pair(value) if isinstance(value, Sequence) else None
        if parsed is None:
            logger.debug(f"Unsupported time value {value!r}, using default")
            return DEFAULT_TIME
        return parsed

    clean = re.sub(r"\s+", "", value)
    for name, pattern in _PATTERNS:
        match = pattern.match(clean)
        if match:
            hours = int(match.group(1))
            minutes = int(match.group(2)) if pattern.groups >= 2 else 0
            parsed = _build(hours, minutes)
            if parsed is not None:
                return parsed
            logger.debug(f"Time {value!r} matched {name} but is out of range, using default")
            return DEFAULT_TIME

    parsed = _from_meridiem(clean)
    if parsed is not None:
        return parsed

    logger.debug(f"No time format matched {value!r}, using default")
    return DEFAULT_TIME


def format_12h(time: TimeOfDay) -> str:
    """Formats a time for display, e.g. "2:30 PM" or "12:05 AM"."""
    suffix = "PM" if time.hours >= 12 else "AM"
    hour = time.hours % 12 or 12
    return f"{hour}:{time.minutes:02d} {suffix}"


def to_api_string(time: TimeOfDay) -> str:
    """Formats a time as HH:mm for API submission."""
    return f"{time.hours:02d}:{time.minutes:02d}"


def slot_start(slot_label: str | None) -> TimeOfDay:
    """Parses the start time of a slot label such as "10:00AM - 10:30AM"."""
    if not slot_label:
        return DEFAULT_TIME
    return parse(slot_label.split("-")[0])


def format_slot_range(start: TimeInput, end: TimeInput) -> str:
    """Renders a slot label in the backend's "09:00AM - 09:30AM" style."""

    def _label(time: TimeOfDay) -> str:
        suffix = "PM" if time.hours >= 12 else "AM"
        return f"{time.hours % 12 or 12:02d}:{time.minutes:02d}{suffix}"

    return f"{_label(parse(start))} - {_label(parse(end))}"
