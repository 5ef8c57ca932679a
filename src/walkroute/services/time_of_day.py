"""Normalize stored appointment times onto the planning reference day."""

from __future__ import annotations

import logging
import re
from datetime import datetime, time
from typing import Any, Optional

from ..models.domain import TimeOfDay

logger = logging.getLogger(__name__)

_CLOCK_PATTERN = re.compile(
    r"^\s*(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?\s*(?P<meridiem>[aApP][mM])?\s*$"
)


def _from_clock_string(value: str) -> Optional[TimeOfDay]:
    match = _CLOCK_PATTERN.match(value)
    if not match:
        return None
    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    second = int(match.group("second") or 0)
    meridiem = match.group("meridiem")
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12
        if meridiem.lower() == "pm":
            hour += 12
    if hour > 23 or minute > 59 or second > 59:
        return None
    return TimeOfDay.of(hour, minute, second)


def parse_time_of_day(value: Any) -> Optional[TimeOfDay]:
    """Return the clock time carried by ``value`` or ``None`` when it cannot be read.

    Accepts ``TimeOfDay``, ``datetime.time``, ``datetime.datetime`` and strings
    such as ``"09:30"``, ``"09:30:00"``, ``"9:30 AM"`` or full ISO datetimes.
    Only the time-of-day component is kept; the date is discarded.
    """
    if value is None:
        return None
    if isinstance(value, TimeOfDay):
        return value
    if isinstance(value, datetime):
        return TimeOfDay.of(value.hour, value.minute, value.second)
    if isinstance(value, time):
        return TimeOfDay.of(value.hour, value.minute, value.second)
    if not isinstance(value, str):
        logger.debug("Unsupported time value type %s", type(value).__name__)
        return None

    text = value.strip()
    if not text:
        return None
    parsed = _from_clock_string(text)
    if parsed is not None:
        return parsed
    try:
        stamp = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return TimeOfDay.of(stamp.hour, stamp.minute, stamp.second)
