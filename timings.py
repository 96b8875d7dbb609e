"""
Clock strings as returned by remote prayer-time services, and the
current/next prayer countdown shown on the main screen.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Mapping

from prayer_times import PRAYERS, format_countdown

logger = logging.getLogger(__name__)

PRAYER_NAMES = ("Fajr", "Sunrise", "Dhuhr", "Asr", "Maghrib", "Isha")

_TIME_24H_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_TIME_12H_RE = re.compile(r"^(\d{1,2}):(\d{2})\s?(AM|PM)$", re.IGNORECASE)


def is_valid_time_format(time_str: str) -> bool:
    if not isinstance(time_str, str):
        return False
    return bool(_TIME_24H_RE.match(time_str) or _TIME_12H_RE.match(time_str))


def convert_time_to_decimal(time_str: str) -> float:
    """'H:MM' or 'H:MM AM/PM' to decimal hours; 0.0 for anything unparseable."""
    if not time_str or not isinstance(time_str, str):
        return 0.0
    match = _TIME_24H_RE.match(time_str)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
    else:
        match = _TIME_12H_RE.match(time_str)
        if not match:
            return 0.0
        hours, minutes = int(match.group(1)), int(match.group(2))
        period = match.group(3).upper()
        if period == "PM" and hours != 12:
            hours += 12
        if period == "AM" and hours == 12:
            hours = 0
    return hours + minutes / 60.0


def format_api_time(time_str: str) -> str:
    """Render a remote 'H:MM' or 'H:MM AM/PM' string as 'H:MM AM/PM'."""
    if not time_str or not isinstance(time_str, str):
        return "Error"
    match = _TIME_24H_RE.match(time_str)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        period = "PM" if hours >= 12 else "AM"
        hours = hours % 12 or 12
    else:
        match = _TIME_12H_RE.match(time_str)
        if not match:
            return "Error"
        hours, minutes = int(match.group(1)), int(match.group(2))
        period = match.group(3).upper()
    if hours > 12 or minutes > 59:
        return "Error"
    return f"{hours}:{minutes:02d} {period}"


def validate_and_adjust_times(
    timings: Mapping[str, str],
    fallback: Callable[[str], str],
) -> dict[str, str]:
    """
    Keep each remote time only if it is well formed and later than the last
    accepted one; otherwise substitute fallback(prayer).

    Keys may be lower case ('fajr') or capitalised ('Fajr') as the remote
    service sends them.
    """
    validated = {}
    prev_time = -1.0
    for prayer in PRAYERS:
        time_str = timings.get(prayer) or timings.get(prayer.capitalize())
        if time_str and is_valid_time_format(time_str):
            value = convert_time_to_decimal(time_str)
            if value > prev_time:
                validated[prayer] = time_str
                prev_time = value
                continue
            logger.warning(f"Remote {prayer} time {time_str} is out of order, using fallback")
        else:
            logger.warning(f"Remote {prayer} time {time_str!r} is malformed, using fallback")
        validated[prayer] = fallback(prayer)
    return validated


@dataclass(frozen=True)
class PrayerStatus:
    current_name: str
    current_time: float
    next_name: str
    next_time: float
    remaining: float

    @property
    def countdown(self) -> str:
        return f"Next prayer in {format_countdown(self.remaining)}"


def current_and_next_prayer(times: Mapping[str, float], now_hours: float) -> PrayerStatus:
    """
    Find the prayer in progress and the next one at local decimal time now_hours.

    Before Fajr the current prayer is Isha (of the previous night); after Isha
    the next one is tomorrow's Fajr.
    """
    prayers = [(name, times.get(name.lower()) or 0.0) for name in PRAYER_NAMES]
    current = prayers[-1]
    upcoming = prayers[0]
    remaining = prayers[0][1] + 24 - now_hours
    for i, (name, value) in enumerate(prayers):
        if now_hours < value:
            upcoming = (name, value)
            current = prayers[i - 1] if i > 0 else prayers[-1]
            remaining = value - now_hours
            break
    if remaining < 0:
        remaining += 24
    return PrayerStatus(
        current_name=current[0],
        current_time=current[1],
        next_name=upcoming[0],
        next_time=upcoming[1],
        remaining=remaining,
    )
