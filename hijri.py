"""
Tabular (arithmetical) Islamic calendar.

A 30-year cycle of 10631 days with 11 leap years; months alternate between
30 and 29 days and Dhu al-Hijjah gains a day in leap years. This can differ
by a day or two from the sighted calendar and is used only when the remote
Hijri service is unavailable.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from prayer_times import julian_day

logger = logging.getLogger(__name__)

ISLAMIC_EPOCH = 1948439.5
DAYS_IN_CYCLE = 10631
LEAP_YEARS_IN_CYCLE = frozenset({2, 5, 7, 10, 13, 16, 18, 21, 24, 26, 29})

MONTH_NAMES = (
    "Muharram", "Safar", "Rabi al-Awwal", "Rabi al-Thani",
    "Jumada al-Awwal", "Jumada al-Thani", "Rajab", "Shaban",
    "Ramadan", "Shawwal", "Dhu al-Qidah", "Dhu al-Hijjah",
)


@dataclass(frozen=True)
class HijriDate:
    day: int
    month: int  # 1-based
    year: int
    month_label: str | None = None

    @property
    def month_name(self) -> str:
        return self.month_label or MONTH_NAMES[self.month - 1]

    def __str__(self) -> str:
        return f"{self.day} {self.month_name} {self.year} AH"


def _month_lengths(leap: bool) -> list[int]:
    lengths = [30 if i % 2 == 0 else 29 for i in range(12)]
    if leap:
        lengths[11] = 30
    return lengths


def hijri_from_gregorian(day: date | datetime) -> HijriDate:
    if isinstance(day, datetime) and day.tzinfo is not None:
        day = day.astimezone(timezone.utc)
    jd = julian_day(day.year, day.month, day.day) - 0.5
    days_since_epoch = int(jd - ISLAMIC_EPOCH) + 1
    cycles, days_left = divmod(days_since_epoch, DAYS_IN_CYCLE)

    year_in_cycle = 30
    for y in range(1, 31):
        days_in_year = 355 if y in LEAP_YEARS_IN_CYCLE else 354
        if days_left < days_in_year:
            year_in_cycle = y
            break
        days_left -= days_in_year

    month = 1
    for i, length in enumerate(_month_lengths(year_in_cycle in LEAP_YEARS_IN_CYCLE)):
        if days_left < length:
            month = i + 1
            break
        days_left -= length

    return HijriDate(day=days_left + 1, month=month, year=cycles * 30 + year_in_cycle)


def format_hijri(day: date | datetime) -> str:
    """'D Month YYYY AH', or a placeholder when the date cannot be converted."""
    try:
        return str(hijri_from_gregorian(day))
    except (AttributeError, TypeError, ValueError) as exc:
        logger.error(f"Error calculating Hijri date: {exc}")
        return "Hijri Date Unavailable"
