"""
Prayer times calculation using approximate solar coordinates (USNO formulas).

Six times are produced per day: Fajr, Sunrise, Dhuhr, Asr, Maghrib and Isha, as
decimal hours in local civil time. Twilight angles come from a small table of
calculation methods; the Asr shadow factor comes from the madhab.
"""

import logging
import math
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping, NamedTuple, Union

logger = logging.getLogger(__name__)

J2000 = 2451545.0

PRAYERS = ("fajr", "sunrise", "dhuhr", "asr", "maghrib", "isha")

# Offsets (hours from solar noon) used when the sun never reaches the angle.
FAJR_FALLBACK = 1.5
ISHA_FALLBACK = 1.5
ASR_FALLBACK = 2.0


class CalculationMethod(Enum):
    MWL = "MWL"
    ISNA = "ISNA"
    EGYPT = "Egypt"
    MAKKAH = "Makkah"
    KARACHI = "Karachi"
    TEHRAN = "Tehran"
    DEFAULT = "Default"

    @classmethod
    def parse(cls, name: "str | CalculationMethod | None") -> "CalculationMethod":
        """Resolve an exact method name such as "MWL"; anything else becomes DEFAULT."""
        if isinstance(name, cls):
            return name
        for member in cls:
            if member is not cls.DEFAULT and member.value == name:
                return member
        return cls.DEFAULT


class Madhab(Enum):
    HANAFI = "Hanafi"
    STANDARD = "Standard"

    @classmethod
    def parse(cls, name: "str | Madhab | None") -> "Madhab":
        if isinstance(name, cls):
            return name
        if name == "Hanafi":
            return cls.HANAFI
        return cls.STANDARD

    @property
    def asr_factor(self) -> int:
        """Shadow length multiplier: 2 for Hanafi, 1 otherwise."""
        return 2 if self is Madhab.HANAFI else 1


class MethodAngles(NamedTuple):
    fajr_angle: float
    isha_angle: float


# Makkah's 90 is a literal angle here, not a fixed interval after Maghrib.
METHOD_ANGLES: Mapping[CalculationMethod, MethodAngles] = MappingProxyType({
    CalculationMethod.MWL: MethodAngles(18.0, 17.0),
    CalculationMethod.ISNA: MethodAngles(15.0, 15.0),
    CalculationMethod.EGYPT: MethodAngles(19.5, 17.5),
    CalculationMethod.MAKKAH: MethodAngles(18.5, 90.0),
    CalculationMethod.KARACHI: MethodAngles(18.0, 18.0),
    CalculationMethod.TEHRAN: MethodAngles(17.7, 14.0),
    CalculationMethod.DEFAULT: MethodAngles(18.0, 18.0),
})


@dataclass(frozen=True)
class PrayerTimeSet:
    """Six prayer times as decimal hours in [0, 24)."""

    fajr: float
    sunrise: float
    dhuhr: float
    asr: float
    maghrib: float
    isha: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)

    def items(self) -> Iterator[tuple[str, float]]:
        for name in PRAYERS:
            yield name, getattr(self, name)


@dataclass(frozen=True)
class Unavailable:
    """Marker returned when the times could not be calculated."""

    reason: str

    def as_dict(self) -> dict[str, float]:
        return {name: 0.0 for name in PRAYERS}


CalculationResult = Union[PrayerTimeSet, Unavailable]


def _deg2rad(d: float) -> float:
    return d * math.pi / 180.0


def _rad2deg(r: float) -> float:
    return r * 180.0 / math.pi


def _normalize_hour_24(hours: float) -> float:
    """Normalize hour to [0, 24)."""
    return ((hours % 24.0) + 24.0) % 24.0


wrap_hours = _normalize_hour_24


def decimal_hour_to_hhmm(h: float) -> str:
    """Convert decimal hours (0–24) to 'HH:MM' 24h format."""
    h = _normalize_hour_24(h)
    hour = int(math.floor(h))
    minute = int(round((h - hour) * 60))
    if minute >= 60:
        minute = 0
        hour += 1
    if hour >= 24:
        hour = 0
    return f"{hour:02d}:{minute:02d}"


def julian_day(year: int, month: int, day: int) -> int:
    """Julian Day Number of a proleptic Gregorian date."""
    a = (14 - month) // 12
    y = year + 4800 - a
    m = month + 12 * a - 3
    return day + (153 * m + 2) // 5 + 365 * y + y // 4 - y // 100 + y // 400 - 32045


def _ecliptic(d: float) -> tuple[float, float, float]:
    """Mean longitude, ecliptic longitude and obliquity (degrees) for d days since J2000."""
    g = (357.529 + 0.98560028 * d) % 360.0
    q = (280.459 + 0.98564736 * d) % 360.0
    L = (q + 1.915 * math.sin(_deg2rad(g)) + 0.020 * math.sin(_deg2rad(2 * g))) % 360.0
    e = 23.439 - 0.00000036 * d
    return q, L, e


def apparent_solar_time(jd: float, longitude: float, timezone_offset: float) -> float:
    """
    Local clock time of solar noon as decimal hours (not wrapped).

    The equation of time is (q/15 - RA) scaled by 4/60 and right ascension is
    left in (-12, 12], so the value jumps by 1.6h across the RA wrap.
    """
    q, L, e = _ecliptic(jd - J2000)
    ra = _rad2deg(math.atan2(math.cos(_deg2rad(e)) * math.sin(_deg2rad(L)), math.cos(_deg2rad(L)))) / 15.0
    eqt = (q / 15.0 - ra) * 4.0 / 60.0
    return 12.0 + eqt - longitude / 15.0 + timezone_offset


def solar_declination(solar_time: float) -> float:
    """
    Declination of the sun in degrees.

    D is re-derived as solar_time * 24 - J2000 rather than from the Julian
    date, so the result depends on the clock time of noon and hardly at all on
    the date. Kept for parity with the published times of earlier releases.
    """
    _, L, e = _ecliptic(solar_time * 24.0 - J2000)
    return _rad2deg(math.asin(math.sin(_deg2rad(e)) * math.sin(_deg2rad(L))))


def _twilight_hour_angle(latitude: float, declination: float, angle: float) -> float | None:
    """Hour angle in hours for a depression angle, None if the sun never gets there."""
    cos_h = -math.sin(_deg2rad(angle)) / (math.cos(_deg2rad(latitude)) * math.cos(_deg2rad(declination)))
    if abs(cos_h) > 1:
        return None
    return _rad2deg(math.acos(cos_h)) / 15.0


def fajr_time(solar_time: float, latitude: float, fajr_angle: float) -> float:
    h = _twilight_hour_angle(latitude, solar_declination(solar_time), fajr_angle)
    if h is None:
        return solar_time - FAJR_FALLBACK
    return solar_time - h


def sunrise_time(solar_time: float, latitude: float) -> float:
    h = _twilight_hour_angle(latitude, solar_declination(solar_time), 0.0)
    if h is None:
        return solar_time
    return solar_time - h


def dhuhr_time(solar_time: float) -> float:
    return solar_time


def asr_time(solar_time: float, latitude: float, asr_factor: int) -> float:
    """Asr: the shadow reaches asr_factor times the object's length plus the noon shadow."""
    decl = solar_declination(solar_time)
    lat_r = _deg2rad(latitude)
    decl_r = _deg2rad(decl)
    shadow_angle = math.atan(1.0 / (asr_factor + abs(math.tan(_deg2rad(latitude - decl)))))
    cos_h = (math.sin(shadow_angle) - math.sin(lat_r) * math.sin(decl_r)) / (math.cos(lat_r) * math.cos(decl_r))
    if abs(cos_h) > 1:
        return solar_time + ASR_FALLBACK
    return solar_time + _rad2deg(math.acos(cos_h)) / 15.0


def maghrib_time(solar_time: float, latitude: float) -> float:
    h = _twilight_hour_angle(latitude, solar_declination(solar_time), 0.0)
    if h is None:
        return solar_time
    return solar_time + h


def isha_time(solar_time: float, latitude: float, isha_angle: float) -> float:
    h = _twilight_hour_angle(latitude, solar_declination(solar_time), isha_angle)
    if h is None:
        return solar_time + ISHA_FALLBACK
    return solar_time + h


def _utc_date(day: date | datetime) -> date:
    if isinstance(day, datetime):
        if day.tzinfo is not None:
            day = day.astimezone(timezone.utc)
        return day.date()
    if isinstance(day, date):
        return day
    raise TypeError(f"expected date or datetime, got {type(day).__name__}")


def compute_prayer_times(
    day: date | datetime,
    latitude: float,
    longitude: float,
    timezone_offset: float,
    method: "str | CalculationMethod | None" = CalculationMethod.KARACHI,
    madhab: "str | Madhab | None" = Madhab.HANAFI,
    *,
    method_table: Mapping[CalculationMethod, MethodAngles] = METHOD_ANGLES,
) -> CalculationResult:
    """
    Calculate the six prayer times for one day.

    day: calendar date; aware datetimes are converted to UTC first, naive ones
    are taken as UTC.
    timezone_offset: hours east of UTC (e.g. 3 for Asia/Riyadh).
    Returns a PrayerTimeSet, or Unavailable if the inputs could not be used.
    This function does not raise.
    """
    method = CalculationMethod.parse(method)
    madhab = Madhab.parse(madhab)
    try:
        angles = method_table.get(method) or method_table[CalculationMethod.DEFAULT]
        utc_day = _utc_date(day)
        if not all(math.isfinite(v) for v in (latitude, longitude, timezone_offset)):
            return Unavailable("non-finite coordinates or timezone offset")

        solar_time = apparent_solar_time(julian_day(utc_day.year, utc_day.month, utc_day.day), longitude, timezone_offset)
        raw = PrayerTimeSet(
            fajr=fajr_time(solar_time, latitude, angles.fajr_angle),
            sunrise=sunrise_time(solar_time, latitude),
            dhuhr=dhuhr_time(solar_time),
            asr=asr_time(solar_time, latitude, madhab.asr_factor),
            maghrib=maghrib_time(solar_time, latitude),
            isha=isha_time(solar_time, latitude, angles.isha_angle),
        )
    except (TypeError, ValueError, ArithmeticError, KeyError) as exc:
        logger.error(f"Prayer time calculation failed: {exc}")
        return Unavailable(str(exc))

    if not all(math.isfinite(v) for _, v in raw.items()):
        logger.error(f"Prayer time calculation produced non-finite values: {raw}")
        return Unavailable("calculation produced non-finite values")

    times = PrayerTimeSet(**{name: _normalize_hour_24(value) for name, value in raw.items()})
    logger.debug(f"Calculated times for {utc_day} ({method.value}, {madhab.value}): {times}")
    return times


def format_time(decimal_time: float) -> str:
    """
    Render decimal hours as 'H:MM AM/PM'.

    Zero, non-finite and non-numeric values give 'Error'; a real midnight
    therefore cannot be told apart from a failed value.
    """
    if isinstance(decimal_time, bool) or not isinstance(decimal_time, (int, float)):
        logger.warning(f"Invalid decimal time: {decimal_time!r}")
        return "Error"
    if not decimal_time or not math.isfinite(decimal_time):
        logger.warning(f"Invalid decimal time: {decimal_time!r}")
        return "Error"
    hours = math.floor(decimal_time)
    minutes = math.floor((decimal_time - hours) * 60)
    period = "PM" if hours >= 12 else "AM"
    display_hours = hours % 12 or 12
    return f"{display_hours}:{minutes:02d} {period}"


def format_countdown(hours: float) -> str:
    """'H hours M minutes', truncated to whole minutes."""
    total_minutes = math.floor(hours * 60)
    h, m = divmod(total_minutes, 60)
    return f"{h} hours {m} minutes"
