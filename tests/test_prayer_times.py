import math
from datetime import date, datetime, timedelta, timezone

import pytest

from prayer_times import (
    METHOD_ANGLES,
    PRAYERS,
    CalculationMethod,
    Madhab,
    MethodAngles,
    PrayerTimeSet,
    Unavailable,
    _ecliptic,
    apparent_solar_time,
    compute_prayer_times,
    decimal_hour_to_hhmm,
    format_countdown,
    format_time,
    julian_day,
    solar_declination,
    wrap_hours,
)
from timings import convert_time_to_decimal

MECCA = (21.4225, 39.8262)

# (longitude, utc offset) pairs whose zone meridian matches the longitude
MERIDIANS = [(0.0, 0), (45.0, 3), (-75.0, -5), (105.0, 7)]
ORDERED_METHODS = [m for m in CalculationMethod if m is not CalculationMethod.MAKKAH]


def solar_time_for(day, lng, tz):
    return apparent_solar_time(julian_day(day.year, day.month, day.day), lng, tz)


def test_julian_day_known_dates():
    assert julian_day(2000, 1, 1) == 2451545
    assert julian_day(2024, 6, 21) == 2460483
    assert julian_day(1970, 1, 1) == 2440588


def test_method_table_is_read_only():
    assert METHOD_ANGLES[CalculationMethod.MWL] == MethodAngles(18.0, 17.0)
    assert METHOD_ANGLES[CalculationMethod.MAKKAH].isha_angle == 90.0
    with pytest.raises(TypeError):
        METHOD_ANGLES[CalculationMethod.MWL] = MethodAngles(1, 1)


@pytest.mark.parametrize("name,expected", [
    ("MWL", CalculationMethod.MWL),
    ("ISNA", CalculationMethod.ISNA),
    ("isna", CalculationMethod.DEFAULT),
    (" MWL", CalculationMethod.DEFAULT),
    ("Egypt", CalculationMethod.EGYPT),
    ("Makkah", CalculationMethod.MAKKAH),
    ("Karachi", CalculationMethod.KARACHI),
    ("Tehran", CalculationMethod.TEHRAN),
    ("Foo", CalculationMethod.DEFAULT),
    ("", CalculationMethod.DEFAULT),
    (None, CalculationMethod.DEFAULT),
])
def test_method_parse(name, expected):
    assert CalculationMethod.parse(name) is expected


def test_madhab_factor():
    assert Madhab.parse("Hanafi").asr_factor == 2
    assert Madhab.parse("hanafi").asr_factor == 1
    assert Madhab.parse("HANAFI") is Madhab.STANDARD
    assert Madhab.parse("Shafi").asr_factor == 1
    assert Madhab.parse("Bar").asr_factor == 1
    assert Madhab.parse(None) is Madhab.STANDARD


def test_dhuhr_is_apparent_solar_time():
    for lat in range(-60, 61, 15):
        for lng, tz in MERIDIANS + [(39.8262, 3), (-122.4, -8)]:
            for month in (1, 4, 7, 10):
                day = date(2024, month, 15)
                times = compute_prayer_times(day, lat, lng, tz, "MWL", "Standard")
                assert times.dhuhr == wrap_hours(solar_time_for(day, lng, tz))


def test_all_times_wrapped_into_day():
    for lat in (-80, -45, 0, 45, 80, 89):
        for lng, tz in [(-180, 12), (180, -12), (0, 0), (170, 14), (-170, -11)]:
            times = compute_prayer_times(date(2024, 12, 21), lat, lng, tz, "ISNA", "Hanafi")
            assert isinstance(times, PrayerTimeSet)
            for _, value in times.items():
                assert 0 <= value < 24


def test_prayers_in_order_up_to_60_degrees():
    days = [date(2024, 3, 20) + timedelta(days=d) for d in range(0, 366, 30)]
    for lat in range(-60, 61, 10):
        for day in days:
            for lng, tz in MERIDIANS:
                for method in ORDERED_METHODS:
                    for madhab in ("Hanafi", "Standard"):
                        t = compute_prayer_times(day, lat, lng, tz, method, madhab)
                        assert t.fajr < t.sunrise < t.dhuhr < t.asr < t.maghrib < t.isha, (lat, day, method, madhab)


def test_identical_inputs_give_identical_output():
    first = compute_prayer_times(date(2024, 6, 21), *MECCA, 3, "Makkah", "Shafi")
    second = compute_prayer_times(date(2024, 6, 21), *MECCA, 3, "Makkah", "Shafi")
    assert first == second
    assert first.as_dict() == second.as_dict()


def test_mecca_summer_solstice():
    day = date(2024, 6, 21)
    times = compute_prayer_times(day, *MECCA, 3, "Makkah", "Shafi")
    assert isinstance(times, PrayerTimeSet)
    # These formulas put solar noon at 12.34h, a little later than the rough
    # 12:06 to 12:18 window of published Makkah timetables.
    assert times.dhuhr == pytest.approx(12.343, abs=0.005)
    assert Madhab.parse("Shafi").asr_factor == 1
    # A 90 degree Isha angle has no solution, so Isha takes the fixed offset.
    assert times.isha == pytest.approx(wrap_hours(times.dhuhr + 1.5))


def test_unknown_method_and_madhab_use_defaults():
    day = date(2024, 3, 1)
    unknown = compute_prayer_times(day, 40.0, 30.0, 2, "Foo", "Bar")
    explicit = compute_prayer_times(day, 40.0, 30.0, 2, CalculationMethod.DEFAULT, Madhab.STANDARD)
    karachi = compute_prayer_times(day, 40.0, 30.0, 2, "Karachi", "Shafi")
    assert isinstance(unknown, PrayerTimeSet)
    assert unknown == explicit == karachi
    # names are matched exactly
    assert compute_prayer_times(day, 40.0, 30.0, 2, "isna", "hanafi") == unknown
    assert METHOD_ANGLES[CalculationMethod.DEFAULT] == MethodAngles(18.0, 18.0)


def test_method_table_can_be_injected():
    table = {CalculationMethod.DEFAULT: MethodAngles(18.0, 18.0), CalculationMethod.MWL: MethodAngles(10.0, 10.0)}
    custom = compute_prayer_times(date(2024, 3, 1), 40.0, 30.0, 2, "MWL", "Standard", method_table=table)
    standard = compute_prayer_times(date(2024, 3, 1), 40.0, 30.0, 2, "MWL", "Standard")
    assert custom.fajr > standard.fajr
    assert custom.isha < standard.isha


def test_polar_summer_twilight_falls_back():
    day = date(2024, 6, 21)
    solar = solar_time_for(day, 0.0, 0)
    times = compute_prayer_times(day, 89.0, 0.0, 0, "MWL", "Standard")
    assert times.fajr == pytest.approx(wrap_hours(solar - 1.5))
    assert times.isha == pytest.approx(wrap_hours(solar + 1.5))


def test_arctic_winter_karachi_hanafi_falls_back():
    day = date(2024, 1, 15)
    solar = solar_time_for(day, 18.9, 1)
    times = compute_prayer_times(day, 74.0, 18.9, 1, "Karachi", "Hanafi")
    assert times.fajr == pytest.approx(wrap_hours(solar - 1.5))
    assert times.isha == pytest.approx(wrap_hours(solar + 1.5))


def test_declination_follows_noon_clock_time_not_date():
    # D is rebuilt from the solar time, so this is nowhere near the June
    # solstice value of +23.4 degrees.
    assert solar_declination(12.0) == pytest.approx(5.96, abs=0.1)
    summer = compute_prayer_times(date(2024, 6, 21), 40.0, 0.0, 0, "MWL", "Standard")
    winter = compute_prayer_times(date(2024, 12, 21), 40.0, 0.0, 0, "MWL", "Standard")
    # Sunrise and Maghrib use a 0 degree angle, so daylight is always 12 hours.
    assert summer.maghrib - summer.sunrise == pytest.approx(12.0)
    assert winter.maghrib - winter.sunrise == pytest.approx(12.0)


def test_mean_longitude_stays_positive_before_j2000():
    q, _, _ = _ecliptic(-1000.0)
    assert q == pytest.approx(14.81164, abs=1e-4)
    for month in range(1, 13):
        jd = julian_day(1990, month, 15)
        assert 11.9 <= apparent_solar_time(jd, 0.0, 0) <= 13.7


def test_aware_datetime_uses_utc_date():
    local_morning = datetime(2024, 6, 21, 1, 0, tzinfo=timezone(timedelta(hours=3)))
    from_datetime = compute_prayer_times(local_morning, *MECCA, 3)
    from_date = compute_prayer_times(date(2024, 6, 20), *MECCA, 3)
    assert from_datetime == from_date


@pytest.mark.parametrize("args", [
    ("2024-06-21", 21.0, 39.0, 3),
    (date(2024, 6, 21), math.nan, 39.0, 3),
    (date(2024, 6, 21), 21.0, math.inf, 3),
    (date(2024, 6, 21), 21.0, 39.0, math.nan),
    (None, 21.0, 39.0, 3),
])
def test_bad_input_is_unavailable(args):
    result = compute_prayer_times(*args)
    assert isinstance(result, Unavailable)
    assert result.as_dict() == {name: 0.0 for name in PRAYERS}


@pytest.mark.parametrize("value,expected", [
    (13.5, "1:30 PM"),
    (0.5, "12:30 AM"),
    (12.0, "12:00 PM"),
    (5.999, "5:59 AM"),
    (23.99, "11:59 PM"),
])
def test_format_time(value, expected):
    assert format_time(value) == expected


@pytest.mark.parametrize("value", [0, 0.0, math.nan, math.inf, None, "5:00"])
def test_format_time_invalid(value):
    assert format_time(value) == "Error"


def test_format_time_round_trip():
    for i in range(1, 2400):
        x = i / 100.0
        recovered = convert_time_to_decimal(format_time(x))
        assert abs(x - recovered) <= 1 / 60.0 + 1e-9, x


@pytest.mark.parametrize("hours,expected", [
    (2.5, "2 hours 30 minutes"),
    (1.9999, "1 hours 59 minutes"),
    (0, "0 hours 0 minutes"),
    (23.25, "23 hours 15 minutes"),
])
def test_format_countdown(hours, expected):
    assert format_countdown(hours) == expected


@pytest.mark.parametrize("hours,expected", [
    (5.25, "05:15"),
    (13.999, "14:00"),
    (23.9999, "00:00"),
    (-1.0, "23:00"),
])
def test_decimal_hour_to_hhmm(hours, expected):
    assert decimal_hour_to_hhmm(hours) == expected
