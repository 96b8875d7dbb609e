"""
Puts the pieces together: remote times first, validated against and patched
from the local engine, plus everything the main screen shows.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Optional

from aladhan import AladhanClient, AladhanError
from config import Config
from geolocation import DEFAULT_TIMEZONE, Geolocator, GeolocationError, Location, timezone_offset_hours
from hijri import HijriDate, format_hijri, hijri_from_gregorian
from prayer_times import PRAYERS, PrayerTimeSet, compute_prayer_times, format_time
from qibla import format_qibla, qibla_direction
from timings import (
    convert_time_to_decimal,
    current_and_next_prayer,
    format_api_time,
    validate_and_adjust_times,
)

logger = logging.getLogger(__name__)

SOURCE_REMOTE = "remote"
SOURCE_LOCAL = "local"
SOURCE_UNAVAILABLE = "unavailable"


@dataclass
class DailyTimes:
    source: str
    display: Dict[str, str]
    decimal: Dict[str, float]


@dataclass
class DashboardView:
    city: str
    live_time: str
    gregorian_date: str
    hijri_date: str
    source: str
    times: Dict[str, str]
    current_prayer: str
    current_prayer_time: str
    next_prayer: str
    countdown: str
    qibla_direction: float
    qibla_text: str
    decimal_times: Dict[str, float] = field(default_factory=dict)


class PrayerTimesService:
    def __init__(self, config: Config, client: Optional[AladhanClient] = None,
                 geolocator: Optional[Geolocator] = None):
        self.config = config
        api = config.api
        self.client = client or AladhanClient(
            base_url=api["base_url"],
            timeout=api["timeout"],
            max_retries=api["max_retries"],
            retry_delay=api["retry_delay"],
        )
        geo = config.geolocation
        self.geolocator = geolocator or Geolocator(
            provider_url=geo["provider_url"],
            nominatim_url=geo["nominatim_url"],
            max_retries=geo["max_retries"],
            retry_delay=geo["retry_delay"],
        )

    @property
    def method(self) -> str:
        return self.config.settings.get("method") or "Karachi"

    @property
    def madhab(self) -> str:
        return self.config.settings.get("madhab") or "Hanafi"

    @property
    def use_remote(self) -> bool:
        return bool(self.config.api.get("use_remote", True))

    def current_location(self) -> Location:
        """Saved location, or a freshly detected one which is then saved."""
        saved = self.config.settings.get("location")
        if saved:
            try:
                return Location.from_dict(saved)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring malformed saved location {saved}: {e}")
        location = self.geolocator.locate()
        self.config.update_settings(location=location.as_dict())
        return location

    def update_settings(self, method: Optional[str] = None, madhab: Optional[str] = None,
                        city: Optional[str] = None) -> Dict:
        """
        Change method/madhab and optionally move to a named city.

        Raises GeolocationError if the city cannot be found; the method and
        madhab changes are saved first and the location is left as it was.
        """
        changes = {}
        if method is not None:
            changes["method"] = method
        if madhab is not None:
            changes["madhab"] = madhab
        if city:
            saved = self.config.settings.get("location") or {}
            if city != saved.get("city"):
                timezone_name = saved.get("timezone") or DEFAULT_TIMEZONE
                location = self.geolocator.geocode(city, timezone=timezone_name)
                if location is None:
                    if changes:
                        self.config.update_settings(**changes)
                    raise GeolocationError(f"City not found: {city}")
                changes["location"] = location.as_dict()
        return self.config.update_settings(**changes)

    def _offset(self, location: Location, when: Optional[datetime] = None) -> float:
        return timezone_offset_hours(location.timezone, when, default=self.config.default_timezone_offset)

    def local_times(self, day: date, location: Location, timezone_offset: Optional[float] = None):
        if timezone_offset is None:
            timezone_offset = self._offset(location, datetime(day.year, day.month, day.day, 12))
        return compute_prayer_times(day, location.latitude, location.longitude, timezone_offset,
                                    self.method, self.madhab)

    def times_for(self, day: date, location: Location, timezone_offset: Optional[float] = None) -> DailyTimes:
        local = self.local_times(day, location, timezone_offset)
        local_values = local.as_dict()

        def fallback(prayer: str) -> str:
            if not isinstance(local, PrayerTimeSet):
                return "Error"
            return format_time(local_values[prayer])

        if self.use_remote:
            try:
                timings = self.client.get_timings(day, location.latitude, location.longitude,
                                                  location.timezone, self.method, self.madhab)
            except AladhanError as e:
                logger.warning(f"Falling back to local calculation: {e}")
            else:
                validated = validate_and_adjust_times(timings, fallback)
                return DailyTimes(
                    source=SOURCE_REMOTE,
                    display={p: format_api_time(validated[p]) for p in PRAYERS},
                    decimal={p: convert_time_to_decimal(validated[p]) for p in PRAYERS},
                )

        if not isinstance(local, PrayerTimeSet):
            logger.error(f"Prayer times unavailable for {location.city}: {local.reason}")
            return DailyTimes(
                source=SOURCE_UNAVAILABLE,
                display={p: "Error" for p in PRAYERS},
                decimal=local_values,
            )
        return DailyTimes(
            source=SOURCE_LOCAL,
            display={p: format_time(v) for p, v in local.items()},
            decimal=local_values,
        )

    def _remote_hijri(self, day: date) -> Optional[HijriDate]:
        if not self.use_remote:
            return None
        try:
            return self.client.get_hijri(day)
        except AladhanError as e:
            logger.warning(f"Error fetching Hijri date from API: {e}")
            return None

    def hijri_for(self, day: date) -> HijriDate:
        return self._remote_hijri(day) or hijri_from_gregorian(day)

    def hijri_text(self, day: date) -> str:
        """Hijri date as shown on the main screen, never raising."""
        remote = self._remote_hijri(day)
        return str(remote) if remote else format_hijri(day)

    def dashboard(self, location: Location, now: Optional[datetime] = None) -> DashboardView:
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        now_utc = now.astimezone(timezone.utc)
        offset = self._offset(location, now_utc)
        local_now = now_utc.astimezone(timezone(timedelta(hours=offset)))
        today = local_now.date()

        daily = self.times_for(today, location, offset)
        status = current_and_next_prayer(daily.decimal, local_now.hour + local_now.minute / 60.0)
        direction = qibla_direction(location.latitude, location.longitude)

        return DashboardView(
            city=location.city,
            live_time=local_now.strftime("%I:%M:%S %p"),
            gregorian_date=f"{today:%B} {today.day}, {today.year}",
            hijri_date=self.hijri_text(today),
            source=daily.source,
            times=daily.display,
            current_prayer=status.current_name,
            current_prayer_time=daily.display.get(status.current_name.lower(), format_time(status.current_time)),
            next_prayer=status.next_name,
            countdown=status.countdown,
            qibla_direction=direction,
            qibla_text=format_qibla(direction),
            decimal_times=daily.decimal,
        )
