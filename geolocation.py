"""
Where the user is: IP geolocation, Nominatim place lookup and timezone
offsets for IANA zone names.
"""

import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import requests

logger = logging.getLogger(__name__)

USER_AGENT = "AdhanApp/1.0"
IP_PROVIDER_URL = "https://ipapi.co/json/"
NOMINATIM_URL = "https://nominatim.openstreetmap.org"
DEFAULT_TIMEZONE = "Asia/Riyadh"
DEFAULT_TIMEZONE_OFFSET = 5.5


class GeolocationError(Exception):
    pass


@dataclass
class Location:
    latitude: float
    longitude: float
    timezone: str = DEFAULT_TIMEZONE
    city: str = "Your Location"

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Location":
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            timezone=data.get("timezone") or DEFAULT_TIMEZONE,
            city=data.get("city") or "Your Location",
        )


DEFAULT_LOCATION = Location(latitude=21.4225, longitude=39.8262, timezone="Asia/Riyadh", city="Makkah")


def timezone_offset_hours(tz_name: Optional[str], when: Optional[datetime] = None,
                          default: float = DEFAULT_TIMEZONE_OFFSET) -> float:
    """UTC offset of tz_name in hours at `when` (now if omitted); default for unknown zones."""
    if not tz_name:
        return default
    try:
        tzinfo = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, OSError, TypeError, ValueError) as e:
        logger.error(f"Error getting timezone offset for {tz_name!r}: {e}")
        return default
    if when is None:
        moment = datetime.now(tzinfo)
    elif when.tzinfo is None:
        moment = when.replace(tzinfo=tzinfo)
    else:
        moment = when.astimezone(tzinfo)
    offset = moment.utcoffset()
    return offset.total_seconds() / 3600.0 if offset else 0.0


class Geolocator:
    def __init__(
        self,
        provider_url: str = IP_PROVIDER_URL,
        nominatim_url: str = NOMINATIM_URL,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        timeout: float = 6,
        session: Optional[requests.Session] = None,
    ):
        self.provider_url = provider_url
        self.nominatim_url = nominatim_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.session = session or requests.Session()

    def _fetch_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = self.session.get(url, params=params, headers={"User-Agent": USER_AGENT}, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def reverse_geocode(self, lat: float, lng: float) -> str:
        """City (or town, or state) name for a coordinate."""
        try:
            data = self._fetch_json(f"{self.nominatim_url}/reverse",
                                    {"format": "json", "lat": lat, "lon": lng})
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Error getting city name: {e}")
            return "Your Location"
        address = data.get("address") or {}
        return address.get("city") or address.get("town") or address.get("state") or "Your Location"

    def geocode(self, query: str, timezone: str = DEFAULT_TIMEZONE) -> Optional[Location]:
        """First Nominatim match for a place name, or None if nothing matched."""
        try:
            data = self._fetch_json(f"{self.nominatim_url}/search",
                                    {"format": "json", "q": query, "limit": 1})
        except (requests.RequestException, ValueError) as e:
            raise GeolocationError(f"Error finding city {query!r}: {e}") from e
        if not data:
            return None
        item = data[0]
        return Location(latitude=float(item["lat"]), longitude=float(item["lon"]), timezone=timezone, city=query)

    def _detect(self) -> Location:
        data = self._fetch_json(self.provider_url)
        lat = data.get("latitude")
        lng = data.get("longitude")
        if lat is None or lng is None:
            raise GeolocationError("Provider returned no coordinates")
        lat, lng = float(lat), float(lng)
        return Location(
            latitude=lat,
            longitude=lng,
            timezone=data.get("timezone") or DEFAULT_TIMEZONE,
            city=self.reverse_geocode(lat, lng),
        )

    def locate(self) -> Location:
        """
        Current position from the IP geolocation provider.

        Tries max_retries + 1 times and falls back to DEFAULT_LOCATION.
        """
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self._detect()
            except (requests.RequestException, ValueError, GeolocationError) as e:
                logger.warning(f"Location attempt {attempt} failed: {e}")
                if attempt < attempts:
                    time.sleep(self.retry_delay)
        logger.info(f"Using default location {DEFAULT_LOCATION.city}")
        return DEFAULT_LOCATION
