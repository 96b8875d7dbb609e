"""
Client for the api.aladhan.com prayer-times and calendar-conversion service.
"""

import logging
import time
from datetime import date
from typing import Dict, Optional

import requests

from hijri import HijriDate
from prayer_times import CalculationMethod, Madhab

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.aladhan.com/v1"

# Aladhan's numeric ids for the supported calculation methods.
ALADHAN_METHODS = {
    CalculationMethod.MWL: 3,
    CalculationMethod.ISNA: 2,
    CalculationMethod.EGYPT: 5,
    CalculationMethod.MAKKAH: 4,
    CalculationMethod.KARACHI: 1,
    CalculationMethod.TEHRAN: 7,
}


class AladhanError(Exception):
    """The service answered with something other than usable data."""


class RemoteUnavailableError(AladhanError):
    """All attempts to reach the service failed."""


def aladhan_method(method: "str | CalculationMethod | None") -> int:
    return ALADHAN_METHODS.get(CalculationMethod.parse(method), 1)


def aladhan_school(madhab: "str | Madhab | None") -> int:
    return 1 if Madhab.parse(madhab) is Madhab.HANAFI else 0


class AladhanClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.session = session or requests.Session()

    def _get_data(self, path: str, params: Optional[Dict] = None) -> Dict:
        url = f"{self.base_url}/{path}"
        logger.info(f"Making API request to {url} with params {params}")
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise AladhanError(f"Unexpected API response from {url}: {type(payload).__name__}")
        if payload.get("code") != 200 or not isinstance(payload.get("data"), dict) or not payload["data"]:
            raise AladhanError(f"Invalid API response from {url}: code={payload.get('code')}")
        return payload["data"]

    def get_timings(
        self,
        day: date,
        lat: float,
        lng: float,
        timezone: str,
        method: "str | CalculationMethod | None",
        madhab: "str | Madhab | None",
    ) -> Dict[str, str]:
        """
        Fetch the day's timings, retrying up to max_retries times.

        Returns the raw 'timings' mapping (capitalised prayer names to 'HH:MM').
        Raises RemoteUnavailableError once every attempt has failed.
        """
        params = {
            "latitude": lat,
            "longitude": lng,
            "method": aladhan_method(method),
            "timezonestring": timezone,
            "school": aladhan_school(madhab),
        }
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                data = self._get_data(f"timings/{day.strftime('%d-%m-%Y')}", params)
                timings = data.get("timings")
                if not timings:
                    raise AladhanError("Response has no timings")
                return timings
            except (requests.RequestException, ValueError, AladhanError) as e:
                logger.warning(f"Prayer times API attempt {attempt} failed: {e}")
                if attempt < attempts:
                    time.sleep(self.retry_delay)
        raise RemoteUnavailableError(f"Prayer times API failed after {attempts} attempts")

    def get_hijri(self, day: date) -> HijriDate:
        try:
            data = self._get_data(f"gToH/{day.strftime('%d-%m-%Y')}")
        except (requests.RequestException, ValueError) as e:
            raise RemoteUnavailableError(f"Hijri date API failed: {e}") from e
        hijri = data.get("hijri") or {}
        try:
            return HijriDate(
                day=int(hijri["day"]),
                month=int(hijri["month"]["number"]),
                year=int(hijri["year"]),
                month_label=hijri["month"]["en"],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise AladhanError(f"Malformed Hijri date in response: {hijri}") from e
