import pytest
import requests

from aladhan import RemoteUnavailableError
from config import Config
from geolocation import Location

MAKKAH = Location(latitude=21.4225, longitude=39.8262, timezone="Asia/Riyadh", city="Makkah")


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """Answers GETs from a list of (url substring, response) routes; records every call."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        for fragment, response in self.routes:
            if fragment in url:
                if isinstance(response, Exception):
                    raise response
                if callable(response):
                    return response()
                return response
        raise requests.ConnectionError(f"no route for {url}")


@pytest.fixture
def config(tmp_path):
    cfg = Config(str(tmp_path / "config.yaml"))
    cfg.data["api"]["retry_delay"] = 0
    cfg.data["geolocation"]["retry_delay"] = 0
    return cfg


class FakeClient:
    def __init__(self, timings=None, hijri=None):
        self.timings = timings
        self.hijri = hijri
        self.calls = []

    def get_timings(self, day, lat, lng, tz, method, madhab):
        self.calls.append((day, lat, lng, tz, method, madhab))
        if self.timings is None:
            raise RemoteUnavailableError("offline")
        return self.timings

    def get_hijri(self, day):
        if self.hijri is None:
            raise RemoteUnavailableError("offline")
        return self.hijri


class FakeGeolocator:
    def __init__(self, location=None, places=None):
        self.location = location or MAKKAH
        self.places = places or {}
        self.located = 0

    def locate(self):
        self.located += 1
        return self.location

    def geocode(self, query, timezone="Asia/Riyadh"):
        found = self.places.get(query)
        if found is None:
            return None
        return Location(latitude=found[0], longitude=found[1], timezone=timezone, city=query)
