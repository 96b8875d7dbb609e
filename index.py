from datetime import date as date_type, datetime, timedelta
from functools import lru_cache
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from config import Config, setup_logging
from geolocation import DEFAULT_TIMEZONE, GeolocationError, Location
from hijri import hijri_from_gregorian
from prayer_times import CalculationMethod, Madhab, PrayerTimeSet, compute_prayer_times, decimal_hour_to_hhmm
from qibla import format_qibla, qibla_direction, read_compass
from service import PrayerTimesService

app = FastAPI(
    title="Prayer Times API",
    description="API service for calculating Islamic prayer times and the Qibla direction",
    version="1.0.0"
)


class DailyTimesResponse(BaseModel):
    date: date_type
    source: str
    display: Dict[str, str]
    decimal: Dict[str, float]


class CompassModel(BaseModel):
    heading: float
    rotation: float
    aligned: bool


class QiblaResponse(BaseModel):
    direction: float
    text: str
    compass: Optional[CompassModel] = None


class HijriResponse(BaseModel):
    day: int
    month: int
    month_name: str
    year: int
    text: str


class DashboardResponse(BaseModel):
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


class LocationModel(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    timezone: str = DEFAULT_TIMEZONE
    city: str = "Your Location"


class SettingsResponse(BaseModel):
    method: str
    madhab: str
    location: Optional[LocationModel] = None


class SettingsUpdate(BaseModel):
    method: Optional[str] = None
    madhab: Optional[str] = None
    city: Optional[str] = None


@lru_cache(maxsize=1)
def get_service() -> PrayerTimesService:
    config = Config()
    setup_logging(config.data["logging"]["level"])
    return PrayerTimesService(config)


def _parse_date(value: Optional[str]) -> date_type:
    if not value:
        return date_type.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(status_code=422, detail="date must be YYYY-MM-DD")


def _location(lat: Optional[float], lng: Optional[float], tz: Optional[str], city: Optional[str],
              service: PrayerTimesService) -> Location:
    if lat is None or lng is None:
        return service.current_location()
    return Location(latitude=lat, longitude=lng, timezone=tz or DEFAULT_TIMEZONE, city=city or "Your Location")


@app.get("/")
def root():
    return {
        "service": "Prayer Times API",
        "status": "online",
        "endpoints": {
            "/api/timesForGPS": "Get prayer times for GPS coordinates",
            "/api/times": "Get prayer times, remote service first with local fallback",
            "/api/qibla": "Get the Qibla direction, and the compass pointer when a heading is given",
            "/api/hijri": "Get the Hijri date",
            "/api/dashboard": "Everything the main screen shows",
            "/api/settings": "Read or change calculation settings",
            "/api/methods": "List calculation methods and madhabs",
        }
    }


@app.get("/api/timesForGPS")
def get_times_for_gps(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    date: str = Query(),
    days: int = Query(1, ge=1, le=31),
    timezoneOffset: int = 0,  # Minutes, e.g., 180
    calculationMethod: str = "Karachi",
    madhab: str = "Hanafi",
):
    # Convert minutes to hours (e.g., 180 -> 3.0)
    offset_hours = timezoneOffset / 60.0
    start_date = _parse_date(date)
    method = CalculationMethod.parse(calculationMethod)
    school = Madhab.parse(madhab)

    response_times = {}

    for i in range(days):
        current_day = start_date + timedelta(days=i)
        date_key = current_day.strftime("%Y-%m-%d")

        times = compute_prayer_times(current_day, lat, lng, offset_hours, method, school)
        if not isinstance(times, PrayerTimeSet):
            response_times[date_key] = None
            continue

        # [0]: Fajr, [1]: Sunrise, [2]: Dhuhr, [3]: Asr, [4]: Maghrib, [5]: Isha
        response_times[date_key] = [decimal_hour_to_hhmm(value) for _, value in times.items()]

    return {"times": response_times, "method": method.value, "madhab": school.value}


@app.get("/api/times", response_model=DailyTimesResponse)
def get_times(
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    tz: Optional[str] = None,
    date: Optional[str] = None,
    service: PrayerTimesService = Depends(get_service),
):
    day = _parse_date(date)
    location = _location(lat, lng, tz, None, service)
    daily = service.times_for(day, location)
    return DailyTimesResponse(date=day, source=daily.source, display=daily.display, decimal=daily.decimal)


@app.get("/api/qibla", response_model=QiblaResponse)
def get_qibla(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    alpha: Optional[float] = Query(None, ge=0, lt=360),
    webkitHeading: Optional[float] = Query(None, ge=0, lt=360),
):
    direction = qibla_direction(lat, lng)
    compass = None
    # Pointer for a device reporting its orientation (deviceorientation alpha or WebKit heading)
    if alpha is not None or webkitHeading is not None:
        reading = read_compass(direction, alpha=alpha, webkit_heading=webkitHeading)
        compass = CompassModel(heading=reading.heading, rotation=reading.rotation, aligned=reading.aligned)
    return QiblaResponse(direction=direction, text=format_qibla(direction), compass=compass)


@app.get("/api/hijri", response_model=HijriResponse)
def get_hijri(date: Optional[str] = None, remote: bool = True,
              service: PrayerTimesService = Depends(get_service)):
    day = _parse_date(date)
    hijri = service.hijri_for(day) if remote else hijri_from_gregorian(day)
    return HijriResponse(day=hijri.day, month=hijri.month, month_name=hijri.month_name,
                         year=hijri.year, text=str(hijri))


@app.get("/api/dashboard", response_model=DashboardResponse)
def get_dashboard(
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    tz: Optional[str] = None,
    city: Optional[str] = None,
    service: PrayerTimesService = Depends(get_service),
):
    view = service.dashboard(_location(lat, lng, tz, city, service))
    return DashboardResponse(
        city=view.city,
        live_time=view.live_time,
        gregorian_date=view.gregorian_date,
        hijri_date=view.hijri_date,
        source=view.source,
        times=view.times,
        current_prayer=view.current_prayer,
        current_prayer_time=view.current_prayer_time,
        next_prayer=view.next_prayer,
        countdown=view.countdown,
        qibla_direction=view.qibla_direction,
        qibla_text=view.qibla_text,
    )


@app.get("/api/settings", response_model=SettingsResponse)
def get_settings(service: PrayerTimesService = Depends(get_service)):
    return SettingsResponse(**service.config.settings)


@app.put("/api/settings", response_model=SettingsResponse)
def put_settings(update: SettingsUpdate, service: PrayerTimesService = Depends(get_service)):
    try:
        settings = service.update_settings(method=update.method, madhab=update.madhab, city=update.city)
    except GeolocationError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SettingsResponse(**settings)


def list_methods() -> List[str]:
    return [m.value for m in CalculationMethod if m is not CalculationMethod.DEFAULT]


@app.get("/api/methods")
def get_methods():
    return {"methods": list_methods(), "madhabs": [m.value for m in Madhab]}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
