"""
Qibla bearing and compass pointer geometry.
"""

import math
from dataclasses import dataclass

KAABA_LAT = 21.4225
KAABA_LNG = 39.8262

ALIGNMENT_TOLERANCE = 2.0


class CompassUnavailableError(Exception):
    """
    The orientation event carried neither an absolute heading nor an alpha
    angle, so the device has no usable compass.
    """


def qibla_direction(lat: float, lng: float) -> float:
    """Initial great-circle bearing to the Kaaba, degrees clockwise from true North in [0, 360)."""
    kaaba_lat = math.radians(KAABA_LAT)
    user_lat = math.radians(lat)
    lng_diff = math.radians(KAABA_LNG) - math.radians(lng)
    y = math.sin(lng_diff)
    x = math.cos(user_lat) * math.tan(kaaba_lat) - math.sin(user_lat) * math.cos(lng_diff)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def device_heading(alpha: float | None = None, webkit_heading: float | None = None) -> float:
    """
    Compass heading of the device in degrees.

    webkit_heading is already measured clockwise from North; alpha is the
    counter-clockwise rotation reported by deviceorientation events.
    """
    if webkit_heading is not None:
        return webkit_heading
    if alpha is None:
        raise CompassUnavailableError("Compass not available on this device")
    return 360.0 - alpha


def pointer_rotation(qibla: float, heading: float) -> float:
    return qibla - heading


def is_aligned(rotation: float, tolerance: float = ALIGNMENT_TOLERANCE) -> bool:
    r = abs(math.fmod(rotation, 360.0))
    return r < tolerance or r > 360.0 - tolerance


@dataclass(frozen=True)
class CompassReading:
    qibla: float
    heading: float
    rotation: float
    aligned: bool


def read_compass(qibla: float, alpha: float | None = None, webkit_heading: float | None = None) -> CompassReading:
    heading = device_heading(alpha, webkit_heading)
    rotation = pointer_rotation(qibla, heading)
    return CompassReading(qibla=qibla, heading=heading, rotation=rotation, aligned=is_aligned(rotation))


def format_qibla(direction: float) -> str:
    return f"Qibla: {direction:.1f}° from North"
