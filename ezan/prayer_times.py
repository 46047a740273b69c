"""
Prayer time calculation, backed by adhanpy.

Methods are looked up by name. Most map onto an adhanpy preset; the
Diyanet (TURKEY) method is built from its own angles and adjustments.
Times are returned in the host's local time zone.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from types import MappingProxyType
from typing import Mapping, Optional

from adhanpy.PrayerTimes import PrayerTimes
from adhanpy.calculation.CalculationMethod import CalculationMethod
from adhanpy.calculation.CalculationParameters import CalculationParameters
from adhanpy.calculation.HighLatitudeRule import HighLatitudeRule
from adhanpy.calculation.Madhab import Madhab
from adhanpy.calculation.PrayerAdjustments import PrayerAdjustments

from . import PRAYER_NAMES, DHUHR, ASR, MAGHRIB
from .errors import ComputeError, InvalidCoordinates, InvalidParameters

MADHABS = {
    "SHAFI": Madhab.SHAFI,
    "HANAFI": Madhab.HANAFI,
}

# High latitude rules: share of the night used when twilight never ends
MIDDLE_OF_THE_NIGHT = "MIDDLE_OF_THE_NIGHT"
SEVENTH_OF_THE_NIGHT = "SEVENTH_OF_THE_NIGHT"
TWILIGHT_ANGLE = "TWILIGHT_ANGLE"
HIGH_LATITUDE_RULES = {
    MIDDLE_OF_THE_NIGHT: HighLatitudeRule.MIDDLE_OF_THE_NIGHT,
    SEVENTH_OF_THE_NIGHT: HighLatitudeRule.SEVENTH_OF_THE_NIGHT,
    TWILIGHT_ANGLE: HighLatitudeRule.TWILIGHT_ANGLE,
}


@dataclass(frozen=True)
class MethodParameters:
    """
    A calculation method: an adhanpy preset, or explicit angles and
    minute adjustments. Angles set here override the preset's.
    """
    preset: Optional[CalculationMethod] = None
    fajr_angle: Optional[float] = None
    isha_angle: Optional[float] = None
    isha_interval: int = 0  # minutes after maghrib, used instead of isha_angle
    adjustments: Mapping[str, int] = field(default_factory=dict)


METHODS = {
    "OTHER": MethodParameters(fajr_angle=0, isha_angle=0),
    "MUSLIM_WORLD_LEAGUE": MethodParameters(CalculationMethod.MUSLIM_WORLD_LEAGUE),
    "TURKEY": MethodParameters(
        fajr_angle=18,
        isha_angle=17,
        adjustments={"sunrise": -7, DHUHR: 5, ASR: 4, MAGHRIB: 7},
    ),
    "EGYPTIAN": MethodParameters(CalculationMethod.EGYPTIAN),
    "KARACHI": MethodParameters(CalculationMethod.KARACHI),
    "UMM_AL_QURA": MethodParameters(CalculationMethod.UMM_AL_QURA),
    "DUBAI": MethodParameters(CalculationMethod.DUBAI),
    "MOON_SIGHTING_COMMITTEE": MethodParameters(CalculationMethod.MOON_SIGHTING_COMMITTEE),
    "NORTH_AMERICA": MethodParameters(CalculationMethod.NORTH_AMERICA),
    "KUWAIT": MethodParameters(CalculationMethod.KUWAIT),
    "QATAR": MethodParameters(CalculationMethod.QATAR),
    "SINGAPORE": MethodParameters(CalculationMethod.SINGAPORE),
    "UOIF": MethodParameters(CalculationMethod.UOIF),
}


@dataclass(frozen=True)
class PrayerSchedule:
    """The five announcement times of one day, as aware local datetimes."""
    date: date
    times: Mapping[str, datetime]

    def __iter__(self):
        return iter((name, self.times[name]) for name in PRAYER_NAMES)


def validate_coordinates(latitude, longitude) -> tuple[float, float]:
    """Return (lat, lon) as floats or raise InvalidCoordinates."""
    for value in (latitude, longitude):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidCoordinates(f"Coordinates must be numbers, got {latitude!r}, {longitude!r}")
        if math.isnan(value):
            raise InvalidCoordinates("Coordinates must not be NaN")
    if not -90 <= latitude <= 90:
        raise InvalidCoordinates(f"Latitude {latitude} outside [-90, 90]")
    if not -180 <= longitude <= 180:
        raise InvalidCoordinates(f"Longitude {longitude} outside [-180, 180]")
    return float(latitude), float(longitude)


def method_parameters(method: str, angle_overrides: Optional[Mapping[str, float]] = None) -> MethodParameters:
    """Look up a calculation method and apply optional fajr/isha angle overrides."""
    if method not in METHODS:
        raise InvalidParameters(f"Unknown calculation method: {method}")
    params = METHODS[method]
    if not angle_overrides:
        return params

    changes = {}
    for key in ("fajr_angle", "isha_angle"):
        angle = angle_overrides.get(key)
        if angle is None:
            continue
        if isinstance(angle, bool) or not isinstance(angle, (int, float)) or not 0 <= angle < 90:
            raise InvalidParameters(f"{key} must be a number in [0, 90), got {angle!r}")
        changes[key] = float(angle)
    return replace(params, **changes)


def calculation_parameters(params: MethodParameters, madhab: str, high_latitude_rule: str) -> CalculationParameters:
    """Build adhanpy CalculationParameters for a method, madhab and rule."""
    if madhab not in MADHABS:
        raise InvalidParameters(f"Unknown madhab: {madhab}")
    if high_latitude_rule not in HIGH_LATITUDE_RULES:
        raise InvalidParameters(f"Unknown high latitude rule: {high_latitude_rule}")

    if params.preset is not None:
        calc = CalculationParameters(method=params.preset)
    else:
        calc = CalculationParameters(
            isha_interval=params.isha_interval,
            method_adjustments=PrayerAdjustments(**params.adjustments),
        )

    if params.fajr_angle is not None:
        calc.fajr_angle = params.fajr_angle
    if params.isha_angle is not None:
        # An explicit angle replaces an interval based isha
        calc.isha_angle = params.isha_angle
        calc.isha_interval = 0

    calc.madhab = MADHABS[madhab]
    calc.high_latitude_rule = HIGH_LATITUDE_RULES[high_latitude_rule]
    return calc


def compute_prayer_times(
    coordinates: tuple[float, float],
    day: date,
    method: str = "TURKEY",
    madhab: str = "SHAFI",
    angle_overrides: Optional[Mapping[str, float]] = None,
    high_latitude_rule: str = MIDDLE_OF_THE_NIGHT,
) -> PrayerSchedule:
    """
    Compute the five prayer times of `day` at `coordinates`.

    Raises InvalidCoordinates / InvalidParameters on bad input and
    ComputeError when the sun does not rise or set on that day.
    """
    latitude, longitude = validate_coordinates(*coordinates)
    params = method_parameters(method, angle_overrides)
    calc = calculation_parameters(params, madhab, high_latitude_rule)

    try:
        prayer_times = PrayerTimes(
            (latitude, longitude),
            datetime(day.year, day.month, day.day),
            calculation_parameters=calc,
        )
    except (RuntimeError, ValueError) as e:
        # adhanpy raises a bare RuntimeError when sunrise, sunset or asr is undefined
        raise ComputeError(
            f"Sun does not rise or set at ({latitude}, {longitude}) on {day.isoformat()}"
        ) from e

    times = {
        name: getattr(prayer_times, name).astimezone()
        for name in PRAYER_NAMES
    }
    return PrayerSchedule(date=day, times=MappingProxyType(times))
