"""
Geographic coordinate model.

Defines the GeoPoint dataclass used for both patient and facility locations.
"""

import math
import numbers
import typing
from dataclasses import dataclass

from .errors import InvalidConfigurationError

_LATITUDE_KEYS = ("latitude", "lat")
_LONGITUDE_KEYS = ("longitude", "lon", "lng", "long")


@dataclass(frozen=True)
class GeoPoint:
    """
    A latitude/longitude pair in decimal degrees.

    Attributes:
        latitude: Degrees north, in [-90, 90].
        longitude: Degrees east, in [-180, 180].
    """

    latitude: float
    longitude: float

    def __post_init__(self):
        for field_name, bound in (("latitude", 90), ("longitude", 180)):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise ValueError(f"{field_name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ValueError(f"{field_name} must be finite, got {value!r}")
            if not -bound <= value <= bound:
                raise ValueError(f"{field_name} {value!r} is outside [-{bound}, {bound}]")

    @classmethod
    def coerce(cls, value: typing.Any) -> "GeoPoint":
        """
        Build a GeoPoint from a GeoPoint, a ``(lat, lon)`` pair or a mapping
        with ``latitude``/``longitude`` keys (``lat``/``lon``/``lng`` also work).
        Raises ValueError when no coordinates can be read.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, typing.Mapping):
            latitude = _first_present(value, _LATITUDE_KEYS)
            longitude = _first_present(value, _LONGITUDE_KEYS)
            if latitude is None or longitude is None:
                raise ValueError(f"location needs latitude and longitude, got {dict(value)!r}")
            return cls(latitude, longitude)
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return cls(value[0], value[1])
        raise ValueError(f"cannot read a location from {value!r}")


def facility_location(value: typing.Any) -> GeoPoint:
    """Coerce a facility location, reporting problems as configuration errors."""
    try:
        return GeoPoint.coerce(value)
    except ValueError as e:
        raise InvalidConfigurationError(f"Invalid facility location: {e}") from e


def _first_present(mapping: typing.Mapping, keys: typing.Iterable[str]) -> typing.Any:
    for key in keys:
        if mapping.get(key) is not None:
            return mapping[key]
    return None
