"""
Great-circle distance on a spherical Earth.

Uses the spherical law of cosines with a mean Earth radius of 6,371,137 m.
"""

import math

from .location import GeoPoint

EARTH_RADIUS_M = 6371137


def _to_radians(degrees: float) -> float:
    return degrees * math.pi / 180


def distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Distance in meters between two points given in decimal degrees.

    The cosine sum is clamped to [-1, 1] so rounding near coincident or
    antipodal points never leaves the arccos domain.
    """
    if lat1 == lat2 and lon1 == lon2:
        return 0.0
    phi1 = _to_radians(lat1)
    phi2 = _to_radians(lat2)
    delta_lambda = _to_radians(abs(lon2 - lon1))

    cos_sigma = math.sin(phi1) * math.sin(phi2) + math.cos(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    cos_sigma = max(-1.0, min(1.0, cos_sigma))

    return EARTH_RADIUS_M * math.acos(cos_sigma)


def distance_between(a: GeoPoint, b: GeoPoint) -> float:
    """Distance in meters between two GeoPoints."""
    return distance(a.latitude, a.longitude, b.latitude, b.longitude)
