"""Great-circle distance helpers."""

from __future__ import annotations

import math

from glitch.errors import ValidationError

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in km between two (lat, lng) points given in degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push a just above 1 for antipodal points.
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def validate_coordinates(latitude: float, longitude: float) -> None:
    """Raise ValidationError unless latitude ∈ [-90, 90] and longitude ∈ [-180, 180]."""
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise ValidationError("Latitude and longitude must be finite numbers")
    if not -90.0 <= latitude <= 90.0:
        raise ValidationError("Latitude must be between -90 and 90")
    if not -180.0 <= longitude <= 180.0:
        raise ValidationError("Longitude must be between -180 and 180")


def latitude_span_deg(radius_km: float) -> float:
    """Half-width in degrees of the latitude band that can hold points within ``radius_km``.

    Any great-circle path is at least as long as its north-south component
    (R * |dlat|), so points outside this band are never within the radius.
    """
    return math.degrees(radius_km / EARTH_RADIUS_KM)
