"""Geospatial helpers: haversine distance, radius checks and bounding boxes."""

from __future__ import annotations

import math
from typing import Any, Tuple

from bitebase.core.errors import InvalidCoordinateError

EARTH_RADIUS_METERS = 6_371_008.8
# keeps SQL prefilter boxes strictly larger than the radius circle
BOUNDING_BOX_MARGIN = 1.001


def validate_coordinates(latitude: Any, longitude: Any) -> Tuple[float, float]:
    """Return ``(lat, lng)`` as floats or raise InvalidCoordinateError."""
    if isinstance(latitude, bool) or isinstance(longitude, bool):
        raise InvalidCoordinateError("coordinates must be numeric")
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError) as exc:
        raise InvalidCoordinateError(f"coordinates must be numeric, got ({latitude!r}, {longitude!r})") from exc

    if math.isnan(lat) or math.isnan(lng):
        raise InvalidCoordinateError("coordinates must not be NaN")
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinateError(f"latitude {lat} is outside [-90, 90]")
    if not -180.0 <= lng <= 180.0:
        raise InvalidCoordinateError(f"longitude {lng} is outside [-180, 180]")
    return lat, lng


def _lat_lng(point: Any) -> Tuple[float, float]:
    latitude = getattr(point, "latitude", None)
    longitude = getattr(point, "longitude", None)
    if latitude is None or longitude is None:
        raise InvalidCoordinateError(f"expected a point with latitude/longitude, got {point!r}")
    return validate_coordinates(latitude, longitude)


def distance_meters(a: Any, b: Any) -> float:
    """Great-circle distance between two points using the haversine formula."""
    lat1, lng1 = _lat_lng(a)
    lat2, lng2 = _lat_lng(b)

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


def is_within_radius(center: Any, point: Any, radius_meters: float) -> bool:
    return distance_meters(center, point) <= radius_meters


def bounding_box(center: Any, radius_meters: float) -> Tuple[float, float, float, float]:
    """Conservative ``(min_lat, min_lng, max_lat, max_lng)`` box around a circle.

    Used as an index-friendly SQL prefilter; callers still apply the exact
    distance check afterwards. Longitude spans the whole globe near the poles.
    """
    lat, lng = _lat_lng(center)
    d_lat = math.degrees(radius_meters / EARTH_RADIUS_METERS) * BOUNDING_BOX_MARGIN
    min_lat = max(-90.0, lat - d_lat)
    max_lat = min(90.0, lat + d_lat)

    cos_lat = math.cos(math.radians(max(abs(min_lat), abs(max_lat))))
    if cos_lat <= 1e-9:
        return min_lat, -180.0, max_lat, 180.0
    d_lng = d_lat / cos_lat
    if lng - d_lng < -180.0 or lng + d_lng > 180.0:
        # crosses the antimeridian
        return min_lat, -180.0, max_lat, 180.0
    return min_lat, lng - d_lng, max_lat, lng + d_lng
