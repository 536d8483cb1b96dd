"""Great-circle distance helpers for proximity decisions."""

import math

from firelink.schemas.common import BoundingBox, Coordinates

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.32

# 111.32 km/degree slightly overstates a spherical degree, so callers that
# pre-filter with bounding_box widen the radius a little to keep boundary
# matches inside the box.
BOX_PADDING = 1.01


def distance_km(a: Coordinates, b: Coordinates) -> float:
    """
    Great-circle distance between two points using the haversine formula.

    Symmetric and non-negative. Inputs are assumed valid (range checks
    happen when the Coordinates are built).
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = math.radians(b.latitude - a.latitude)
    d_lng = math.radians(b.longitude - a.longitude)

    x = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    # Rounding can push x just past 1.0 for near-antipodal points
    x = min(1.0, max(0.0, x))

    return 2 * math.atan2(math.sqrt(x), math.sqrt(1 - x)) * EARTH_RADIUS_KM


def bounding_box(center: Coordinates, radius_km: float) -> BoundingBox:
    """
    Approximate box around center for cheap pre-filtering.

    Falls back to the full longitude band when the box touches a pole or
    crosses the antimeridian, so it never excludes a real match there.
    """
    lat_delta = radius_km / KM_PER_DEGREE_LAT
    min_lat = max(-90.0, center.latitude - lat_delta)
    max_lat = min(90.0, center.latitude + lat_delta)

    cos_lat = math.cos(math.radians(center.latitude))
    if min_lat <= -90.0 or max_lat >= 90.0 or cos_lat <= 1e-12:
        return BoundingBox(min_lat=min_lat, max_lat=max_lat, min_lng=-180.0, max_lng=180.0)

    lng_delta = radius_km / (KM_PER_DEGREE_LAT * cos_lat)
    min_lng = center.longitude - lng_delta
    max_lng = center.longitude + lng_delta
    if min_lng < -180.0 or max_lng > 180.0:
        min_lng, max_lng = -180.0, 180.0

    return BoundingBox(min_lat=min_lat, max_lat=max_lat, min_lng=min_lng, max_lng=max_lng)
