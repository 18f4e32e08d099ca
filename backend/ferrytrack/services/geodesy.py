"""Spherical-earth helpers shared by the projector, smoother and trail builder."""

import math

# Mean earth radius in kilometres
EARTH_RADIUS_KM = 6371.0088
KNOTS_TO_KM_PER_SECOND = 1.852 / 3600.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def destination_point(lat: float, lon: float, distance_km: float, bearing_deg: float) -> tuple[float, float]:
    """Point reached travelling `distance_km` from (lat, lon) along the initial bearing.

    Returns:
        Tuple of (lat, lon) in degrees, longitude wrapped to [-180, 180).

    Raises:
        ValueError: if any input or the computed point is not finite.
    """
    if not all(math.isfinite(v) for v in (lat, lon, distance_km, bearing_deg)):
        raise ValueError("destination_point requires finite inputs")

    lat1 = math.radians(lat)
    lon1 = math.radians(lon)
    brng = math.radians(bearing_deg)
    delta = distance_km / EARTH_RADIUS_KM

    lat2 = math.asin(
        math.sin(lat1) * math.cos(delta) + math.cos(lat1) * math.sin(delta) * math.cos(brng)
    )
    lon2 = lon1 + math.atan2(
        math.sin(brng) * math.sin(delta) * math.cos(lat1),
        math.cos(delta) - math.sin(lat1) * math.sin(lat2),
    )

    new_lat = math.degrees(lat2)
    new_lon = ((math.degrees(lon2) + 180) % 360) - 180
    if not (math.isfinite(new_lat) and math.isfinite(new_lon)):
        raise ValueError("destination_point produced a non-finite position")
    return new_lat, new_lon


def normalize_heading(heading: float) -> float:
    return heading % 360.0


def shortest_angle(from_deg: float, to_deg: float) -> float:
    """Signed shortest rotation from `from_deg` to `to_deg`, in (-180, 180]."""
    delta = (to_deg - from_deg) % 360.0
    if delta > 180.0:
        delta -= 360.0
    return delta
