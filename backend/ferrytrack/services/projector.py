"""
Latency-compensating position projection.

Feed positions are already several seconds old when they arrive, so each
snapshot is pushed forward along its reported heading at its reported speed
before the smoother blends toward it.
"""

import logging
import math

from ferrytrack.config import settings
from ferrytrack.models.schemas import VesselSnapshot
from ferrytrack.services.geodesy import KNOTS_TO_KM_PER_SECOND, destination_point

logger = logging.getLogger("ferrytrack.projector")


def project_snapshot(
    snapshot: VesselSnapshot,
    seconds: float | None = None,
    min_knots: float | None = None,
    max_knots: float | None = None,
) -> VesselSnapshot:
    """Advance a snapshot's position by `seconds` of travel.

    Args:
        snapshot: Raw feed snapshot.
        seconds: Projection horizon (default settings.projection_seconds).
        min_knots: Speeds below this are treated as stationary noise.
        max_knots: Speeds above this are treated as invalid.

    Returns:
        A copy with latitude/longitude moved, or the input itself when the
        projection is skipped or fails.
    """
    seconds = settings.projection_seconds if seconds is None else seconds
    min_knots = settings.projection_min_knots if min_knots is None else min_knots
    max_knots = settings.projection_max_knots if max_knots is None else max_knots

    speed = snapshot.speed_knots
    heading = snapshot.heading_deg
    if not (math.isfinite(speed) and math.isfinite(heading)):
        return snapshot
    if speed < min_knots or speed > max_knots:
        return snapshot

    distance_km = speed * KNOTS_TO_KM_PER_SECOND * seconds
    try:
        lat, lon = destination_point(snapshot.latitude, snapshot.longitude, distance_km, heading)
    except (ValueError, ArithmeticError) as e:
        logger.warning("Projection failed for vessel %d: %s", snapshot.vessel_id, e)
        return snapshot

    return snapshot.model_copy(update={"latitude": lat, "longitude": lon})
