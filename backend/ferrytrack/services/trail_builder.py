"""
Trail construction from cached ping history.

A vessel's trail is its recent pings (idle-at-dock runs collapsed to their
last point) followed by its live smoothed position, drawn as an
interpolating parametric spline.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta

import numpy as np
from scipy.interpolate import splev, splprep

from ferrytrack.config import settings
from ferrytrack.models.schemas import AnimationState, Ping, Trail, utc_now

logger = logging.getLogger("ferrytrack.trail_builder")


def filter_dock_runs(pings: list[Ping]) -> list[Ping]:
    """Keep under-way pings, plus the last dock ping before each departure."""
    return [
        ping
        for i, ping in enumerate(pings)
        if not ping.at_dock or (i < len(pings) - 1 and not pings[i + 1].at_dock)
    ]


class TrailBuilder:
    def __init__(
        self,
        history_minutes: float | None = None,
        recent_cutoff_minutes: float | None = None,
        min_points: int | None = None,
        samples_per_segment: int | None = None,
    ):
        self.history = timedelta(
            minutes=settings.history_minutes if history_minutes is None else history_minutes
        )
        self.recent_cutoff = timedelta(
            minutes=settings.trail_recent_cutoff_minutes if recent_cutoff_minutes is None else recent_cutoff_minutes
        )
        self.min_points = settings.trail_min_points if min_points is None else min_points
        self.samples_per_segment = (
            settings.trail_samples_per_segment if samples_per_segment is None else samples_per_segment
        )

    def select_history(self, pings: Iterable[Ping], now: datetime) -> list[Ping]:
        start = now - self.history
        end = now - self.recent_cutoff
        return [p for p in pings if start <= p.timestamp < end]

    def build_trail(
        self,
        vessel_id: int,
        pings: list[Ping],
        live: AnimationState,
        now: datetime | None = None,
    ) -> Trail | None:
        now = now or utc_now()
        history = filter_dock_runs(self.select_history(pings, now))

        points = [(p.longitude, p.latitude) for p in history]
        points.append((live.displayed_longitude, live.displayed_latitude))
        point_count = len(points)
        if point_count < self.min_points:
            return None

        points = _drop_repeats(points)
        if len(points) < 2:
            return None

        try:
            coordinates = self._spline(points)
            smoothed = True
        except (ValueError, TypeError, ArithmeticError) as e:
            logger.warning("Spline failed for vessel %d (%d points), using polyline: %s", vessel_id, len(points), e)
            coordinates = points
            smoothed = False

        return Trail(vessel_id=vessel_id, coordinates=coordinates, smoothed=smoothed, point_count=point_count)

    def build_trails(
        self,
        states: Iterable[AnimationState],
        pings_by_vessel: dict[int, list[Ping]],
        now: datetime | None = None,
    ) -> dict[int, Trail]:
        now = now or utc_now()
        trails: dict[int, Trail] = {}
        for state in states:
            try:
                trail = self.build_trail(state.vessel_id, pings_by_vessel.get(state.vessel_id, []), state, now)
            except Exception as e:
                logger.error("Trail build failed for vessel %d: %s", state.vessel_id, e)
                continue
            if trail is not None:
                trails[state.vessel_id] = trail
        return trails

    def _spline(self, points: list[tuple[float, float]]) -> list[tuple[float, float]]:
        xy = np.asarray(points, dtype=float)
        if not np.all(np.isfinite(xy)):
            raise ValueError("trail contains non-finite coordinates")

        degree = min(3, len(points) - 1)
        tck, _ = splprep([xy[:, 0], xy[:, 1]], k=degree, s=0)
        samples = self.samples_per_segment * (len(points) - 1) + 1
        lon, lat = splev(np.linspace(0.0, 1.0, samples), tck)
        if not (np.all(np.isfinite(lon)) and np.all(np.isfinite(lat))):
            raise ValueError("spline produced non-finite coordinates")
        return [(float(x), float(y)) for x, y in zip(lon, lat)]


def _drop_repeats(points: list[tuple[float, float]]) -> list[tuple[float, float]]:
    out = [points[0]]
    for p in points[1:]:
        if p != out[-1]:
            out.append(p)
    return out
