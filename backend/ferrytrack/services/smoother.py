"""
Exponential smoothing of vessel positions for animation.

The feed updates every few seconds; the smoother runs on its own fixed tick
and moves each vessel's displayed position a fixed fraction of the way to its
latest (projected) target. Large jumps are snapped instead of blended.
"""

import logging
import math
from collections.abc import Callable, Iterable
from datetime import datetime

from ferrytrack.config import settings
from ferrytrack.models.schemas import AnimationState, VesselOutcome, VesselSnapshot
from ferrytrack.services.deduplicator import dedupe_snapshots
from ferrytrack.services.geodesy import haversine_km, normalize_heading, shortest_angle
from ferrytrack.services.projector import project_snapshot

logger = logging.getLogger("ferrytrack.smoother")


class ExponentialSmoother:
    def __init__(
        self,
        tick_interval: float | None = None,
        smoothing_period: float | None = None,
        teleport_threshold_km: float | None = None,
        heading_snap_degrees: float | None = None,
        coordinate_precision: int | None = None,
        heading_precision: int | None = None,
        projector: Callable[[VesselSnapshot], VesselSnapshot] = project_snapshot,
    ):
        tick_interval = settings.smoothing_interval if tick_interval is None else tick_interval
        smoothing_period = settings.smoothing_period if smoothing_period is None else smoothing_period
        if tick_interval <= 0 or smoothing_period < tick_interval:
            raise ValueError("smoothing_period must be >= tick_interval > 0")

        self.new_weight = tick_interval / smoothing_period
        self.prev_weight = 1.0 - self.new_weight
        self.teleport_threshold_km = (
            settings.teleport_threshold_km if teleport_threshold_km is None else teleport_threshold_km
        )
        self.heading_snap_degrees = (
            settings.heading_snap_degrees if heading_snap_degrees is None else heading_snap_degrees
        )
        self.coordinate_precision = (
            settings.coordinate_precision if coordinate_precision is None else coordinate_precision
        )
        self.heading_precision = settings.heading_precision if heading_precision is None else heading_precision
        self._project = projector

        self._states: dict[int, AnimationState] = {}
        # vessel_id -> (raw snapshot, projected target)
        self._targets: dict[int, tuple[VesselSnapshot, VesselSnapshot]] = {}
        self._last_seen: dict[int, datetime] = {}
        self.last_outcomes: list[VesselOutcome] = []

    @property
    def states(self) -> list[AnimationState]:
        return list(self._states.values())

    def state_for(self, vessel_id: int) -> AnimationState | None:
        return self._states.get(vessel_id)

    def ingest(self, batch: Iterable[VesselSnapshot]) -> int:
        """Take a feed batch as the new set of smoothing targets.

        An empty batch leaves the current targets in place.
        Returns the number of vessels seen for the first time.
        """
        latest = dedupe_snapshots(batch)
        if not latest:
            return 0

        new_count = 0
        targets: dict[int, tuple[VesselSnapshot, VesselSnapshot]] = {}
        for vessel_id, snapshot in latest.items():
            seen = self._last_seen.get(vessel_id)
            if seen is not None and snapshot.timestamp < seen:
                logger.debug("Ignoring out-of-order snapshot for vessel %d", vessel_id)
                if vessel_id in self._targets:
                    targets[vessel_id] = self._targets[vessel_id]
                continue

            self._last_seen[vessel_id] = snapshot.timestamp
            targets[vessel_id] = (snapshot, self._project(snapshot))

            if vessel_id not in self._states:
                self._states[vessel_id] = AnimationState.from_snapshot(snapshot)
                new_count += 1

        # Vessels missing from this batch have no target and hold still
        self._targets = targets

        if new_count:
            logger.info("Tracking %d new vessel(s), %d total", new_count, len(self._states))
        return new_count

    def tick(self) -> list[AnimationState]:
        """Advance every tracked vessel one step toward its target.

        A vessel whose update fails keeps its previous state but is left out
        of this tick's output.
        """
        outcomes = [self._advance_safe(vessel_id, state) for vessel_id, state in list(self._states.items())]
        self.last_outcomes = outcomes
        return [o.state for o in outcomes if o.ok]

    def _advance_safe(self, vessel_id: int, state: AnimationState) -> VesselOutcome:
        try:
            new_state = self._advance(state, self._targets.get(vessel_id))
        except Exception as e:
            logger.error("Smoothing failed for vessel %d: %s", vessel_id, e)
            return VesselOutcome(vessel_id=vessel_id, error=str(e))
        self._states[vessel_id] = new_state
        return VesselOutcome(vessel_id=vessel_id, state=new_state)

    def _advance(
        self,
        state: AnimationState,
        pending: tuple[VesselSnapshot, VesselSnapshot] | None,
    ) -> AnimationState:
        if pending is None:
            return state

        raw, target = pending
        if not (math.isfinite(target.latitude) and math.isfinite(target.longitude)):
            raise ValueError(f"non-finite target position ({target.latitude}, {target.longitude})")

        distance = haversine_km(
            state.displayed_latitude, state.displayed_longitude, target.latitude, target.longitude
        )
        if distance > self.teleport_threshold_km:
            logger.debug("Vessel %d jumped %.2f km, snapping", state.vessel_id, distance)
            return AnimationState(
                vessel_id=state.vessel_id,
                displayed_latitude=target.latitude,
                displayed_longitude=target.longitude,
                displayed_heading=self._snap_heading(state.displayed_heading, target.heading_deg),
                last_raw_snapshot=raw,
            )

        return AnimationState(
            vessel_id=state.vessel_id,
            displayed_latitude=self._blend(state.displayed_latitude, target.latitude),
            displayed_longitude=self._blend(state.displayed_longitude, target.longitude),
            displayed_heading=self._blend_heading(state.displayed_heading, target.heading_deg),
            last_raw_snapshot=raw,
        )

    def _blend(self, prev: float, target: float) -> float:
        precision = self.coordinate_precision
        blended = round(self.prev_weight * prev + self.new_weight * target, precision)
        # Once a step can no longer move the rounded value, land on the target
        if blended == round(prev, precision):
            return round(target, precision)
        return blended

    def _blend_heading(self, prev: float, target: float) -> float:
        if not (math.isfinite(target) and math.isfinite(prev)):
            return self._snap_heading(prev, target)

        delta = shortest_angle(prev, target)
        if abs(delta) > self.heading_snap_degrees:
            return self._snap_heading(prev, target)

        precision = self.heading_precision
        blended = normalize_heading(round(normalize_heading(prev + self.new_weight * delta), precision))
        if blended == normalize_heading(round(normalize_heading(prev), precision)):
            # Land exactly, so the result never overshoots the target
            return self._snap_heading(prev, target)
        return blended

    @staticmethod
    def _snap_heading(prev: float, target: float) -> float:
        if not math.isfinite(target):
            return prev
        return normalize_heading(target)
