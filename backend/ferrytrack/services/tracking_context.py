"""Per-process owner of all vessel tracking state."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from ferrytrack.models.schemas import AnimationState, Trail, TrackingFrame, VesselSnapshot, utc_now
from ferrytrack.services.ping_cache import IncrementalPingCache
from ferrytrack.services.smoother import ExponentialSmoother
from ferrytrack.services.trail_builder import TrailBuilder

logger = logging.getLogger("ferrytrack.tracking")


class VesselTrackingContext:
    def __init__(
        self,
        smoother: ExponentialSmoother,
        ping_cache: IncrementalPingCache,
        trail_builder: TrailBuilder | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.smoother = smoother
        self.ping_cache = ping_cache
        self.trail_builder = trail_builder or TrailBuilder()
        self._clock = clock
        self._subscribers: set[asyncio.Queue] = set()

    def ingest_snapshots(self, batch: Iterable[VesselSnapshot]) -> int:
        return self.smoother.ingest(batch)

    def tick(self) -> list[AnimationState]:
        states = self.smoother.tick()
        self._publish(TrackingFrame(generated_at=self._clock(), vessels=states))
        return states

    def animated_vessels(self) -> list[AnimationState]:
        return self.smoother.states

    def trail_for(self, vessel_id: int) -> Trail | None:
        state = self.smoother.state_for(vessel_id)
        if state is None:
            return None
        return self.trail_builder.build_trail(
            vessel_id, self.ping_cache.pings_for(vessel_id), state, self._clock()
        )

    def trails(self) -> dict[int, Trail]:
        return self.trail_builder.build_trails(
            self.smoother.states, self.ping_cache.by_vessel, self._clock()
        )

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        self._subscribers.discard(queue)

    def _publish(self, frame: TrackingFrame):
        for queue in self._subscribers:
            # Slow consumers only ever see the newest frame
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(frame)
