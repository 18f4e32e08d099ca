"""Keeps stored ping history fed from the live feed and trimmed to the retention window."""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Protocol

from ferrytrack.config import settings
from ferrytrack.models.schemas import VesselSnapshot, utc_now
from ferrytrack.services.tracking_context import VesselTrackingContext

logger = logging.getLogger("ferrytrack.ping_recorder")


class PingSink(Protocol):
    async def record(self, snapshots: Iterable[VesselSnapshot]) -> int: ...


class PingStore(Protocol):
    async def delete_older_than(self, cutoff: datetime, limit: int) -> int: ...


class PingRecorder:
    def __init__(self, context: VesselTrackingContext, sink: PingSink):
        self.context = context
        self._sink = sink
        self._last_recorded: dict[int, datetime] = {}

    async def record(self) -> int:
        fresh = [
            state.last_raw_snapshot
            for state in self.context.animated_vessels()
            if self._is_new(state.last_raw_snapshot)
        ]
        if not fresh:
            return 0

        written = await self._sink.record(fresh)
        for snapshot in fresh:
            self._last_recorded[snapshot.vessel_id] = snapshot.timestamp
        logger.info("Recorded %d vessel ping(s)", written)
        return written

    def _is_new(self, snapshot: VesselSnapshot) -> bool:
        last = self._last_recorded.get(snapshot.vessel_id)
        return last is None or snapshot.timestamp > last


class PingRetention:
    """Deletes stored pings older than the retention window, oldest first, in batches."""

    def __init__(
        self,
        store: PingStore,
        retention_hours: float | None = None,
        batch_size: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self.retention = timedelta(
            hours=settings.ping_retention_hours if retention_hours is None else retention_hours
        )
        self.batch_size = settings.ping_cleanup_batch if batch_size is None else batch_size
        self._clock = clock

    async def cleanup(self) -> int:
        cutoff = self._clock() - self.retention
        total = 0
        while True:
            deleted = await self._store.delete_older_than(cutoff, self.batch_size)
            total += deleted
            if deleted < self.batch_size:
                break

        if total:
            logger.info("Deleted %d ping(s) older than %s", total, cutoff.isoformat())
        return total
