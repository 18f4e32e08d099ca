"""
Rolling-window cache of historical vessel pings.

Initial hydration (and recovery) loads the whole history window; after that
each tick fetches only pings newer than the watermark and appends them.
Every update prunes pings that have fallen out of the window.
"""

import asyncio
import bisect
import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from ferrytrack.config import settings
from ferrytrack.ingestors.ping_source import PingSource
from ferrytrack.models.enums import FetchKind
from ferrytrack.models.schemas import CacheStatus, Ping, epoch_ms, utc_now

logger = logging.getLogger("ferrytrack.ping_cache")


class IncrementalPingCache:
    def __init__(
        self,
        source: PingSource,
        history_minutes: float | None = None,
        stale_after: float | None = None,
        fetch_limit: int | None = None,
        fetch_timeout: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._source = source
        history_minutes = settings.history_minutes if history_minutes is None else history_minutes
        self.history_window_ms = int(history_minutes * 60 * 1000)
        self.stale_after_ms = int((settings.stale_after if stale_after is None else stale_after) * 1000)
        self.fetch_limit = settings.ping_fetch_limit if fetch_limit is None else fetch_limit
        self.fetch_timeout = settings.ping_fetch_timeout if fetch_timeout is None else fetch_timeout
        self._clock = clock

        self._by_vessel: dict[int, list[Ping]] = {}
        self._watermark_ms = 0
        self._is_fetching = False

    @property
    def watermark_ms(self) -> int:
        return self._watermark_ms

    @property
    def is_fetching(self) -> bool:
        return self._is_fetching

    @property
    def by_vessel(self) -> dict[int, list[Ping]]:
        return {vessel_id: list(pings) for vessel_id, pings in self._by_vessel.items()}

    def pings_for(self, vessel_id: int) -> list[Ping]:
        return list(self._by_vessel.get(vessel_id, ()))

    def _now_ms(self) -> int:
        return epoch_ms(self._clock())

    async def refresh(self) -> bool:
        """Replace the cache with the full history window.

        Returns False if another fetch was in flight or the fetch failed.
        """
        if self._is_fetching:
            logger.info("Refresh skipped, fetch already in flight")
            return False

        cutoff = self._now_ms() - self.history_window_ms
        pings = await self._guarded_fetch(FetchKind.REFRESH, cutoff - 1)
        if pings is None:
            return False

        grouped: dict[int, list[Ping]] = {}
        self._merge_into(grouped, pings)
        self._by_vessel = grouped
        self._watermark_ms = max((p.timestamp_ms for p in pings), default=0)
        self._prune()

        logger.info(
            "Ping cache refreshed: %d pings for %d vessels (watermark=%d)",
            len(pings), len(self._by_vessel), self._watermark_ms,
        )
        return True

    async def tick(self) -> bool:
        """Fetch and merge pings newer than the watermark, then prune."""
        if self._is_fetching:
            logger.debug("Tick skipped, fetch already in flight")
            return False
        if self._watermark_ms == 0:
            return await self.refresh()

        pings = await self._guarded_fetch(FetchKind.TICK, self._watermark_ms)
        if pings is None:
            return False

        self._merge_into(self._by_vessel, pings)
        if pings:
            self._watermark_ms = max(self._watermark_ms, max(p.timestamp_ms for p in pings))
        self._prune()

        if pings:
            logger.debug("Ping cache merged %d new pings (watermark=%d)", len(pings), self._watermark_ms)
        return True

    def is_stale(self) -> bool:
        # A cache that was never hydrated has nothing to go stale
        if self._watermark_ms == 0:
            return False
        return self._now_ms() - self._watermark_ms > self.stale_after_ms

    async def check_staleness(self) -> bool:
        """Watchdog body: refresh when the watermark has stopped advancing."""
        if self._is_fetching or not self.is_stale():
            return False
        logger.warning(
            "Ping cache stale (watermark %.0fs old), refreshing",
            (self._now_ms() - self._watermark_ms) / 1000,
        )
        return await self.refresh()

    def status(self) -> CacheStatus:
        return CacheStatus(
            vessel_count=len(self._by_vessel),
            ping_count=sum(len(p) for p in self._by_vessel.values()),
            watermark_ms=self._watermark_ms,
            is_fetching=self._is_fetching,
            is_stale=self.is_stale(),
        )

    async def _guarded_fetch(self, kind: FetchKind, since_ms: int) -> list[Ping] | None:
        self._is_fetching = True
        try:
            return await self._fetch_all(since_ms)
        except asyncio.TimeoutError:
            logger.error("Ping %s timed out after %.0fs", kind.value, self.fetch_timeout)
            return None
        except Exception as e:
            logger.error("Ping %s failed: %s", kind.value, e)
            return None
        finally:
            self._is_fetching = False

    async def _fetch_all(self, since_ms: int) -> list[Ping]:
        pings: list[Ping] = []
        cursor = since_ms
        while True:
            page = await asyncio.wait_for(
                self._source.fetch_since(cursor, self.fetch_limit),
                timeout=self.fetch_timeout,
            )
            pings.extend(page)
            if len(page) < self.fetch_limit:
                return pings
            next_cursor = page[-1].timestamp_ms
            if next_cursor <= cursor:
                return pings
            cursor = next_cursor

    @staticmethod
    def _merge_into(target: dict[int, list[Ping]], pings: Iterable[Ping]):
        for ping in pings:
            seq = target.setdefault(ping.vessel_id, [])
            if not seq or ping.timestamp > seq[-1].timestamp:
                seq.append(ping)
                continue
            # Sources may hand back a ping at the watermark again
            lo = bisect.bisect_left(seq, ping.timestamp, key=_ping_time)
            hi = bisect.bisect_right(seq, ping.timestamp, key=_ping_time)
            if ping not in seq[lo:hi]:
                seq.insert(hi, ping)

    def _prune(self):
        cutoff = self._now_ms() - self.history_window_ms
        pruned: dict[int, list[Ping]] = {}
        for vessel_id, seq in self._by_vessel.items():
            kept = [p for p in seq if p.timestamp_ms >= cutoff]
            if kept:
                pruned[vessel_id] = kept
        self._by_vessel = pruned


def _ping_time(ping: Ping) -> datetime:
    return ping.timestamp
