"""Background loops driving the tracking pipeline.

Independent repeating tasks: feed polling, the smoother tick, the
incremental ping tick, the ping staleness watchdog and, when enabled, the
ping recorder and its retention cleanup. All of them are owned here and
cancelled together on shutdown.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable

from ferrytrack.config import settings
from ferrytrack.ingestors.wsf_feed import FeedError, WsfFeedClient
from ferrytrack.processors.ping_recorder import PingRecorder, PingRetention
from ferrytrack.services.tracking_context import VesselTrackingContext

logger = logging.getLogger("ferrytrack.scheduler")


async def run_every(name: str, interval: float, fn: Callable):
    logger.info("%s starting (interval=%.1fs)", name, interval)
    while True:
        try:
            await asyncio.sleep(interval)
            result = fn()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            logger.info("%s cancelled", name)
            return
        except Exception as e:
            logger.error("%s error: %s", name, e)


class TrackingScheduler:
    def __init__(
        self,
        context: VesselTrackingContext,
        feed: WsfFeedClient | None = None,
        smoothing_interval: float | None = None,
        feed_poll_interval: float | None = None,
        ping_update_interval: float | None = None,
        watchdog_interval: float | None = None,
        recorder: PingRecorder | None = None,
        record_interval: float | None = None,
        retention: PingRetention | None = None,
        cleanup_interval: float | None = None,
    ):
        self.context = context
        self.feed = feed
        self.smoothing_interval = settings.smoothing_interval if smoothing_interval is None else smoothing_interval
        self.feed_poll_interval = settings.feed_poll_interval if feed_poll_interval is None else feed_poll_interval
        self.ping_update_interval = (
            settings.ping_update_interval if ping_update_interval is None else ping_update_interval
        )
        self.watchdog_interval = settings.watchdog_interval if watchdog_interval is None else watchdog_interval
        self.recorder = recorder
        self.record_interval = settings.ping_record_interval if record_interval is None else record_interval
        self.retention = retention
        self.cleanup_interval = settings.ping_cleanup_interval if cleanup_interval is None else cleanup_interval
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    async def poll_feed(self) -> int:
        if self.feed is None:
            return 0
        try:
            batch = await self.feed.fetch()
        except FeedError as e:
            logger.warning("Feed poll failed: %s", e)
            return 0
        return self.context.ingest_snapshots(batch)

    async def start(self):
        if self.running:
            return

        try:
            await self.poll_feed()
        except Exception as e:
            logger.error("Initial feed poll failed: %s", e)
        await self.context.ping_cache.refresh()

        cache = self.context.ping_cache
        self._tasks = [
            asyncio.create_task(
                run_every("smoother_tick", self.smoothing_interval, self.context.tick),
                name="smoother_tick",
            ),
            asyncio.create_task(
                run_every("ping_tick", self.ping_update_interval, cache.tick),
                name="ping_tick",
            ),
            asyncio.create_task(
                run_every("staleness_watchdog", self.watchdog_interval, cache.check_staleness),
                name="staleness_watchdog",
            ),
        ]
        if self.feed is not None:
            self._tasks.append(
                asyncio.create_task(
                    run_every("feed_poll", self.feed_poll_interval, self.poll_feed),
                    name="feed_poll",
                )
            )
        if self.recorder is not None:
            self._tasks.append(
                asyncio.create_task(
                    run_every("ping_recorder", self.record_interval, self.recorder.record),
                    name="ping_recorder",
                )
            )
        if self.retention is not None:
            self._tasks.append(
                asyncio.create_task(
                    run_every("ping_cleanup", self.cleanup_interval, self.retention.cleanup),
                    name="ping_cleanup",
                )
            )

    async def stop(self):
        logger.info("Stopping %d tracking task(s)...", len(self._tasks))
        for t in self._tasks:
            t.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
