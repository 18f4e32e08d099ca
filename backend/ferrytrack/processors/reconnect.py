"""Debounced reconnect trigger.

External "we are back" signals (app foregrounded, network restored) tend to
arrive in bursts. The first signal fires the callback immediately; signals
arriving within the debounce window after it are dropped.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from ferrytrack.config import settings

logger = logging.getLogger("ferrytrack.reconnect")


class ReconnectDebouncer:
    def __init__(
        self,
        callback: Callable[[], Awaitable],
        debounce: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._callback = callback
        self.debounce = settings.reconnect_debounce if debounce is None else debounce
        self._clock = clock
        self._last_fired: float | None = None
        self._tasks: set[asyncio.Task] = set()

    def signal(self, reason: str = "") -> bool:
        """Fire the callback unless one fired within the debounce window."""
        now = self._clock()
        if self._last_fired is not None and now - self._last_fired < self.debounce:
            logger.debug("Reconnect signal coalesced (%s)", reason or "unspecified")
            return False

        self._last_fired = now
        logger.info("Reconnect signal (%s), refreshing", reason or "unspecified")
        task = asyncio.create_task(self._run(), name="reconnect_refresh")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _run(self):
        try:
            refreshed = await self._callback()
        except Exception as e:
            logger.error("Reconnect callback failed: %s", e)
            return
        if refreshed is False:
            logger.info("Reconnect refresh skipped, another fetch is in flight or it failed")

    async def aclose(self):
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
