"""Token bucket used to throttle requests against one book source."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from .errors import RateLimitCancelledError

_LOGGER = logging.getLogger(__name__)


class TokenBucket:
    """Hold up to ``capacity`` permits and add one back every ``refill_period`` seconds.

    Permits taken by `acquire` are never returned. Ticks missed while the loop
    was busy are skipped, so a stalled bucket never refills in a burst. Waiters
    are served in arrival order.
    """

    def __init__(self, capacity: int, refill_period: float) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if refill_period <= 0:
            raise ValueError("refill_period must be positive")
        self.capacity = capacity
        self.refill_period = refill_period
        self._available = capacity
        self._condition = asyncio.Condition()
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def available(self) -> int:
        return self._available

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        if self._closed:
            raise RateLimitCancelledError("Token bucket is closed")
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(
                self._refill_loop(), name="token-bucket-refill"
            )

    async def acquire(self) -> None:
        if not self._closed:
            self.start()
        async with self._condition:
            while self._available == 0:
                if self._closed:
                    raise RateLimitCancelledError("Token bucket was closed while waiting for a permit")
                await self._condition.wait()
            self._available -= 1

    async def close(self) -> None:
        """Stop refilling. Waiters fail once the remaining permits are gone."""
        if self._closed:
            return
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        async with self._condition:
            self._condition.notify_all()

    async def __aenter__(self) -> "TokenBucket":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _refill_loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.refill_period
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            missed = int((loop.time() - next_tick) // self.refill_period)
            if missed > 0:
                _LOGGER.debug("Token bucket skipped %d refill ticks", missed)
            next_tick += (max(missed, 0) + 1) * self.refill_period
            async with self._condition:
                if self._available < self.capacity:
                    self._available += 1
                    self._condition.notify(1)
