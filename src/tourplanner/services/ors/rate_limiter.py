"""Token bucket used to keep outbound ORS calls inside the account quota."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RateLimiter:
    """Allow ``requests`` calls per ``interval_seconds``; extra calls wait in FIFO order.

    The whole bucket refills once per elapsed interval.
    """

    def __init__(
        self,
        requests: int,
        interval_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if requests <= 0 or interval_seconds <= 0:
            raise ValueError("Rate limiter requires positive request and interval values.")
        self.capacity = requests
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._tokens = requests
        self._last_refill = clock()
        # asyncio.Lock wakes waiters in FIFO order
        self._lock = asyncio.Lock()

    @property
    def tokens(self) -> int:
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        if self._tokens >= self.capacity:
            self._last_refill = now
            return
        elapsed = now - self._last_refill
        if elapsed >= self.interval_seconds:
            intervals = int(elapsed // self.interval_seconds)
            self._tokens = min(self.capacity, self._tokens + intervals * self.capacity)
            self._last_refill += intervals * self.interval_seconds

    async def acquire(self) -> None:
        """Take one token, sleeping until the next refill when the bucket is empty."""

        async with self._lock:
            while True:
                self._refill()
                if self._tokens > 0:
                    self._tokens -= 1
                    return
                delay = max(0.0, self.interval_seconds - (self._clock() - self._last_refill))
                logger.debug(f"Rate limit reached, waiting {delay:.2f}s for the next refill")
                await asyncio.sleep(delay)

    async def schedule(self, call: Callable[[], Awaitable[T]]) -> T:
        await self.acquire()
        return await call()
