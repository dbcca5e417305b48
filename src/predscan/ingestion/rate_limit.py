"""Minimum-interval rate limiter with random jitter for the upstream REST APIs."""

from __future__ import annotations

import asyncio
import random
import time
from typing import Callable


class JitterRateLimiter:
    """Spaces calls at least ``base_interval + uniform(0, jitter)`` seconds apart.

    State is one last-call timestamp plus one lock. Waiters queue on the lock in
    arrival order and are released one after another, never together after an
    idle period. A waiter cancelled mid-wait releases the lock without recording
    a call, so the next waiter is still spaced from the last real call.
    """

    def __init__(
        self,
        base_interval: float = 1.5,
        jitter: float = 1.0,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_interval = base_interval
        self.jitter = jitter
        self._rng = rng or random.Random()
        self._clock = clock
        self._last_call: float | None = None
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        """Suspend until this caller may issue its request."""
        async with self._lock:
            required = self.base_interval + self._rng.uniform(0, self.jitter)
            if self._last_call is not None:
                elapsed = self._clock() - self._last_call
                if elapsed < required:
                    await asyncio.sleep(required - elapsed)
            self._last_call = self._clock()

    def reset(self) -> None:
        """Forget the last call (e.g. after a long idle period)."""
        self._last_call = None

    @property
    def waiting(self) -> bool:
        return self._lock.locked()

    def stats(self) -> dict[str, float]:
        return {"base_interval": self.base_interval, "jitter": self.jitter}


def backoff_delay(retry_count: int, base_delay: float = 3.0, jitter: float = 0.0) -> float:
    """Delay in seconds before retry number ``retry_count + 1``. Exponential backoff."""
    return base_delay * (2 ** retry_count) + jitter
