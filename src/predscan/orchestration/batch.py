"""Bounded-concurrency fan-out and timeout-bounded aggregation.

``fan_out`` runs an operation over many items in chunks of ``concurrency``,
isolating failures to their own result slot. ``race`` waits for a complete
computation up to a deadline and otherwise adopts a fallback result.

The race does not cancel the losing computation: it keeps running to
completion and its result is discarded. Outstanding work is therefore bounded
only by the fan-out's concurrency cap; abandoned tasks are tracked so shutdown
can ``drain()`` them.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Hashable, Sequence, TypeVar

import structlog

log = structlog.get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class BatchResult(Generic[R]):
    """Outcome for one fanned-out item."""

    index: int
    key: Hashable
    success: bool
    value: R | None = None
    error: str | None = None


class BatchOrchestrator:
    """Fans async work out under a concurrency cap and races it against deadlines."""

    def __init__(self, concurrency: int = 5) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.concurrency = concurrency
        self._abandoned: set[asyncio.Task[Any]] = set()

    async def fan_out(
        self,
        items: Sequence[T],
        operation: Callable[[T], Awaitable[R]],
        key: Callable[[T], Hashable] | None = None,
    ) -> list[BatchResult[R]]:
        """Run operation over items, at most ``concurrency`` at a time.

        Results come back in input order regardless of completion order.
        """
        results: list[BatchResult[R] | None] = [None] * len(items)

        async def run_one(index: int, item: T) -> None:
            item_key = key(item) if key is not None else index
            try:
                value = await operation(item)
            except Exception as e:
                log.warning("batch_item_failed", key=item_key, error=str(e) or type(e).__name__)
                results[index] = BatchResult(index, item_key, False, error=str(e) or type(e).__name__)
            else:
                results[index] = BatchResult(index, item_key, True, value=value)

        for start in range(0, len(items), self.concurrency):
            chunk = items[start : start + self.concurrency]
            await asyncio.gather(*(run_one(start + i, item) for i, item in enumerate(chunk)))
        return [r for r in results if r is not None]

    async def race(
        self,
        work: Awaitable[T],
        timeout: float,
        fallback: Callable[[], T],
    ) -> T:
        """Return work's result if it finishes within timeout, else fallback().

        A late computation is left running; its result is discarded.
        """
        task = asyncio.ensure_future(work)
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if task in done:
            return task.result()
        log.warning("race_timeout", timeout=timeout, abandoned=len(self._abandoned) + 1)
        self._abandoned.add(task)
        task.add_done_callback(self._discard)
        return fallback()

    def _discard(self, task: asyncio.Task[Any]) -> None:
        self._abandoned.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.warning("abandoned_task_failed", error=str(exc) or type(exc).__name__)

    @property
    def pending(self) -> int:
        """Abandoned computations still running."""
        return len(self._abandoned)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for abandoned computations; cancel whatever outlives timeout."""
        if not self._abandoned:
            return
        tasks = set(self._abandoned)
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.wait(still_running)
