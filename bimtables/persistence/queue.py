"""Single-flight FIFO queue for table writes."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, TypeVar

from bimtables.errors import QueueClearedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UpdateQueue:
    """Run submitted writes one at a time, in submission order.

    A failed write is reported to its own caller only and is never retried.
    Writes run in a worker task, so a write that has started completes
    even if its caller stops waiting.

    Parameters
    ----------
    delay:
        Seconds to pause between consecutive writes.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self._pending: deque[tuple[asyncio.Future, Callable[[], Awaitable[Any]]]] = deque()
        self._worker: asyncio.Task | None = None
        self._in_flight = False

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def is_idle(self) -> bool:
        return not self._in_flight and not self._pending

    async def submit(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Queue ``factory()`` and wait for its result."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._pending.append((future, factory))
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())
        return await asyncio.shield(future)

    async def _drain(self) -> None:
        while self._pending:
            future, factory = self._pending.popleft()
            if future.done():
                continue
            self._in_flight = True
            try:
                result = await factory()
            except Exception as exc:
                logger.debug("Queued update failed", exc_info=True)
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._in_flight = False
            if self._pending and self.delay > 0:
                await asyncio.sleep(self.delay)

    def clear(self) -> int:
        """Reject every update that has not started yet; returns how many."""
        cleared = 0
        while self._pending:
            future, _ = self._pending.popleft()
            if not future.done():
                future.set_exception(QueueClearedError("Queue cleared"))
                cleared += 1
        if cleared:
            logger.info("Cleared %d queued update(s)", cleared)
        return cleared

    async def join(self) -> None:
        """Wait until every queued update has finished."""
        while self._worker is not None and not self._worker.done():
            await asyncio.shield(self._worker)
