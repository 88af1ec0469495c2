"""RecordCoordinator: bounded, order-preserving concurrent record decoding.

Producers reserve a record's dataset slot before handing the record to the
coordinator, so placement follows source order no matter which task finishes
first. The coordinator itself only bounds how many decode tasks run at once
and surfaces failures:

- at most `max_concurrency` tasks are in flight; when the limit is reached
  `submit` waits for the oldest outstanding task before starting another,
- tasks are awaited in dispatch order, so the first failure in source order
  is the one re-raised,
- once a task fails, the remaining tasks are cancelled and allowed to settle.
  Samples already committed by finished tasks are kept.

Decode work is CPU bound Python, so each task runs in a worker thread of a
pool owned by the coordinator and the event loop stays free for the producer.
A worker that already started cannot be interrupted; settling waits for it,
so no task touches the dataset after the coordinator has exited.
"""
from __future__ import annotations

import asyncio
import functools
import logging
from collections import deque
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType
from typing import Any

logger = logging.getLogger(__name__)


DEFAULT_MAX_CONCURRENCY = 4


class RecordCoordinator:
    """Runs submitted decode callables with bounded concurrency."""

    def __init__(self, max_concurrency: int = DEFAULT_MAX_CONCURRENCY) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self.max_concurrency = max_concurrency
        self.submitted = 0
        self.completed = 0
        self._pending: deque[asyncio.Future[Any]] = deque()
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrency, thread_name_prefix="chunkfeed-decode"
        )

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    async def submit(self, fn: Callable[..., Any], *args: Any) -> None:
        """Start `fn(*args)` in a worker thread, waiting for room first."""
        while len(self._pending) >= self.max_concurrency:
            await self._settle_oldest()
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._executor, functools.partial(fn, *args))
        self._pending.append(future)
        self.submitted += 1

    async def drain(self) -> None:
        """Wait for every outstanding task, in dispatch order."""
        while self._pending:
            await self._settle_oldest()

    async def cancel(self) -> None:
        """Cancel outstanding tasks and wait for running workers to finish."""
        pending = list(self._pending)
        self._pending.clear()
        for future in pending:
            future.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.debug("cancelled %d outstanding decode tasks", len(pending))
        await self.close()

    async def close(self) -> None:
        """Shut the worker pool down once every started worker has returned."""
        await asyncio.to_thread(
            functools.partial(self._executor.shutdown, wait=True, cancel_futures=True)
        )

    async def _settle_oldest(self) -> None:
        future = self._pending.popleft()
        try:
            await future
        except BaseException:
            await self.cancel()
            raise
        self.completed += 1

    async def __aenter__(self) -> "RecordCoordinator":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            await self.cancel()
            return
        try:
            await self.drain()
        finally:
            await self.close()
