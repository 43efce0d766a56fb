# simplechain/operation_queue.py
"""
FIFO serialization of asynchronous units of work.

At most one unit runs at a time. Every submission gets its own future that
resolves with the unit's result or fails with its exception, and a failing
unit never stops the units queued behind it.
"""

import asyncio
import functools
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple

logger = logging.getLogger(__name__)

UnitOfWork = Callable[[], Awaitable[Any]]


class OperationQueue:
    """
    Runs submitted coroutine functions one after another, in submission order.

    A single drainer task pops the backlog in a loop, so units submitted while
    the queue is busy (including from inside a running unit) are simply
    appended and picked up later without recursion.
    """

    def __init__(self, name: str = "ledger"):
        self.name = name
        self._backlog: Deque[Tuple[UnitOfWork, asyncio.Future]] = deque()
        self._running = False
        self._drainer: Optional[asyncio.Task] = None

    @property
    def busy(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return len(self._backlog)

    def submit(self, unit: Callable[..., Awaitable[Any]], *args, **kwargs) -> asyncio.Future:
        """
        Queues `unit(*args, **kwargs)` and returns a future for its outcome.
        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._backlog.append((functools.partial(unit, *args, **kwargs), future))

        if self._running:
            if self._drainer is not None and asyncio.current_task() is self._drainer:
                logger.debug(f"[{self.name}] Re-entrant submission queued behind {self.pending - 1} unit(s).")
            return future

        self._running = True
        self._drainer = loop.create_task(self._drain())
        return future

    async def _drain(self) -> None:
        try:
            while self._backlog:
                unit, future = self._backlog.popleft()
                if future.done():
                    # Cancelled by its caller before it got a turn.
                    continue
                try:
                    result = await unit()
                except asyncio.CancelledError:
                    if not future.done():
                        future.cancel()
                    if asyncio.current_task().cancelling():
                        # The drainer itself is being torn down; nothing left will run.
                        self._cancel_backlog()
                        raise
                    logger.debug(f"[{self.name}] Unit was cancelled.")
                except Exception as e:
                    logger.debug(f"[{self.name}] Unit failed: {e!r}")
                    if not future.done():
                        future.set_exception(e)
                else:
                    if not future.done():
                        future.set_result(result)
        finally:
            self._running = False
            self._drainer = None
            if self._backlog:
                self._running = True
                self._drainer = asyncio.get_running_loop().create_task(self._drain())

    def _cancel_backlog(self) -> None:
        while self._backlog:
            _, future = self._backlog.popleft()
            future.cancel()
