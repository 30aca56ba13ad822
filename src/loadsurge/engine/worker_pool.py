"""Bounded pool of in-flight request tasks."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from loadsurge._internal.errors import CapacityError
from loadsurge._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from typing import Any

logger = get_logger("engine.worker_pool")

# Time allowed for cancelled tasks to record their abandonment
_CANCEL_WAIT = 2.0


class WorkerPool:
    """Caps the number of concurrently running request tasks.

    Submission never waits: when every slot is taken the coroutine is
    rejected immediately so the caller can count it as skipped.  Finished
    tasks release their slot through a done-callback.

    Attributes:
        size: Maximum number of in-flight tasks.
    """

    def __init__(self, size: int) -> None:
        """Initialize an empty pool.

        Args:
            size: Maximum number of in-flight tasks. Must be positive.

        Raises:
            ValueError: If *size* is not positive.
        """
        if size < 1:
            msg = f"pool size must be positive, got {size}"
            raise ValueError(msg)
        self.size = size
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def in_flight(self) -> int:
        """Return the number of tasks currently occupying a slot."""
        return len(self._tasks)

    @property
    def free_slots(self) -> int:
        """Return the number of slots available right now."""
        return self.size - len(self._tasks)

    def submit(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        """Schedule *coro* in a free slot.

        Args:
            coro: The request coroutine.

        Returns:
            The scheduled task.

        Raises:
            CapacityError: If the pool is saturated or draining.  The
                coroutine is closed without running.
        """
        if self._closed or len(self._tasks) >= self.size:
            coro.close()
            state = "draining" if self._closed else "saturated"
            msg = f"worker pool {state} ({len(self._tasks)}/{self.size} in flight)"
            raise CapacityError(msg)
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def try_submit(self, coro: Coroutine[Any, Any, None]) -> bool:
        """Like :meth:`submit` but report saturation as False."""
        try:
            self.submit(coro)
        except CapacityError:
            return False
        return True

    async def drain(self, grace_period: float) -> int:
        """Stop accepting work and wait for in-flight tasks.

        Tasks still running after *grace_period* seconds are cancelled and
        given a short moment to unwind.

        Args:
            grace_period: Seconds to wait before cancelling.

        Returns:
            The number of tasks that had to be cancelled.
        """
        self._closed = True
        if not self._tasks:
            return 0

        _done, pending = await asyncio.wait(set(self._tasks), timeout=grace_period)

        for task in pending:
            task.cancel()

        if pending:
            logger.info(
                "Abandoning %d in-flight requests after %.1fs grace period",
                len(pending),
                grace_period,
            )
            await asyncio.wait(pending, timeout=_CANCEL_WAIT)

        return len(pending)
