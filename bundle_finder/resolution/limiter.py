"""
Concurrency Limiter Module
==========================

Bounded-parallelism gate for coroutine tasks. Tasks are admitted in
submission order; when a running task settles its slot is handed straight
to the oldest waiting task.
"""

from __future__ import annotations

import asyncio
import math
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


class ConcurrencyLimiter:
    """
    FIFO concurrency limiter.

    A non-positive, NaN or infinite limit disables limiting: every task
    runs immediately.
    """

    def __init__(self, max_concurrent: float) -> None:
        self.max_concurrent = max_concurrent
        self.unlimited = not (
            isinstance(max_concurrent, (int, float))
            and math.isfinite(max_concurrent)
            and max_concurrent > 0
        )
        self._active = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def active(self) -> int:
        """Number of tasks currently running."""
        return self._active

    @property
    def pending(self) -> int:
        """Number of tasks waiting for a slot."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def schedule(self, task: Callable[[], Awaitable[T]]) -> T:
        """
        Run a task once a slot is free.

        Args:
            task: Zero-argument callable returning an awaitable

        Returns:
            Whatever the task returns; its exception propagates unchanged
        """
        if self.unlimited:
            return await task()

        await self._acquire()
        try:
            return await task()
        finally:
            self._release()

    async def _acquire(self) -> None:
        if self._active < self.max_concurrent and self.pending == 0:
            self._active += 1
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            # Slot was already handed over; pass it on
            if waiter.done() and not waiter.cancelled():
                self._release()
            raise

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Hand the slot over without touching the active count
                waiter.set_result(None)
                return
        self._active -= 1


def create_limiter(max_concurrent: float) -> Callable[[Callable[[], Awaitable[T]]], Awaitable[T]]:
    """
    Create a limiter and return its schedule function.

    Args:
        max_concurrent: Maximum number of tasks running at once

    Returns:
        The bound schedule coroutine function
    """
    return ConcurrencyLimiter(max_concurrent).schedule
