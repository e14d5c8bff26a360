"""Tests for the concurrency limiter module."""

import asyncio
import math

import pytest

from bundle_finder.resolution.limiter import ConcurrencyLimiter, create_limiter


class InFlightCounter:
    """Tracks how many tasks run at once."""

    def __init__(self) -> None:
        self.current = 0
        self.peak = 0
        self.started: list[int] = []

    def task(self, index: int, delay: float = 0.01):
        async def run() -> int:
            self.started.append(index)
            self.current += 1
            self.peak = max(self.peak, self.current)
            try:
                await asyncio.sleep(delay)
            finally:
                self.current -= 1
            return index

        return run


class TestConcurrencyLimiter:
    """Tests for ConcurrencyLimiter."""

    @pytest.mark.asyncio
    async def test_bounds_parallelism(self) -> None:
        """Test that no more than the limit run at once."""
        limiter = ConcurrencyLimiter(3)
        counter = InFlightCounter()

        results = await asyncio.gather(*(limiter.schedule(counter.task(i)) for i in range(10)))

        assert results == list(range(10))
        assert counter.peak == 3
        assert limiter.active == 0
        assert limiter.pending == 0

    @pytest.mark.asyncio
    async def test_fifo_admission(self) -> None:
        """Test that waiting tasks start in submission order."""
        limiter = ConcurrencyLimiter(1)
        counter = InFlightCounter()

        await asyncio.gather(*(limiter.schedule(counter.task(i, delay=0)) for i in range(6)))

        assert counter.started == list(range(6))
        assert counter.peak == 1

    @pytest.mark.asyncio
    async def test_exception_propagates_and_frees_slot(self) -> None:
        """Test that a failing task releases its slot."""
        limiter = ConcurrencyLimiter(1)

        async def fail() -> None:
            raise ValueError("boom")

        async def succeed() -> str:
            return "ok"

        with pytest.raises(ValueError, match="boom"):
            await limiter.schedule(fail)

        assert limiter.active == 0
        assert await limiter.schedule(succeed) == "ok"

    @pytest.mark.asyncio
    async def test_failure_does_not_block_queue(self) -> None:
        """Test that queued tasks still run after a running task fails."""
        limiter = ConcurrencyLimiter(1)

        async def fail() -> None:
            await asyncio.sleep(0.01)
            raise RuntimeError("first failed")

        async def succeed() -> str:
            return "second"

        results = await asyncio.gather(
            limiter.schedule(fail), limiter.schedule(succeed), return_exceptions=True
        )

        assert isinstance(results[0], RuntimeError)
        assert results[1] == "second"

    @pytest.mark.asyncio
    async def test_cancelled_waiter_is_skipped(self) -> None:
        """Test that cancelling a queued task does not strand the queue."""
        limiter = ConcurrencyLimiter(1)
        gate = asyncio.Event()

        async def blocker() -> str:
            await gate.wait()
            return "blocker"

        async def quick() -> str:
            return "quick"

        first = asyncio.create_task(limiter.schedule(blocker))
        await asyncio.sleep(0)
        cancelled = asyncio.create_task(limiter.schedule(quick))
        waiting = asyncio.create_task(limiter.schedule(quick))
        await asyncio.sleep(0)
        assert limiter.pending == 2

        cancelled.cancel()
        await asyncio.sleep(0)
        assert limiter.pending == 1

        gate.set()
        assert await first == "blocker"
        assert await waiting == "quick"
        assert cancelled.cancelled()
        assert limiter.active == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, -1, math.inf, math.nan])
    async def test_unlimited(self, limit: float) -> None:
        """Test that degenerate limits disable limiting."""
        limiter = ConcurrencyLimiter(limit)
        counter = InFlightCounter()

        await asyncio.gather(*(limiter.schedule(counter.task(i)) for i in range(5)))

        assert limiter.unlimited
        assert counter.peak == 5

    @pytest.mark.asyncio
    async def test_create_limiter(self) -> None:
        """Test the schedule function returned by create_limiter."""
        schedule = create_limiter(2)
        counter = InFlightCounter()

        results = await asyncio.gather(*(schedule(counter.task(i)) for i in range(4)))

        assert results == [0, 1, 2, 3]
        assert counter.peak == 2
