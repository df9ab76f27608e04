"""
Unit tests for RateLimitedRunner.

Tests cover:
- Result slots follow input order
- Concurrency ceiling
- Minimum spacing between starts
- Failure isolation between items
- Stop event halts new starts
- Parameter validation

A fake clock/sleep pair keeps spacing checks deterministic.
"""

import asyncio
import pytest

from mexc_watch.core.rate_limiter import RateLimitedRunner


class FakeClock:
    """Monotonic clock advanced only by the runner's sleep calls."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


def make_runner(concurrency: int, rate: float):
    clock = FakeClock()
    runner = RateLimitedRunner(concurrency, rate, clock=clock, sleep=clock.sleep)
    return runner, clock


class TestRateLimitedRunnerValidation:
    """Test constructor validation."""

    def test_zero_concurrency_raises(self):
        with pytest.raises(ValueError, match="concurrency must be >= 1"):
            RateLimitedRunner(0, 5)

    def test_non_positive_rate_raises(self):
        with pytest.raises(ValueError, match="rate_per_second must be positive"):
            RateLimitedRunner(2, 0)

    def test_min_interval_from_rate(self):
        assert RateLimitedRunner(2, 5).min_interval == pytest.approx(0.2)


@pytest.mark.asyncio
class TestRateLimitedRunnerMap:
    """Test batch execution behavior."""

    async def test_empty_batch_returns_empty_list(self):
        runner, _ = make_runner(2, 5)

        assert await runner.map([], self._double) == []

    async def test_results_follow_input_order(self):
        """Test that later items finishing first do not reorder results."""
        runner, _ = make_runner(4, 1000)

        async def slow_for_small(x):
            for _ in range(10 - x):
                await asyncio.sleep(0)
            return x * 2

        results = await runner.map([1, 2, 3, 4, 5], slow_for_small)

        assert results == [2, 4, 6, 8, 10]

    async def test_in_flight_never_exceeds_concurrency(self):
        runner, _ = make_runner(2, 1000)
        in_flight = 0
        peak = 0

        async def track(x):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            for _ in range(5):
                await asyncio.sleep(0)
            in_flight -= 1
            return x

        results = await runner.map(list(range(8)), track)

        assert results == list(range(8))
        assert 1 <= peak <= 2

    async def test_starts_are_spaced_by_min_interval(self):
        """Test that consecutive starts are at least 1/rate seconds apart."""
        runner, clock = make_runner(4, 5)
        starts = []

        async def record(x):
            starts.append(clock.now)
            await asyncio.sleep(0)
            return x

        await runner.map(list(range(6)), record)

        assert len(starts) == 6
        gaps = [b - a for a, b in zip(starts, starts[1:])]
        assert all(gap >= 0.2 - 1e-9 for gap in gaps)
        assert clock.now == pytest.approx(1.0)

    async def test_failed_item_does_not_abort_siblings(self):
        runner, _ = make_runner(2, 1000)

        async def flaky(x):
            if x == 2:
                raise RuntimeError("boom")
            return x * 10

        results = await runner.map([1, 2, 3], flaky)

        assert results == [10, None, 30]

    async def test_stop_event_prevents_new_starts(self):
        runner, _ = make_runner(1, 1000)
        stop = asyncio.Event()
        calls = []

        async def stop_after_first(x):
            calls.append(x)
            stop.set()
            return x

        results = await runner.map(["a", "b", "c"], stop_after_first, stop_event=stop)

        assert calls == ["a"]
        assert results == ["a", None, None]

    async def test_stop_event_already_set_starts_nothing(self):
        runner, _ = make_runner(3, 1000)
        stop = asyncio.Event()
        stop.set()

        results = await runner.map([1, 2, 3], self._double, stop_event=stop)

        assert results == [None, None, None]

    async def test_overlapping_batches_share_start_spacing(self):
        runner, clock = make_runner(2, 5)
        starts = []

        async def record(x):
            starts.append(clock.now)
            await asyncio.sleep(0)
            return x

        first, second = await asyncio.gather(
            runner.map([1, 2, 3], record),
            runner.map([4, 5, 6], record),
        )

        assert first == [1, 2, 3]
        assert second == [4, 5, 6]
        gaps = [b - a for a, b in zip(starts, starts[1:])]
        assert len(starts) == 6
        assert all(gap >= 0.2 - 1e-9 for gap in gaps)
        assert clock.now == pytest.approx(1.0)

    async def test_runner_reusable_across_batches(self):
        runner, _ = make_runner(2, 1000)

        assert await runner.map([1, 2], self._double) == [2, 4]
        assert await runner.map([3], self._double) == [6]

    @staticmethod
    async def _double(x):
        return x * 2
