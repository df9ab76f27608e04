"""
Rate-limited async task runner.

Runs one async operation per input item under two caps at once:
- a ceiling on operations in flight (worker count)
- a minimum spacing between operation starts (shared last-start watermark)

Effective throughput is the lower of the two. Results land in output slots
keyed by input index, so completion order does not matter.
"""

import asyncio
import time
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar
from loguru import logger


T = TypeVar("T")
R = TypeVar("R")


class RateLimitedRunner:
    """
    Executes a batch of async operations with concurrency and start-rate caps.

    A failing item never aborts its siblings: its exception is logged and its
    slot holds None. The runner returns only after every started item has
    finished.

    Attributes:
        concurrency (int): Maximum operations in flight
        rate_per_second (float): Maximum operation starts per second
        min_interval (float): Minimum seconds between two starts

    Examples:
        >>> runner = RateLimitedRunner(concurrency=6, rate_per_second=5)
        >>> results = await runner.map(["BTC_USDT", "ETH_USDT"], fetch_candles)
        >>> len(results)
        2
    """

    def __init__(
        self,
        concurrency: int,
        rate_per_second: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize the runner.

        Args:
            concurrency: Maximum operations in flight, must be >= 1
            rate_per_second: Maximum starts per second, must be > 0
            clock: Monotonic clock in seconds (injectable for tests)
            sleep: Async sleep used to enforce spacing (injectable for tests)

        Raises:
            ValueError: If either cap is not positive
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        if rate_per_second <= 0:
            raise ValueError(f"rate_per_second must be positive, got {rate_per_second}")

        self.concurrency = concurrency
        self.rate_per_second = rate_per_second
        self.min_interval = 1.0 / rate_per_second
        self._clock = clock
        self._sleep = sleep
        self._last_start: Optional[float] = None
        self._start_lock: Optional[asyncio.Lock] = None

    async def _wait_for_start_slot(self) -> None:
        """Suspend until min_interval has elapsed since the previous start."""
        async with self._start_lock:
            while self._last_start is not None:
                remaining = self._last_start + self.min_interval - self._clock()
                if remaining <= 0:
                    break
                await self._sleep(remaining)
            self._last_start = self._clock()

    async def map(
        self,
        items: Sequence[T],
        fn: Callable[[T], Awaitable[R]],
        stop_event: Optional[asyncio.Event] = None
    ) -> List[Optional[R]]:
        """
        Run fn over items and collect results in input order.

        Args:
            items: Inputs, each processed exactly once
            fn: Async operation applied to each item
            stop_event: When set, no further items are started. Items already
                running finish naturally; unstarted slots stay None.

        Returns:
            List where slot i holds fn(items[i]), or None if it raised or
            never started.
        """
        results: List[Optional[R]] = [None] * len(items)
        if not items:
            return results

        # Created on first use so it binds to the running loop; shared by
        # every later map() call, including overlapping ones
        if self._start_lock is None:
            self._start_lock = asyncio.Lock()
        cursor = 0
        started = 0

        async def worker() -> None:
            nonlocal cursor, started
            while cursor < len(items):
                if stop_event is not None and stop_event.is_set():
                    return
                index = cursor
                cursor += 1

                await self._wait_for_start_slot()
                if stop_event is not None and stop_event.is_set():
                    return

                started += 1
                try:
                    results[index] = await fn(items[index])
                except Exception as e:
                    logger.error(f"Task for {items[index]!r} failed: {e}")

        workers = [worker() for _ in range(min(self.concurrency, len(items)))]
        await asyncio.gather(*workers)

        if started < len(items):
            logger.info(
                f"Batch stopped early: {started}/{len(items)} items started"
            )
        return results
