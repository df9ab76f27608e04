"""
Resilient JSON fetching over a shared aiohttp session.

Every read returns either parsed data or None; nothing raises past
ResilientFetcher.get_json(). Outcomes are classified as:

- Throttled (HTTP 429 or a MEXC throttling code): randomized backoff in
  [0.3, 0.7) seconds, then retry while attempts remain
- Invalid request (HTTP 400/404 or an unknown-symbol code): None at once,
  no retry
- Anything else (timeouts, connection errors, 5xx, bad bodies): logged,
  None at once

Callers treat None as "skip this item this cycle".
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Iterable, Optional

import aiohttp
from loguru import logger


# MEXC contract API body codes
THROTTLE_CODES = frozenset({510})
INVALID_SYMBOL_CODES = frozenset({1001, 1002})
INVALID_STATUSES = frozenset({400, 404})


class RateLimitedError(Exception):
    """Raised internally when the exchange throttles a request."""
    pass


class InvalidRequestError(Exception):
    """Raised internally when the exchange permanently rejects a request."""
    pass


def backoff_delay() -> float:
    """Randomized throttling backoff in seconds, uniform over [0.3, 0.7)."""
    return 0.3 + random.random() * 0.4


class ResilientFetcher:
    """
    Bounded-retry JSON reader.

    Attributes:
        session (aiohttp.ClientSession): Shared session carrying timeout/keep-alive
        retries (int): Maximum attempts per logical read

    Examples:
        >>> async with aiohttp.ClientSession() as session:
        ...     fetcher = ResilientFetcher(session, retries=3)
        ...     data = await fetcher.get_json("https://contract.mexc.com/api/v1/contract/ticker")
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        retries: int = 3,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        throttle_codes: Iterable[int] = THROTTLE_CODES,
        invalid_codes: Iterable[int] = INVALID_SYMBOL_CODES
    ):
        if retries < 1:
            raise ValueError(f"retries must be >= 1, got {retries}")
        self.session = session
        self.retries = retries
        self._sleep = sleep
        self._throttle_codes = frozenset(throttle_codes)
        self._invalid_codes = frozenset(invalid_codes)

    async def _request_once(self, url: str, params: Optional[dict]) -> Any:
        """
        Perform a single GET and classify the response.

        Raises:
            RateLimitedError: On HTTP 429 or a throttling body code
            InvalidRequestError: On HTTP 400/404 or an invalid-symbol body code
            aiohttp.ClientError / asyncio.TimeoutError: On transport failures
        """
        async with self.session.get(url, params=params) as resp:
            if resp.status == 429:
                raise RateLimitedError(f"HTTP 429 from {url}")
            if resp.status in INVALID_STATUSES:
                raise InvalidRequestError(f"HTTP {resp.status} from {url}")
            resp.raise_for_status()
            payload = await resp.json(content_type=None)

        # MEXC reports some failures with HTTP 200 and success=false
        if isinstance(payload, dict) and payload.get("success") is False:
            code = payload.get("code")
            if code in self._throttle_codes:
                raise RateLimitedError(f"Throttling code {code} from {url}")
            raise InvalidRequestError(
                f"Rejected with code {code}: {payload.get('message', '')}"
            )
        return payload

    async def get_json(
        self,
        url: str,
        params: Optional[dict] = None,
        label: Optional[str] = None
    ) -> Optional[Any]:
        """
        Read JSON from url with throttling-aware retries.

        Args:
            url: Request URL
            params: Query parameters
            label: Short name used in log lines (defaults to url)

        Returns:
            Parsed JSON payload, or None when the read failed or was rejected
        """
        label = label or url

        for attempt in range(1, self.retries + 1):
            try:
                return await self._request_once(url, params)

            except RateLimitedError:
                if attempt >= self.retries:
                    break
                delay = backoff_delay()
                logger.warning(
                    f"Throttled on {label}, waiting {delay * 1000:.0f}ms "
                    f"before retry (attempt {attempt}/{self.retries})"
                )
                await self._sleep(delay)

            except InvalidRequestError as e:
                logger.debug(f"Skipping {label}: {e}")
                return None

            except aiohttp.ClientResponseError as e:
                logger.error(f"HTTP error fetching {label}: {e.status} {e.message}")
                return None

            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                logger.error(f"Error fetching {label}: {e!r}")
                return None

        logger.warning(f"Giving up on {label} after {self.retries} throttled attempts")
        return None
