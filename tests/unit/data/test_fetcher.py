"""
Unit tests for ResilientFetcher.

Tests cover:
- Success path
- Throttling (HTTP 429 and MEXC code 510) with bounded retries
- Invalid requests (HTTP 400/404, unknown symbol codes) without retry
- Transport and server errors returning None without retry
- Backoff delay range
"""

import asyncio
from unittest.mock import Mock, patch

import aiohttp
import pytest

from mexc_watch.data.fetcher import ResilientFetcher, backoff_delay


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse used as an async context manager."""

    def __init__(self, status: int = 200, payload=None, json_error: Exception = None):
        self.status = status
        self._payload = payload
        self._json_error = json_error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientResponseError(
                request_info=Mock(real_url="http://test"),
                history=(),
                status=self.status,
                message="error",
            )

    async def json(self, content_type=None):
        if self._json_error is not None:
            raise self._json_error
        return self._payload


class FakeSession:
    """Returns queued responses (or raises queued exceptions) in order."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls = []

    def get(self, url, params=None):
        self.calls.append((url, params))
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_fetcher(*responses, retries: int = 3):
    session = FakeSession(*responses)
    sleep = RecordingSleep()
    return ResilientFetcher(session, retries=retries, sleep=sleep), session, sleep


@pytest.mark.asyncio
class TestResilientFetcher:
    """Test get_json() outcome classification."""

    async def test_success_returns_payload(self):
        payload = {"success": True, "code": 0, "data": [1, 2]}
        fetcher, session, sleep = make_fetcher(FakeResponse(200, payload))

        result = await fetcher.get_json("http://test/ticker", params={"a": 1})

        assert result == payload
        assert session.calls == [("http://test/ticker", {"a": 1})]
        assert sleep.delays == []

    async def test_two_throttles_then_success(self):
        """Test [429, 429, ok] returns data after exactly two backoff sleeps."""
        fetcher, session, sleep = make_fetcher(
            FakeResponse(429),
            FakeResponse(429),
            FakeResponse(200, {"success": True, "data": "ok"}),
        )

        result = await fetcher.get_json("http://test/kline")

        assert result == {"success": True, "data": "ok"}
        assert len(session.calls) == 3
        assert len(sleep.delays) == 2
        assert all(0.3 <= d < 0.7 for d in sleep.delays)

    async def test_throttled_on_every_attempt_returns_none(self):
        fetcher, session, sleep = make_fetcher(
            FakeResponse(429), FakeResponse(429), FakeResponse(429)
        )

        assert await fetcher.get_json("http://test/kline") is None
        assert len(session.calls) == 3
        assert len(sleep.delays) == 2

    async def test_throttle_code_in_body_is_retried(self):
        fetcher, session, sleep = make_fetcher(
            FakeResponse(200, {"success": False, "code": 510, "message": "Too frequent"}),
            FakeResponse(200, {"success": True, "data": []}),
        )

        result = await fetcher.get_json("http://test/kline")

        assert result == {"success": True, "data": []}
        assert len(sleep.delays) == 1

    @pytest.mark.parametrize("status", [400, 404])
    async def test_invalid_status_returns_none_without_retry(self, status):
        fetcher, session, sleep = make_fetcher(FakeResponse(status))

        assert await fetcher.get_json("http://test/kline/NOPE_USDT") is None
        assert len(session.calls) == 1
        assert sleep.delays == []

    async def test_unknown_symbol_code_returns_none_without_retry(self):
        fetcher, session, sleep = make_fetcher(
            FakeResponse(200, {"success": False, "code": 1001, "message": "contract not exist"})
        )

        assert await fetcher.get_json("http://test/kline/NOPE_USDT") is None
        assert len(session.calls) == 1
        assert sleep.delays == []

    async def test_server_error_returns_none_without_retry(self):
        fetcher, session, sleep = make_fetcher(FakeResponse(503))

        assert await fetcher.get_json("http://test/ticker") is None
        assert len(session.calls) == 1
        assert sleep.delays == []

    async def test_timeout_returns_none_without_retry(self):
        fetcher, session, sleep = make_fetcher(asyncio.TimeoutError())

        assert await fetcher.get_json("http://test/ticker") is None
        assert sleep.delays == []

    async def test_connection_error_returns_none(self):
        fetcher, session, sleep = make_fetcher(aiohttp.ClientConnectionError("reset"))

        assert await fetcher.get_json("http://test/ticker") is None
        assert sleep.delays == []

    async def test_malformed_json_returns_none(self):
        fetcher, _, sleep = make_fetcher(FakeResponse(200, json_error=ValueError("bad json")))

        assert await fetcher.get_json("http://test/ticker") is None
        assert sleep.delays == []

    async def test_single_attempt_never_sleeps(self):
        fetcher, session, sleep = make_fetcher(FakeResponse(429), retries=1)

        assert await fetcher.get_json("http://test/ticker") is None
        assert sleep.delays == []


class TestBackoff:
    """Test backoff delay bounds."""

    def test_backoff_range(self):
        with patch("mexc_watch.data.fetcher.random.random", return_value=0.0):
            assert backoff_delay() == pytest.approx(0.3)
        with patch("mexc_watch.data.fetcher.random.random", return_value=0.999):
            assert backoff_delay() == pytest.approx(0.6996)

    def test_retries_must_be_positive(self):
        with pytest.raises(ValueError, match="retries must be >= 1"):
            ResilientFetcher(Mock(), retries=0)
