"""
Unit tests for notification sinks.

Tests cover:
- TelegramNotifier request shape and success handling
- Rate limiting, API rejections and transport errors reported as False
- LoggingNotifier dry-run behavior
"""

import asyncio

import aiohttp
import pytest

from mexc_watch.core.models import DriftEvent, StreakEvent
from mexc_watch.notification.telegram import LoggingNotifier, TelegramNotifier


class FakeResponse:
    def __init__(self, status: int = 200, payload=None):
        self.status = status
        self._payload = payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def json(self, content_type=None):
        return self._payload


class FakeSession:
    def __init__(self, response=None, error: Exception = None):
        self._response = response
        self._error = error
        self.posts = []

    def post(self, url, json=None):
        self.posts.append((url, json))
        if self._error is not None:
            raise self._error
        return self._response


@pytest.fixture
def streak_event():
    return StreakEvent(symbol="AAA_USDT", direction="up", magnitudes=[2.5, 2.1, 3.0], count=3)


@pytest.fixture
def drift_event():
    return DriftEvent(symbol="X_USDT", from_price=100.0, to_price=104.0, change_percent=4.0)


class TestTelegramNotifierInit:
    """Test constructor validation."""

    def test_requires_credentials(self):
        with pytest.raises(ValueError, match="bot_token and chat_id"):
            TelegramNotifier(FakeSession(), "", "123")


@pytest.mark.asyncio
class TestTelegramNotifier:
    """Test notify() outcomes."""

    async def test_successful_send(self, streak_event):
        session = FakeSession(FakeResponse(200, {"ok": True, "result": {}}))
        notifier = TelegramNotifier(session, "TOKEN", "-100", api_url="https://tg.test/")

        assert await notifier.notify(streak_event) is True

        url, body = session.posts[0]
        assert url == "https://tg.test/botTOKEN/sendMessage"
        assert body["chat_id"] == "-100"
        assert body["parse_mode"] == "MarkdownV2"
        assert body["disable_web_page_preview"] is True
        assert "AAA" in body["text"]

    async def test_drift_uses_markdown(self, drift_event):
        session = FakeSession(FakeResponse(200, {"ok": True}))
        notifier = TelegramNotifier(session, "TOKEN", "-100")

        await notifier.notify(drift_event)

        assert session.posts[0][1]["parse_mode"] == "Markdown"

    async def test_rate_limited_returns_false(self, streak_event):
        session = FakeSession(FakeResponse(429, {"ok": False}))
        notifier = TelegramNotifier(session, "TOKEN", "-100")

        assert await notifier.notify(streak_event) is False

    async def test_api_rejection_returns_false(self, streak_event):
        session = FakeSession(FakeResponse(400, {"ok": False, "description": "can't parse entities"}))
        notifier = TelegramNotifier(session, "TOKEN", "-100")

        assert await notifier.notify(streak_event) is False

    async def test_non_json_body_returns_false(self, streak_event):
        session = FakeSession(FakeResponse(502, "Bad Gateway"))
        notifier = TelegramNotifier(session, "TOKEN", "-100")

        assert await notifier.notify(streak_event) is False

    @pytest.mark.parametrize("error", [
        aiohttp.ClientConnectionError("reset"),
        asyncio.TimeoutError(),
    ])
    async def test_transport_error_returns_false(self, streak_event, error):
        notifier = TelegramNotifier(FakeSession(error=error), "TOKEN", "-100")

        assert await notifier.notify(streak_event) is False


@pytest.mark.asyncio
class TestLoggingNotifier:
    """Test the dry-run sink."""

    async def test_counts_and_succeeds(self, streak_event, drift_event):
        notifier = LoggingNotifier()

        assert await notifier.notify(streak_event) is True
        assert await notifier.notify(drift_event) is True
        assert notifier.sent == 2
