"""
Notification sinks.

The scanner only depends on the Notifier protocol: ``await notify(event)``
returning True on confirmed delivery. Failures are reported as False and
never retried here.

- TelegramNotifier: Bot API sendMessage over the shared aiohttp session
- LoggingNotifier: Dry-run sink that writes rendered alerts to the log
"""

import asyncio
from typing import Protocol

import aiohttp
from loguru import logger

from ..core.models import DetectionEvent
from .formatter import render


class Notifier(Protocol):
    async def notify(self, event: DetectionEvent) -> bool:
        ...


class TelegramNotifier:
    """
    Sends rendered detection events to a Telegram chat.

    Attributes:
        session (aiohttp.ClientSession): Shared HTTP session
        chat_id (str): Target chat
        streak_threshold (float): Threshold quoted in streak headers

    Examples:
        >>> notifier = TelegramNotifier(session, token, chat_id)
        >>> await notifier.notify(event)
        True
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        bot_token: str,
        chat_id: str,
        api_url: str = "https://api.telegram.org",
        streak_threshold: float = 2.0
    ):
        if not bot_token or not chat_id:
            raise ValueError("bot_token and chat_id must be non-empty strings")
        self.session = session
        self.chat_id = chat_id
        self.streak_threshold = streak_threshold
        self._url = f"{api_url.rstrip('/')}/bot{bot_token}/sendMessage"

    async def notify(self, event: DetectionEvent) -> bool:
        """
        Deliver one event.

        Returns:
            True if Telegram acknowledged the message, False otherwise
        """
        text, parse_mode = render(event, self.streak_threshold)
        body = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "disable_web_page_preview": True,
        }

        try:
            async with self.session.post(self._url, json=body) as resp:
                if resp.status == 429:
                    logger.warning(f"Telegram rate limited alert for {event.symbol}")
                    return False
                payload = await resp.json(content_type=None)

        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Failed to send {event.kind} alert for {event.symbol}: {e!r}")
            return False

        if not isinstance(payload, dict) or not payload.get("ok"):
            description = payload.get("description") if isinstance(payload, dict) else payload
            logger.error(
                f"Telegram rejected {event.kind} alert for {event.symbol}: {description}"
            )
            return False

        return True


class LoggingNotifier:
    """Dry-run sink: logs the rendered message and reports success."""

    def __init__(self, streak_threshold: float = 2.0):
        self.streak_threshold = streak_threshold
        self.sent = 0

    async def notify(self, event: DetectionEvent) -> bool:
        text, _ = render(event, self.streak_threshold)
        self.sent += 1
        logger.info(f"[dry-run] {event.kind} alert for {event.symbol}:\n{text}")
        return True
