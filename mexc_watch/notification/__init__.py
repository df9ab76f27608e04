"""
Notification module for Telegram alerts.

This module provides:
- Notifier protocol consumed by the scanner
- Telegram Bot API delivery
- Per-event message formatting
"""

from .telegram import Notifier, TelegramNotifier, LoggingNotifier

__all__ = [
    "Notifier",
    "TelegramNotifier",
    "LoggingNotifier",
]
