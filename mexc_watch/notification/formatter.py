"""
Telegram message rendering for detection events.

Each event type has its own layout and parse mode:
- streak alerts use MarkdownV2, so every dynamic fragment is escaped
- drift alerts use legacy Markdown with a rocket tier and price arrow
- pump-dump alerts use HTML
"""

import html
import re
from datetime import datetime
from typing import Optional, Tuple

from ..core.models import DetectionEvent, DriftEvent, PumpDumpEvent, StreakEvent


_MARKDOWN_V2_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")


def futures_link(symbol: str) -> str:
    return f"https://mexc.com/futures/{symbol}?type=swap"


def escape_markdown_v2(text: str) -> str:
    """Prefix every Telegram MarkdownV2 special character with a backslash."""
    return _MARKDOWN_V2_SPECIAL.sub(r"\\\1", text)


def rocket_tier(change_percent: float) -> str:
    """Rocket emphasis for large drifts: >50%, >25%, >10%."""
    if change_percent > 50:
        return "🚀🚀🚀"
    if change_percent > 25:
        return "🚀🚀"
    if change_percent > 10:
        return "🚀"
    return ""


def format_streak(event: StreakEvent, threshold_percent: float = 2.0) -> str:
    rising = event.direction == "up"
    emoji = "🟢" if rising else "🔴"
    verb = "up" if rising else "down"
    magnitudes = ", ".join(f"{m:.2f}%" for m in event.magnitudes)
    header = (
        f"{event.count} consecutive {event.interval} candles {verb} "
        f"more than {threshold_percent:g}%"
    )
    return (
        f"{escape_markdown_v2(header)}\n\n"
        f"[{escape_markdown_v2(event.symbol)}]({futures_link(event.symbol)}) "
        f"{emoji} \\({escape_markdown_v2(magnitudes)}\\)"
    )


def format_drift(event: DriftEvent, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    dot = "🟢" if event.direction == "up" else "🔴"
    prefix = "🅼 " if event.mexc_exclusive else ""
    rockets = rocket_tier(event.change_percent)
    clock = now.strftime("%I:%M %p").lstrip("0")
    return (
        f"{prefix}{rockets} [{event.symbol}]({futures_link(event.symbol)}) "
        f"⚡ {event.change_percent:.2f}% {dot}\n"
        f"`{event.from_price:.6f} → {event.to_price:.6f}`\n"
        f"{clock}"
    )


def format_pump_dump(event: PumpDumpEvent) -> str:
    symbol = html.escape(event.symbol)
    funding = (
        f"{event.funding_rate * 100:.4f}%" if event.funding_rate is not None else "n/a"
    )
    pump = f"⚡ Pump: {event.pump_percent:.1f}%\n" if event.pump_percent is not None else ""
    return (
        "🚨 <b>Bearish setup detected on MEXC Futures</b>\n\n"
        f'<a href="{futures_link(event.symbol)}"><b>{symbol}</b></a>\n'
        f"💰 Price: {event.now_price:g}\n"
        f"{pump}"
        f"⛰ Peak: {event.peak_price:g} ({event.peak_to_now_percent:.2f}%)\n"
        f"📊 Volume spike: x{event.volume_spike_ratio:.1f}\n"
        f"💸 Funding: {funding}"
    )


def render(
    event: DetectionEvent,
    streak_threshold: float = 2.0,
    now: Optional[datetime] = None
) -> Tuple[str, str]:
    """
    Render an event for Telegram.

    Returns:
        Tuple of (text, parse_mode)

    Raises:
        TypeError: If event is not a known detection event
    """
    if isinstance(event, StreakEvent):
        return format_streak(event, streak_threshold), "MarkdownV2"
    if isinstance(event, DriftEvent):
        return format_drift(event, now), "Markdown"
    if isinstance(event, PumpDumpEvent):
        return format_pump_dump(event), "HTML"
    raise TypeError(f"Unsupported event type: {type(event).__name__}")
