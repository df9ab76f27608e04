"""
Pytest configuration and shared fixtures for MEXC Watch tests.

This module provides:
- Candle and ticker builders
- Default Settings in dry-run mode
- Fresh StateStore / AlertGate instances
"""

import pytest
from typing import List, Optional, Sequence

from mexc_watch.core.alert_gate import AlertGate
from mexc_watch.core.config import Settings
from mexc_watch.core.models import Candle, TickerSnapshot
from mexc_watch.core.state_store import StateStore

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


BASE_TIME_MS = 1700000000000
MINUTE_MS = 60_000


def candles_from_changes(
    changes: Sequence[float],
    start_price: float = 100.0,
    volume: float = 10.0
) -> List[Candle]:
    """Build consecutive 1m candles whose percent changes match ``changes``."""
    candles = []
    price = start_price
    for i, change in enumerate(changes):
        close = price * (1 + change / 100)
        candles.append(Candle(
            open_time=BASE_TIME_MS + i * MINUTE_MS,
            open=price,
            close=close,
            high=max(price, close),
            low=min(price, close),
            volume=volume,
            percent_change=change,
        ))
        price = close
    return candles


def candles_from_closes(
    closes: Sequence[float],
    volumes: Optional[Sequence[float]] = None,
    highs: Optional[Sequence[float]] = None
) -> List[Candle]:
    """Build 1m candles that open at the previous close."""
    candles = []
    prev = closes[0]
    for i, close in enumerate(closes):
        high = highs[i] if highs is not None else max(prev, close)
        candles.append(Candle.from_prices(
            BASE_TIME_MS + i * MINUTE_MS,
            prev,
            close,
            high=high,
            low=min(prev, close),
            volume=volumes[i] if volumes is not None else 10.0,
        ))
        prev = close
    return candles


def ticker(symbol: str, price: float, **extra) -> TickerSnapshot:
    return TickerSnapshot(symbol=symbol, last_price=price, observed_at=BASE_TIME_MS, **extra)


@pytest.fixture
def settings() -> Settings:
    """Default settings with Telegram disabled."""
    return Settings(dry_run=True)


@pytest.fixture
def store() -> StateStore:
    return StateStore()


@pytest.fixture
def gate(store) -> AlertGate:
    """Alert gate with the default 6 second cooldown."""
    return AlertGate(store, cooldown_seconds=6)


@pytest.fixture
def sample_candles() -> List[Candle]:
    """Three consecutive up moves beyond 2% (the AAA_USDT scenario)."""
    return candles_from_changes([0.5, 2.5, 2.1, 3.0])


@pytest.fixture
def make_candles():
    """Factory fixture: candles from a list of percent changes."""
    return candles_from_changes


@pytest.fixture
def make_closes():
    """Factory fixture: candles from a list of closes (optional volumes/highs)."""
    return candles_from_closes


@pytest.fixture
def make_ticker():
    """Factory fixture: TickerSnapshot(symbol, price, **extra)."""
    return ticker
