"""
Data module for market data acquisition.

This module handles:
- Resilient HTTP reads with throttling backoff
- MEXC futures REST endpoints
- Binance listing lookup
- Kline normalization into Candle records
"""

from .fetcher import ResilientFetcher
from .mexc_client import MexcFuturesClient
from .normalizer import normalize_klines

__all__ = [
    "ResilientFetcher",
    "MexcFuturesClient",
    "normalize_klines",
]
