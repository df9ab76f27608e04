"""
MEXC Watch - Pattern alerts for MEXC USDT perpetual futures

This package polls MEXC futures market data, detects short-lived price
patterns and sends cooldown-gated Telegram alerts.

Modules:
    core: Domain models, state store, alert gate, rate limiter, config, logging
    data: Resilient HTTP fetching, MEXC client, kline normalization
    strategy: Streak, cumulative drift and pump-dump detectors
    notification: Telegram delivery and message formatting
    scanner: Polling orchestrator
"""

__version__ = "0.1.0"
__author__ = "MEXC Watch Team"
