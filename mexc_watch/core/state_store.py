"""
Per-symbol state for drift baselines and alert cooldowns.

This module provides centralized in-memory storage for:
- Baseline prices used by the cumulative drift detector
- Last alert timestamps used by the alert gate

Every accessor is scoped to a single symbol key. A per-symbol scan task only
ever touches its own symbol's entries, so no locking is required under the
single-threaded asyncio scheduler.

State is process-lifetime only and resets on restart.
"""

from typing import Dict, Iterable, Optional
from loguru import logger


class StateStore:
    """
    In-memory store of per-symbol baselines and cooldown timestamps.

    Attributes:
        baselines: Symbol to reference price for drift comparison
        cooldowns: Symbol to epoch seconds of the last fired alert

    Examples:
        >>> store = StateStore()
        >>> store.set_baseline("BTC_USDT", 45000.0)
        >>> store.get_baseline("BTC_USDT")
        45000.0
        >>> store.mark_alert("BTC_USDT", 1700000000.0)
        >>> store.last_alert("BTC_USDT")
        1700000000.0
    """

    def __init__(self):
        """Initialize StateStore with empty maps."""
        self.baselines: Dict[str, float] = {}
        self.cooldowns: Dict[str, float] = {}

    def get_baseline(self, symbol: str) -> Optional[float]:
        """Return the baseline price for symbol, or None if never observed."""
        return self.baselines.get(symbol)

    def set_baseline(self, symbol: str, price: float) -> None:
        """
        Record or replace the baseline price for symbol.

        Args:
            symbol: Futures symbol
            price: New reference price, must be positive

        Raises:
            ValueError: If price is not positive
        """
        if price <= 0:
            raise ValueError(f"baseline price must be positive, got {price}")
        self.baselines[symbol] = price

    def last_alert(self, symbol: str) -> Optional[float]:
        """Return epoch seconds of the last alert for symbol, if any."""
        return self.cooldowns.get(symbol)

    def mark_alert(self, symbol: str, timestamp: float) -> None:
        """Record timestamp as the last alert time for symbol."""
        self.cooldowns[symbol] = timestamp

    def prune_baselines(self, active_symbols: Iterable[str]) -> int:
        """
        Drop baselines for symbols that left the universe.

        Cooldown timestamps are kept: they only ever move forward and a
        relisted symbol must still respect its last alert.

        Args:
            active_symbols: Symbols currently eligible for polling

        Returns:
            Number of baselines removed
        """
        active = set(active_symbols)
        stale = [symbol for symbol in self.baselines if symbol not in active]
        for symbol in stale:
            del self.baselines[symbol]

        if stale:
            logger.debug(f"Pruned {len(stale)} baselines for delisted symbols")
        return len(stale)

    def __len__(self) -> int:
        return len(self.baselines)
