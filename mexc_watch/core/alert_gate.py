"""
Per-symbol alert cooldown gate.

One cooldown clock is shared by every detector: a streak alert and a drift
alert for the same symbol cannot both fire inside the same window.
"""

import time
from typing import Callable, Optional
from loguru import logger

from .state_store import StateStore


class AlertGate:
    """
    Suppresses repeated alerts for a symbol within a cooldown window.

    The cooldown slot is consumed as soon as should_fire() returns True,
    before any delivery is attempted.

    Examples:
        >>> gate = AlertGate(StateStore(), cooldown_seconds=6)
        >>> gate.should_fire("BTC_USDT", now=100.0)
        True
        >>> gate.should_fire("BTC_USDT", now=103.0)
        False
        >>> gate.should_fire("BTC_USDT", now=106.0)
        True
    """

    def __init__(
        self,
        store: StateStore,
        cooldown_seconds: float,
        clock: Callable[[], float] = time.time
    ):
        if cooldown_seconds < 0:
            raise ValueError(
                f"cooldown_seconds must be non-negative, got {cooldown_seconds}"
            )
        self.store = store
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock

    def is_cooling_down(self, symbol: str, now: Optional[float] = None) -> bool:
        """Check whether symbol is inside its cooldown window without mutating state."""
        last = self.store.last_alert(symbol)
        if last is None:
            return False
        now = self._clock() if now is None else now
        return now - last < self.cooldown_seconds

    def should_fire(self, symbol: str, now: Optional[float] = None) -> bool:
        """
        Decide whether an alert for symbol may fire and record it if so.

        Args:
            symbol: Futures symbol
            now: Current epoch seconds (defaults to the gate clock)

        Returns:
            True if no alert fired within the cooldown window. The time is
            then recorded as the new last alert. False leaves state unchanged.
        """
        now = self._clock() if now is None else now
        if self.is_cooling_down(symbol, now):
            logger.debug(f"Alert for {symbol} suppressed by cooldown")
            return False

        self.store.mark_alert(symbol, now)
        return True
