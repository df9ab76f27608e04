"""
Cumulative price drift detection.

Each symbol keeps a baseline price in the StateStore. The baseline only moves
when an alert fires, so small moves accumulate across ticks until the total
drift crosses the threshold.
"""

import math
from typing import Iterable, Optional

from loguru import logger

from ..core.alert_gate import AlertGate
from ..core.models import DriftEvent, TickerSnapshot
from ..core.state_store import StateStore


class CumulativeDriftDetector:
    """
    Fires when price drifts beyond a threshold from the symbol's baseline.

    On first observation the price becomes the baseline and nothing fires.
    When drift exceeds the threshold and the alert gate allows the symbol,
    a DriftEvent is returned and the baseline is rebased to the current price.
    A symbol that is cooling down keeps its old baseline.

    Examples:
        >>> detector = CumulativeDriftDetector(store, gate, threshold_percent=3.0)
        >>> detector.check(TickerSnapshot(symbol="X_USDT", last_price=100.0, observed_at=0))
        >>> detector.check(TickerSnapshot(symbol="X_USDT", last_price=104.0, observed_at=0))
        DriftEvent(symbol='X_USDT', from_price=100.0, to_price=104.0, ...)
    """

    def __init__(
        self,
        store: StateStore,
        gate: AlertGate,
        threshold_percent: float = 3.0
    ):
        if threshold_percent <= 0:
            raise ValueError(
                f"threshold_percent must be positive, got {threshold_percent}"
            )
        self.store = store
        self.gate = gate
        self.threshold_percent = threshold_percent

    def check(
        self,
        ticker: TickerSnapshot,
        now: Optional[float] = None
    ) -> Optional[DriftEvent]:
        """
        Compare ticker price with the stored baseline.

        Args:
            ticker: Latest price observation
            now: Current epoch seconds passed to the alert gate

        Returns:
            DriftEvent when the alert fired, otherwise None
        """
        symbol = ticker.symbol
        price = ticker.last_price
        if not math.isfinite(price) or price <= 0:
            return None

        baseline = self.store.get_baseline(symbol)
        if baseline is None:
            self.store.set_baseline(symbol, price)
            return None

        change_percent = abs(price - baseline) / baseline * 100
        if change_percent <= self.threshold_percent:
            return None

        if not self.gate.should_fire(symbol, now):
            return None

        self.store.set_baseline(symbol, price)
        logger.debug(
            f"Drift {symbol}: {baseline} -> {price} ({change_percent:.2f}%), rebased"
        )
        return DriftEvent(
            symbol=symbol,
            from_price=baseline,
            to_price=price,
            change_percent=change_percent,
        )

    def prune(self, universe: Iterable[str]) -> int:
        """Forget baselines for symbols no longer in the universe."""
        return self.store.prune_baselines(universe)
