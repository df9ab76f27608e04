"""
Pump-then-dump reversal analysis.

A setup fires when, inside the recent window:
1. the highest high is not the newest candle (price has started to retrace)
2. that peak is at least ``pump_threshold_percent`` above the lowest close
   of the candles before the window (there was a real pump)
3. the last close sits at least ``retracement_percent`` below that peak
4. the last candle's volume is a spike versus the window's earlier volume
5. the short SMA of closes has just crossed below the long SMA
6. the funding rate, when known, is at or below the ceiling

All conditions must hold together. Funding is best-effort: an unknown rate
never disqualifies a setup.
"""

from typing import List, Optional, Sequence

from loguru import logger

from ..core.config import PumpDumpConfig
from ..core.models import Candle, PumpDumpEvent


def sma(values: Sequence[float], period: int) -> List[Optional[float]]:
    """
    Simple moving average aligned with the input.

    Positions without a full period of history are None.

    Examples:
        >>> sma([1, 2, 3, 4], 2)
        [None, 1.5, 2.5, 3.5]
    """
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")

    result: List[Optional[float]] = [None] * len(values)
    for i in range(period - 1, len(values)):
        result[i] = sum(values[i - period + 1:i + 1]) / period
    return result


class PumpDumpAnalyzer:
    """
    Detects bearish reversals after a local pump.

    The analysis is split so the caller can avoid a funding-rate request for
    symbols whose price action already rules them out:
    check_price_action() covers conditions 1-5, confirm_funding() condition 6.

    Attributes:
        config (PumpDumpConfig): Window, thresholds and moving-average periods

    Examples:
        >>> analyzer = PumpDumpAnalyzer(PumpDumpConfig())
        >>> event = analyzer.analyze("PING_USDT", candles, funding_rate=None)
    """

    def __init__(self, config: Optional[PumpDumpConfig] = None):
        self.config = config or PumpDumpConfig()

    @property
    def min_candles(self) -> int:
        """Candles needed for the pump baseline, the window and the SMA cross."""
        return max(self.config.window + 1, self.config.long_ma + 1)

    def _bearish_cross(self, closes: List[float]) -> bool:
        short = sma(closes, self.config.short_ma)
        long = sma(closes, self.config.long_ma)
        prev_short, prev_long = short[-2], long[-2]
        last_short, last_long = short[-1], long[-1]
        if None in (prev_short, prev_long, last_short, last_long):
            return False
        return prev_short >= prev_long and last_short < last_long

    def check_price_action(
        self,
        symbol: str,
        candles: Sequence[Candle]
    ) -> Optional[PumpDumpEvent]:
        """
        Evaluate pump size, peak retracement, volume spike and SMA cross.

        Args:
            symbol: Futures symbol
            candles: Complete candles in ascending time order

        Returns:
            Candidate PumpDumpEvent without funding information, or None
        """
        cfg = self.config
        if len(candles) < self.min_candles:
            return None

        window = list(candles[-cfg.window:])
        last = window[-1]

        # Ties resolve to the latest candle so a fresh equal high counts as "now"
        peak_index = max(range(len(window)), key=lambda i: (window[i].high, i))
        if peak_index == len(window) - 1:
            return None
        peak = window[peak_index].high
        if peak <= 0:
            return None

        baseline = min(c.close for c in candles[:-cfg.window])
        if baseline <= 0:
            return None
        pump = (peak - baseline) / baseline * 100
        if pump < cfg.pump_threshold_percent:
            return None

        peak_to_now = (last.close - peak) / peak * 100
        if peak_to_now > cfg.retracement_percent:
            return None

        reference = window[:-cfg.volume_exclude_last]
        avg_volume = sum(c.volume for c in reference) / len(reference)
        if avg_volume <= 0:
            return None
        spike_ratio = last.volume / avg_volume
        if spike_ratio <= cfg.volume_spike_multiple:
            return None

        if not self._bearish_cross([c.close for c in candles]):
            return None

        logger.debug(
            f"Pump-dump price action on {symbol}: pump {pump:.1f}% to peak {peak}, "
            f"{peak_to_now:.2f}% from peak, volume x{spike_ratio:.1f}"
        )
        return PumpDumpEvent(
            symbol=symbol,
            peak_price=peak,
            now_price=last.close,
            peak_to_now_percent=peak_to_now,
            volume_spike_ratio=spike_ratio,
            pump_percent=pump,
        )

    def confirm_funding(
        self,
        event: PumpDumpEvent,
        funding_rate: Optional[float]
    ) -> Optional[PumpDumpEvent]:
        """
        Apply the funding-rate ceiling to a price-action candidate.

        Args:
            event: Candidate from check_price_action()
            funding_rate: Current funding rate, or None if unknown

        Returns:
            The event annotated with the funding rate, or None when the
            known rate exceeds the ceiling
        """
        if funding_rate is None:
            return event
        if funding_rate > self.config.funding_rate_ceiling:
            logger.debug(
                f"Pump-dump on {event.symbol} rejected: funding {funding_rate} "
                f"above ceiling {self.config.funding_rate_ceiling}"
            )
            return None
        return event.model_copy(update={"funding_rate": funding_rate})

    def analyze(
        self,
        symbol: str,
        candles: Sequence[Candle],
        funding_rate: Optional[float] = None
    ) -> Optional[PumpDumpEvent]:
        """Run every condition with an already known funding rate."""
        event = self.check_price_action(symbol, candles)
        if event is None:
            return None
        return self.confirm_funding(event, funding_rate)
