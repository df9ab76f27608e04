"""
Directional candle streak detection.

A streak is an unbroken run of the most recent candles that all moved in the
same direction by more than a magnitude threshold. The scan starts at the
newest candle and walks back until the first candle that breaks the run.
"""

from typing import Optional, Sequence

from ..core.models import Candle, Direction, StreakEvent


def classify_move(percent_change: float, threshold_percent: float) -> Optional[Direction]:
    """
    Classify a candle's move against the threshold.

    Exactly +/- threshold is flat: the comparison is strict.

    Examples:
        >>> classify_move(2.5, 2.0)
        'up'
        >>> classify_move(-2.0, 2.0) is None
        True
    """
    if percent_change > threshold_percent:
        return "up"
    if percent_change < -threshold_percent:
        return "down"
    return None


def detect_streak(
    symbol: str,
    candles: Sequence[Candle],
    threshold_percent: float = 2.0,
    min_length: int = 3,
    lookback: int = 10,
    interval: str = "Min1"
) -> Optional[StreakEvent]:
    """
    Report the run of same-direction moves ending at the newest candle.

    Args:
        symbol: Futures symbol the candles belong to
        candles: Complete candles in ascending time order
        threshold_percent: Minimum absolute percent change per candle
        min_length: Shortest run worth reporting
        lookback: Only the last ``lookback`` candles are examined
        interval: Kline interval, carried into the event

    Returns:
        StreakEvent with magnitudes ordered oldest to newest, or None when the
        newest candle is flat, the run is shorter than min_length, or there
        are fewer than min_length candles.

    Examples:
        >>> event = detect_streak("AAA_USDT", candles)  # +2.5, +2.1, +3.0
        >>> event.direction, event.count
        ('up', 3)
    """
    if len(candles) < min_length:
        return None

    direction: Optional[Direction] = None
    magnitudes = []

    for candle in reversed(candles[-lookback:]):
        move = classify_move(candle.percent_change, threshold_percent)
        if move is None or (direction is not None and move != direction):
            break
        direction = move
        magnitudes.insert(0, candle.percent_change)

    if direction is None or len(magnitudes) < min_length:
        return None

    return StreakEvent(
        symbol=symbol,
        direction=direction,
        magnitudes=magnitudes,
        count=len(magnitudes),
        interval=interval,
    )
