"""
Kline normalization.

Converts raw kline payloads into an ascending, de-duplicated list of
complete Candle records. Three raw shapes are accepted:

- MEXC columnar: {"time": [...], "open": [...], "close": [...], "high": [...],
  "low": [...], "vol": [...]}
- Array of arrays: [[open_time, open, high, low, close, volume], ...]
- Array of objects: [{"t": ..., "o": ..., "h": ..., "l": ..., "c": ..., "v": ...}, ...]

Candles whose close boundary has not passed yet are dropped, never
zero-filled. Detectors never see the raw shapes.
"""

import math
import time
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from loguru import logger
from pydantic import ValidationError

from ..core.models import Candle


# Anything below this is an epoch in seconds rather than milliseconds
_MS_THRESHOLD = 1_000_000_000_000

_OBJECT_KEYS = {
    "time": ("t", "time", "openTime", "open_time", "timestamp"),
    "open": ("o", "open"),
    "high": ("h", "high"),
    "low": ("l", "low"),
    "close": ("c", "close"),
    "volume": ("v", "vol", "volume"),
}

RawRow = Tuple[Any, Any, Any, Any, Any, Any]


def _to_ms(timestamp: float) -> int:
    ts = int(timestamp)
    return ts * 1000 if ts < _MS_THRESHOLD else ts


def _pick(row: Dict[str, Any], field: str) -> Any:
    for key in _OBJECT_KEYS[field]:
        if key in row:
            return row[key]
    return None


def _iter_rows(raw: Any) -> Iterator[RawRow]:
    """Yield (time, open, high, low, close, volume) tuples from any known shape."""
    if isinstance(raw, dict):
        # Columnar payload, possibly still wrapped in {"success": ..., "data": {...}}
        if "data" in raw and isinstance(raw["data"], (dict, list)):
            yield from _iter_rows(raw["data"])
            return
        times = raw.get("time") or []
        columns = [raw.get(name) or [] for name in ("open", "high", "low", "close")]
        volumes = raw.get("vol") or raw.get("volume") or [0] * len(times)
        length = min(len(times), len(volumes), *(len(c) for c in columns))
        for i in range(length):
            yield (times[i], columns[0][i], columns[1][i],
                   columns[2][i], columns[3][i], volumes[i])
        return

    if isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
        for row in raw:
            if isinstance(row, dict):
                yield (_pick(row, "time"), _pick(row, "open"), _pick(row, "high"),
                       _pick(row, "low"), _pick(row, "close"), _pick(row, "volume") or 0)
            elif isinstance(row, Sequence) and len(row) >= 5:
                volume = row[5] if len(row) > 5 else 0
                yield (row[0], row[1], row[2], row[3], row[4], volume)
            else:
                logger.debug(f"Skipping unrecognized kline row: {row!r}")
        return

    if raw is not None:
        logger.debug(f"Unrecognized kline payload type: {type(raw).__name__}")


def _parse_row(row: RawRow, interval_ms: int, now_ms: int) -> Optional[Candle]:
    try:
        open_time = _to_ms(float(row[0]))
        open_, high, low, close, volume = (float(v) for v in row[1:])
    except (TypeError, ValueError, OverflowError):
        return None

    values = (open_, high, low, close, volume)
    if open_time < 0 or not all(math.isfinite(v) for v in values) \
            or open_ <= 0 or min(values) < 0:
        return None

    try:
        return Candle.from_prices(
            open_time,
            open_,
            close,
            high=high,
            low=low,
            volume=volume,
            complete=now_ms >= open_time + interval_ms,
        )
    except ValidationError as e:
        logger.debug(f"Skipping invalid kline row {row!r}: {e.error_count()} errors")
        return None


def normalize_klines(
    raw: Any,
    interval_ms: int,
    now_ms: Optional[int] = None
) -> List[Candle]:
    """
    Normalize raw klines into complete, time-ordered candles.

    Args:
        raw: Kline payload in any supported shape
        interval_ms: Bar duration in milliseconds
        now_ms: Current wall clock in epoch ms (defaults to time.time())

    Returns:
        Complete candles sorted ascending by open_time with unique timestamps.
        Malformed rows are skipped. Empty list for unusable payloads.

    Examples:
        >>> raw = {"time": [1700000000], "open": [100], "high": [103],
        ...        "low": [99], "close": [102.5], "vol": [10]}
        >>> normalize_klines(raw, 60_000, now_ms=1700000060000)[0].percent_change
        2.5
    """
    if interval_ms <= 0:
        raise ValueError(f"interval_ms must be positive, got {interval_ms}")
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms

    by_time: Dict[int, Candle] = {}
    skipped = 0
    for row in _iter_rows(raw):
        candle = _parse_row(row, interval_ms, now_ms)
        if candle is None:
            skipped += 1
            continue
        if candle.complete:
            by_time[candle.open_time] = candle

    if skipped:
        logger.debug(f"Skipped {skipped} malformed kline rows")

    return [by_time[t] for t in sorted(by_time)]
