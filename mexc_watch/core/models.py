"""
Market data and detection records with validation.

This module defines the entities that flow through the scanner:
- Candle: One complete kline bar for a symbol
- TickerSnapshot: Latest price observation produced once per poll tick
- StreakEvent / DriftEvent / PumpDumpEvent: Detector outputs

Detection events carry a ``kind`` discriminator so that a
``DetectionEvent`` can be routed without isinstance chains.
"""

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


Direction = Literal["up", "down"]


class Candle(BaseModel):
    """
    Immutable kline bar.

    Attributes:
        open_time: Bar open time in epoch milliseconds
        open: Opening price
        close: Closing price
        high: Highest traded price
        low: Lowest traded price
        volume: Traded volume (contracts)
        percent_change: (close - open) / open * 100
        complete: Whether the bar's close boundary has passed

    Examples:
        >>> c = Candle.from_prices(1700000000000, 100.0, 102.5)
        >>> c.percent_change
        2.5
    """

    model_config = {"frozen": True}

    open_time: int = Field(ge=0, description="Bar open time (epoch ms)")
    open: float = Field(gt=0, description="Opening price")
    close: float = Field(ge=0, description="Closing price")
    high: float = Field(ge=0, description="Highest price")
    low: float = Field(ge=0, description="Lowest price")
    volume: float = Field(default=0.0, ge=0, description="Traded volume")
    percent_change: float = Field(description="Open-to-close change in percent")
    complete: bool = Field(default=True, description="Close boundary passed")

    @classmethod
    def from_prices(
        cls,
        open_time: int,
        open: float,
        close: float,
        high: Optional[float] = None,
        low: Optional[float] = None,
        volume: float = 0.0,
        complete: bool = True,
    ) -> "Candle":
        """Build a candle, deriving percent change and missing extremes."""
        return cls(
            open_time=open_time,
            open=open,
            close=close,
            high=max(open, close) if high is None else high,
            low=min(open, close) if low is None else low,
            volume=volume,
            # open <= 0 is left for the field constraint to reject
            percent_change=(close - open) / open * 100 if open > 0 else 0.0,
            complete=complete,
        )


class TickerSnapshot(BaseModel):
    """
    Latest price for one symbol, observed during a single poll tick.

    ``quote_volume_24h`` and ``funding_rate`` are optional because not every
    ticker payload carries them.
    """

    model_config = {"frozen": True}

    symbol: str = Field(min_length=1)
    last_price: float
    observed_at: int = Field(ge=0, description="Observation time (epoch ms)")
    quote_volume_24h: Optional[float] = None
    funding_rate: Optional[float] = None


class StreakEvent(BaseModel):
    """
    Run of consecutive same-direction candles beyond the magnitude threshold.

    Attributes:
        symbol: Futures symbol (e.g. 'BTC_USDT')
        direction: 'up' or 'down'
        magnitudes: Percent changes ordered oldest to newest
        count: Number of candles in the run
        interval: Kline interval the run was measured on
    """

    model_config = {"frozen": True}

    kind: Literal["streak"] = "streak"
    symbol: str = Field(min_length=1)
    direction: Direction
    magnitudes: List[float] = Field(min_length=1)
    count: int = Field(ge=1)
    interval: str = "Min1"

    @model_validator(mode="after")
    def validate_count(self) -> "StreakEvent":
        """Ensure count matches the recorded magnitudes."""
        if self.count != len(self.magnitudes):
            raise ValueError(
                f"Invalid StreakEvent: count ({self.count}) does not match "
                f"{len(self.magnitudes)} magnitudes"
            )
        return self


class DriftEvent(BaseModel):
    """
    Price drifted beyond the threshold from the symbol's baseline.

    ``mexc_exclusive`` is None when the Binance listing lookup is disabled
    or unavailable.
    """

    model_config = {"frozen": True}

    kind: Literal["drift"] = "drift"
    symbol: str = Field(min_length=1)
    from_price: float = Field(gt=0)
    to_price: float = Field(gt=0)
    change_percent: float = Field(ge=0, description="Absolute drift in percent")
    mexc_exclusive: Optional[bool] = None

    @property
    def direction(self) -> Direction:
        return "up" if self.to_price > self.from_price else "down"


class PumpDumpEvent(BaseModel):
    """
    Prior peak followed by a retracement, confirmed by volume and a bearish
    moving-average cross.

    ``funding_rate`` is None when no funding information was available;
    None is neutral and never read as a real zero.
    """

    model_config = {"frozen": True}

    kind: Literal["pump_dump"] = "pump_dump"
    symbol: str = Field(min_length=1)
    peak_price: float = Field(gt=0)
    now_price: float = Field(ge=0)
    peak_to_now_percent: float
    volume_spike_ratio: float = Field(ge=0)
    pump_percent: Optional[float] = Field(
        default=None, description="Rise from the pre-window low to the peak"
    )
    funding_rate: Optional[float] = None


DetectionEvent = Union[StreakEvent, DriftEvent, PumpDumpEvent]
