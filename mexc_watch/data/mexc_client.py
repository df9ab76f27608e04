"""
MEXC USDT perpetual futures REST client.

Thin collaborator over ResilientFetcher exposing the reads the scanner needs:
symbol universe, tickers, klines and funding rate. Every method returns None
when the underlying read failed so the caller can skip the item or tick.

Endpoints (relative to ``exchange.base_url``):
    GET /detail                   contract specs, used for the symbol universe
    GET /ticker                   all tickers
    GET /kline/{symbol}           klines for one contract
    GET /funding_rate/{symbol}    current funding rate
"""

import math
import time
from typing import Any, List, Optional, Set

from loguru import logger

from ..core.config import INTERVAL_MS
from ..core.models import TickerSnapshot
from .fetcher import ResilientFetcher


def _as_float(value: Any) -> Optional[float]:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _unwrap(payload: Any) -> Any:
    """Return the ``data`` member of a MEXC envelope, or None."""
    if isinstance(payload, dict) and payload.get("success"):
        return payload.get("data")
    return None


class MexcFuturesClient:
    """
    Read-only MEXC contract API client.

    Attributes:
        fetcher (ResilientFetcher): Retry-aware JSON reader
        base_url (str): Contract API root
        quote_suffix (str): Only symbols ending with this suffix are scanned

    Examples:
        >>> client = MexcFuturesClient(fetcher)
        >>> tickers = await client.fetch_tickers()
        >>> raw = await client.fetch_candles("BTC_USDT", lookback=10)
    """

    def __init__(
        self,
        fetcher: ResilientFetcher,
        base_url: str = "https://contract.mexc.com/api/v1/contract",
        quote_suffix: str = "_USDT"
    ):
        self.fetcher = fetcher
        self.base_url = base_url.rstrip("/")
        self.quote_suffix = quote_suffix

    async def fetch_symbol_universe(self) -> Optional[Set[str]]:
        """
        Fetch symbols currently open for trading.

        Returns:
            Set of enabled (state == 0) symbols with the configured quote
            suffix, or None if the read failed
        """
        data = _unwrap(await self.fetcher.get_json(
            f"{self.base_url}/detail", label="contract detail"
        ))
        if not isinstance(data, list):
            return None

        universe = {
            item["symbol"] for item in data
            if isinstance(item, dict)
            and isinstance(item.get("symbol"), str)
            and item["symbol"].endswith(self.quote_suffix)
            and item.get("state", 0) == 0
        }
        logger.debug(f"Loaded {len(universe)} tradable contracts")
        return universe

    async def fetch_tickers(self) -> Optional[List[TickerSnapshot]]:
        """
        Fetch the latest ticker for every contract with the quote suffix.

        Rows without a usable symbol or price are dropped.

        Returns:
            List of TickerSnapshot, or None if the read failed
        """
        data = _unwrap(await self.fetcher.get_json(
            f"{self.base_url}/ticker", label="tickers"
        ))
        if not isinstance(data, list):
            return None

        observed_at = int(time.time() * 1000)
        tickers = []
        for item in data:
            if not isinstance(item, dict):
                continue
            symbol = item.get("symbol")
            price = _as_float(item.get("lastPrice"))
            if not isinstance(symbol, str) or not symbol.endswith(self.quote_suffix) \
                    or price is None:
                continue
            timestamp = _as_float(item.get("timestamp"))
            tickers.append(TickerSnapshot(
                symbol=symbol,
                last_price=price,
                observed_at=int(timestamp) if timestamp and timestamp > 0 else observed_at,
                quote_volume_24h=_as_float(item.get("amount24")),
                funding_rate=_as_float(item.get("fundingRate")),
            ))
        return tickers

    async def fetch_candles(
        self,
        symbol: str,
        lookback: int,
        interval: str = "Min1"
    ) -> Optional[Any]:
        """
        Fetch raw klines covering the last ``lookback`` bars.

        Args:
            symbol: Futures symbol (e.g. 'BTC_USDT')
            lookback: Number of bars to cover
            interval: MEXC kline interval name

        Returns:
            Raw columnar kline payload, or None if the read failed
        """
        end = int(time.time())
        start = end - lookback * INTERVAL_MS[interval] // 1000
        payload = await self.fetcher.get_json(
            f"{self.base_url}/kline/{symbol}",
            params={"interval": interval, "start": start, "end": end},
            label=f"klines {symbol}",
        )
        return _unwrap(payload)

    async def fetch_funding_rate(self, symbol: str) -> Optional[float]:
        """Fetch the current funding rate, or None if unavailable."""
        data = _unwrap(await self.fetcher.get_json(
            f"{self.base_url}/funding_rate/{symbol}",
            label=f"funding rate {symbol}",
        ))
        if not isinstance(data, dict):
            return None
        return _as_float(data.get("fundingRate"))
