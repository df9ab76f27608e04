"""
Binance spot listing lookup.

Drift alerts mark symbols that trade on MEXC futures but have no Binance
USDT market. The lookup uses python-binance's public AsyncClient (no API
keys) and is best-effort: any failure yields an empty set.
"""

from typing import Set

from loguru import logger
from binance import AsyncClient
from binance.exceptions import BinanceAPIException


async def fetch_binance_usdt_symbols() -> Set[str]:
    """
    Fetch Binance symbols quoted in USDT that are currently trading.

    Returns:
        Set like {'BTCUSDT', 'ETHUSDT'}; empty if Binance is unreachable
    """
    client = None
    try:
        client = await AsyncClient.create()
        info = await client.get_exchange_info()
        symbols = {
            s["symbol"] for s in info.get("symbols", [])
            if s.get("symbol", "").endswith("USDT") and s.get("status") == "TRADING"
        }
        logger.info(f"Loaded {len(symbols)} Binance USDT symbols")
        return symbols

    except BinanceAPIException as e:
        logger.warning(f"Binance rejected exchange info request: {e}")
    except Exception as e:
        logger.warning(f"Could not load Binance symbols: {e}")
    finally:
        if client is not None:
            await client.close_connection()

    return set()


def to_binance_symbol(symbol: str) -> str:
    """
    Map a MEXC futures symbol to its Binance spelling.

    Examples:
        >>> to_binance_symbol("BTC_USDT")
        'BTCUSDT'
    """
    return symbol.replace("_", "")


def is_mexc_exclusive(symbol: str, binance_symbols: Set[str]) -> bool:
    """True when symbol has no Binance USDT market."""
    return to_binance_symbol(symbol) not in binance_symbols
