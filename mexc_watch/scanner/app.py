"""
Process wiring: builds the shared HTTP session and collaborators from
Settings and hands them to the PollOrchestrator.
"""

import asyncio
import signal
from typing import Optional

import aiohttp
from aiohttp import TCPConnector
from loguru import logger

from ..core.config import Settings
from ..data.binance_listings import fetch_binance_usdt_symbols
from ..data.fetcher import ResilientFetcher
from ..data.mexc_client import MexcFuturesClient
from ..notification.telegram import LoggingNotifier, Notifier, TelegramNotifier
from .orchestrator import PollOrchestrator


USER_AGENT = "mexc-watch/0.1"


def create_session(settings: Settings) -> aiohttp.ClientSession:
    """Shared keep-alive session with the configured per-request timeout."""
    connector = TCPConnector(
        limit=settings.scheduler.max_concurrent_requests * 2,
        keepalive_timeout=30,
        enable_cleanup_closed=True,
    )
    timeout = aiohttp.ClientTimeout(total=settings.exchange.http_timeout_seconds)
    return aiohttp.ClientSession(
        connector=connector,
        timeout=timeout,
        headers={"User-Agent": USER_AGENT},
    )


def build_notifier(settings: Settings, session: aiohttp.ClientSession) -> Notifier:
    threshold = settings.streak.threshold_percent
    if settings.dry_run:
        logger.info("Dry-run mode: alerts are logged, not sent")
        return LoggingNotifier(streak_threshold=threshold)
    return TelegramNotifier(
        session,
        settings.telegram.bot_token,
        settings.telegram.chat_id,
        api_url=settings.telegram.api_url,
        streak_threshold=threshold,
    )


def install_signal_handlers(stop_event: asyncio.Event) -> None:
    """Set stop_event on SIGINT/SIGTERM where the loop supports it."""
    loop = asyncio.get_running_loop()

    def _handler(signame: str) -> None:
        logger.info(f"Received {signame}, shutting down after the current tick")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _handler, sig.name)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass


async def run_scanner(
    settings: Settings,
    once: bool = False,
    stop_event: Optional[asyncio.Event] = None
) -> int:
    """
    Run the scanner until stopped (or for a single cycle).

    Args:
        settings: Validated configuration
        once: Run exactly one poll cycle and return
        stop_event: External stop signal; signal handlers set it on SIGINT/SIGTERM

    Returns:
        Process exit code
    """
    stop_event = stop_event or asyncio.Event()
    install_signal_handlers(stop_event)

    binance_symbols = None
    if settings.binance_listing.enabled:
        binance_symbols = await fetch_binance_usdt_symbols() or None
        if binance_symbols is None:
            logger.warning("Binance listings unavailable, exclusive marker disabled")

    async with create_session(settings) as session:
        fetcher = ResilientFetcher(session, retries=settings.exchange.fetch_retries)
        client = MexcFuturesClient(
            fetcher,
            base_url=settings.exchange.base_url,
            quote_suffix=settings.exchange.quote_suffix,
        )
        orchestrator = PollOrchestrator(
            client,
            build_notifier(settings, session),
            settings,
            binance_symbols=binance_symbols,
        )

        if once:
            await orchestrator.run_cycle()
        else:
            await orchestrator.run(stop_event)

    logger.info(f"Scanner exited: {orchestrator.delivered_count} alert(s) delivered")
    return 0
