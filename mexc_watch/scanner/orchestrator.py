"""
Poll Orchestrator for MEXC Watch

This module implements the scheduling loop that ties the scanner together:

    universe + tickers -> cumulative drift (synchronous, every ticker)
                       -> per-symbol klines via RateLimitedRunner
                          -> streak detector / pump-dump analyzer
                       -> AlertGate -> notifier

The orchestrator alternates between two states, IDLE between ticks and
POLLING while a cycle runs. No failure inside a cycle stops the loop; a
failed universe or ticker fetch turns the tick into a logged no-op.

Graceful Shutdown:
    - run() takes an asyncio.Event; setting it wakes the inter-tick wait
    - the same event is passed to the runner so no new symbol scans start
    - scans already in flight finish naturally
"""

import asyncio
import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from loguru import logger

from ..core.alert_gate import AlertGate
from ..core.config import INTERVAL_MS, Settings
from ..core.models import Candle, DetectionEvent, DriftEvent, TickerSnapshot
from ..core.rate_limiter import RateLimitedRunner
from ..core.state_store import StateStore
from ..data.binance_listings import is_mexc_exclusive
from ..data.mexc_client import MexcFuturesClient
from ..data.normalizer import normalize_klines
from ..notification.telegram import Notifier
from ..strategy.drift import CumulativeDriftDetector
from ..strategy.pump_dump import PumpDumpAnalyzer
from ..strategy.streak import detect_streak


# Below this many complete candles a symbol has no data this cycle
MIN_CANDLES = 3


class PollState(Enum):
    """Scheduler state: between ticks or inside a poll cycle."""

    IDLE = "idle"
    POLLING = "polling"


class PollOrchestrator:
    """
    Runs poll cycles on a fixed interval until stopped.

    The orchestrator owns the StateStore, so baselines and cooldowns live
    exactly as long as the orchestrator does.

    Attributes:
        client (MexcFuturesClient): Market data collaborator
        notifier (Notifier): Alert sink
        settings (Settings): Validated configuration
        store (StateStore): Per-symbol baselines and cooldowns
        gate (AlertGate): Shared per-symbol cooldown
        state (PollState): Current scheduler state

    Examples:
        >>> orchestrator = PollOrchestrator(client, notifier, settings)
        >>> stop = asyncio.Event()
        >>> task = asyncio.create_task(orchestrator.run(stop))
        >>> # ... later ...
        >>> stop.set()
        >>> await task
    """

    def __init__(
        self,
        client: MexcFuturesClient,
        notifier: Notifier,
        settings: Settings,
        store: Optional[StateStore] = None,
        runner: Optional[RateLimitedRunner] = None,
        binance_symbols: Optional[Set[str]] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the orchestrator and its detectors.

        Args:
            client: Market data collaborator
            notifier: Alert sink
            settings: Validated configuration
            store: State store (a fresh one by default)
            runner: Rate-limited runner (built from settings by default)
            binance_symbols: Binance USDT symbols for the MEXC-exclusive
                marker; None disables the marker
            clock: Wall clock in epoch seconds
        """
        self.client = client
        self.notifier = notifier
        self.settings = settings
        self.store = store or StateStore()
        self._clock = clock

        scheduler = settings.scheduler
        self.gate = AlertGate(self.store, scheduler.alert_cooldown_seconds, clock)
        self.drift = CumulativeDriftDetector(
            self.store, self.gate, settings.drift.threshold_percent
        )
        self.pump_dump = PumpDumpAnalyzer(settings.pump_dump)
        self.runner = runner or RateLimitedRunner(
            scheduler.max_concurrent_requests,
            scheduler.max_requests_per_second,
        )
        self.binance_symbols = binance_symbols

        self.state = PollState.IDLE
        self.cycle_count = 0
        self.delivered_count = 0

        self._universe: Optional[Set[str]] = None
        self._universe_loaded_at: Optional[float] = None
        self._tickers: Dict[str, TickerSnapshot] = {}
        self._stop_event: Optional[asyncio.Event] = None
        self._fetch_plan = self._build_fetch_plan()

    def _build_fetch_plan(self) -> Dict[str, int]:
        """Map each kline interval in use to the number of bars to request."""
        plan: Dict[str, int] = {}
        streak, pump = self.settings.streak, self.settings.pump_dump
        # One extra bar: the newest one is usually still forming
        if streak.enabled:
            plan[streak.interval] = max(plan.get(streak.interval, 0), streak.lookback + 1)
        if pump.enabled:
            plan[pump.interval] = max(plan.get(pump.interval, 0), pump.kline_limit + 1)
        return plan

    @property
    def is_running(self) -> bool:
        return self._stop_event is not None and not self._stop_event.is_set()

    def stop(self) -> None:
        """Request shutdown; takes effect between ticks."""
        if self._stop_event is not None:
            logger.info("Stopping poll orchestrator...")
            self._stop_event.set()

    async def run(
        self,
        stop_event: Optional[asyncio.Event] = None,
        max_cycles: Optional[int] = None
    ) -> None:
        """
        Poll until stop_event is set (or max_cycles cycles have run).

        Args:
            stop_event: External stop signal; a private one is created if omitted
            max_cycles: Stop after this many cycles (None runs indefinitely)
        """
        self._stop_event = stop_event or asyncio.Event()
        interval = self.settings.scheduler.poll_interval_seconds
        logger.info(f"Poll orchestrator running. Poll interval: {interval:g}s")

        cycles = 0
        while not self._stop_event.is_set():
            await self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

        logger.info(f"Poll orchestrator stopped after {cycles} cycle(s)")

    async def run_cycle(self) -> List[DetectionEvent]:
        """
        Run one poll cycle.

        Returns:
            Events that passed the alert gate this cycle, whether or not the
            notifier confirmed delivery. Empty on a degraded tick.
        """
        self.state = PollState.POLLING
        self.cycle_count += 1
        started = time.monotonic()

        try:
            fired = await self._poll_once()
            logger.info(
                f"Cycle {self.cycle_count} done in {time.monotonic() - started:.1f}s: "
                f"{len(fired)} alert(s) fired"
            )
            return fired
        except Exception as e:
            logger.error(f"Poll cycle {self.cycle_count} failed: {e}")
            return []
        finally:
            self.state = PollState.IDLE

    async def _poll_once(self) -> List[DetectionEvent]:
        universe = await self._refresh_universe()
        tickers = await self.client.fetch_tickers()

        if not tickers:
            logger.warning("Could not fetch tickers, skipping this tick")
            return []
        if not universe:
            logger.warning("No symbol universe available, skipping this tick")
            return []

        tickers = [t for t in tickers if t.symbol in universe]
        logger.info(f"Checking {len(tickers)} futures symbols...")

        fired: List[DetectionEvent] = []
        if self.settings.drift.enabled:
            for event in self.check_drift(tickers):
                fired.append(event)
                await self._deliver(event)

        if self._fetch_plan:
            self._tickers = {t.symbol: t for t in tickers}
            results = await self.runner.map(
                [t.symbol for t in tickers],
                self.scan_symbol,
                stop_event=self._stop_event,
            )
            for events in results:
                if events:
                    fired.extend(events)

        return fired

    async def _refresh_universe(self) -> Optional[Set[str]]:
        """Reload the symbol universe when stale, keeping the cached one on failure."""
        now = self._clock()
        refresh = self.settings.scheduler.universe_refresh_seconds
        if (
            self._universe is not None
            and self._universe_loaded_at is not None
            and now - self._universe_loaded_at < refresh
        ):
            return self._universe

        universe = await self.client.fetch_symbol_universe()
        if universe:
            self._universe = universe
            self._universe_loaded_at = now
            self.drift.prune(universe)
            logger.info(f"Symbol universe refreshed: {len(universe)} contracts")
        elif self._universe is not None:
            logger.warning("Universe refresh failed, keeping cached universe")
        return self._universe

    def check_drift(self, tickers: List[TickerSnapshot]) -> List[DriftEvent]:
        """Run the drift detector over every ticker without suspending."""
        now = self._clock()
        events = []
        for ticker in tickers:
            event = self.drift.check(ticker, now)
            if event is None:
                continue
            if self.binance_symbols is not None:
                event = event.model_copy(update={
                    "mexc_exclusive": is_mexc_exclusive(event.symbol, self.binance_symbols)
                })
            events.append(event)
        return events

    async def _load_candles(self, symbol: str) -> Dict[str, List[Candle]]:
        """Fetch and normalize klines for every interval in the fetch plan."""
        candles: Dict[str, List[Candle]] = {}
        for interval, lookback in self._fetch_plan.items():
            raw = await self.client.fetch_candles(symbol, lookback, interval)
            if raw is None:
                continue
            normalized = normalize_klines(raw, INTERVAL_MS[interval])
            if len(normalized) >= MIN_CANDLES:
                candles[interval] = normalized
        return candles

    async def scan_symbol(self, symbol: str) -> List[DetectionEvent]:
        """
        Run the candle-based detectors for one symbol.

        Touches only this symbol's cooldown entry.

        Returns:
            Events that passed the alert gate
        """
        candles = await self._load_candles(symbol)
        if not candles:
            return []

        events: List[DetectionEvent] = []
        streak_cfg, pump_cfg = self.settings.streak, self.settings.pump_dump

        if streak_cfg.enabled and streak_cfg.interval in candles:
            streak = detect_streak(
                symbol,
                candles[streak_cfg.interval],
                threshold_percent=streak_cfg.threshold_percent,
                min_length=streak_cfg.min_length,
                lookback=streak_cfg.lookback,
                interval=streak_cfg.interval,
            )
            if streak is not None:
                events.append(streak)

        if pump_cfg.enabled and pump_cfg.interval in candles and self._has_liquidity(symbol):
            candidate = self.pump_dump.check_price_action(symbol, candles[pump_cfg.interval])
            if candidate is not None:
                confirmed = self.pump_dump.confirm_funding(
                    candidate, await self._funding_rate(symbol)
                )
                if confirmed is not None:
                    events.append(confirmed)

        fired = []
        for event in events:
            if await self._dispatch(event):
                fired.append(event)
        return fired

    def _has_liquidity(self, symbol: str) -> bool:
        """Apply the 24h quote volume floor; unknown volume passes."""
        floor = self.settings.pump_dump.min_quote_volume_24h
        ticker = self._tickers.get(symbol)
        if floor <= 0 or ticker is None or ticker.quote_volume_24h is None:
            return True
        return ticker.quote_volume_24h >= floor

    async def _funding_rate(self, symbol: str) -> Optional[float]:
        """Best-effort funding rate: ticker value first, then the funding endpoint."""
        ticker = self._tickers.get(symbol)
        if ticker is not None and ticker.funding_rate is not None:
            return ticker.funding_rate
        try:
            return await self.client.fetch_funding_rate(symbol)
        except Exception as e:
            logger.debug(f"Funding rate unavailable for {symbol}: {e}")
            return None

    async def _dispatch(self, event: DetectionEvent) -> bool:
        """Consult the alert gate, then deliver. Returns whether the gate let it through."""
        if not self.gate.should_fire(event.symbol, self._clock()):
            return False
        await self._deliver(event)
        return True

    async def _deliver(self, event: DetectionEvent) -> bool:
        """Hand an event to the notifier. Failures are logged, never retried."""
        try:
            delivered = await self.notifier.notify(event)
        except Exception as e:
            logger.error(f"Notifier failed for {event.kind} alert on {event.symbol}: {e}")
            delivered = False

        if delivered:
            self.delivered_count += 1
            logger.info(f"✅ {event.kind} alert sent for {event.symbol}")
        else:
            logger.warning(f"{event.kind} alert for {event.symbol} was not delivered")
        return delivered
