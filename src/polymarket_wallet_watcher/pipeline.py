"""Wallet polling pipeline for Polymarket Wallet Watcher.

This module provides the WalletMonitor class that ties together the
tracking registry, the Data API trade source, new-trade detection and
alert dispatch, and runs the periodic poll loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Hashable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from polymarket_wallet_watcher.alerter.dispatcher import DeliveryCallback, NotificationDispatcher
from polymarket_wallet_watcher.monitor.dedup import WalletPollState, detect_new_trades, seed_state
from polymarket_wallet_watcher.monitor.registry import TrackingRegistry, TrackResult

if TYPE_CHECKING:
    from polymarket_wallet_watcher.config import Settings
    from polymarket_wallet_watcher.ingestor.models import TradeRecord

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_MAX_CONCURRENT_POLLS = 8
DEFAULT_SHUTDOWN_GRACE_SECONDS = 5.0


class TradeSource(Protocol):
    """Anything that can return a wallet's current trade snapshot."""

    async def fetch_trades(self, wallet_address: str) -> list[TradeRecord]: ...


class MonitorState(str, Enum):
    """Monitor lifecycle states."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class MonitorStats:
    """Statistics for the wallet monitor."""

    started_at: datetime | None = None
    ticks: int = 0
    wallets_polled: int = 0
    poll_failures: int = 0
    seed_failures: int = 0
    new_trades_detected: int = 0
    notifications_sent: int = 0
    delivery_failures: int = 0
    last_tick_time: datetime | None = None
    last_error: str | None = None


class WalletMonitorError(RuntimeError):
    """Raised on invalid monitor lifecycle transitions."""


class WalletMonitor:
    """Polls every tracked wallet and alerts subscribers about new trades.

    Each tick reads the set of tracked wallets, fetches every wallet's
    snapshot (a bounded number in parallel), runs it through new-trade
    detection and hands new trades to the dispatcher. Deliveries run in the
    background, oldest trade first per wallet, so a slow subscriber never
    delays the next tick.

    A wallet's state is seeded from its current snapshot when it gains its
    first subscriber, so existing history is never alerted on. Wallets whose
    seeding failed are re-seeded on the next tick instead of being polled.

    Example:
        ```python
        async with DataApiClient() as source:
            monitor = WalletMonitor(source, on_new_trade=notifier)
            await monitor.track(chat_id, "0xabc...")
            await monitor.run()
        ```
    """

    def __init__(
        self,
        trade_source: TradeSource,
        on_new_trade: DeliveryCallback,
        *,
        registry: TrackingRegistry | None = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_concurrent_polls: int = DEFAULT_MAX_CONCURRENT_POLLS,
        shutdown_grace_seconds: float = DEFAULT_SHUTDOWN_GRACE_SECONDS,
    ) -> None:
        """Initialize the monitor.

        Args:
            trade_source: Provides per-wallet trade snapshots.
            on_new_trade: Called once per (trade, subscriber) pair.
            registry: Subscriber/wallet registry; a fresh one if omitted.
            poll_interval_seconds: Pause between the end of a tick and the next.
            max_concurrent_polls: Wallets fetched in parallel within a tick.
            shutdown_grace_seconds: Time given to in-flight work on stop().
        """
        self._source = trade_source
        self._registry = registry or TrackingRegistry()
        self._dispatcher = NotificationDispatcher(self._registry, on_new_trade)
        self._poll_interval = poll_interval_seconds
        self._shutdown_grace = shutdown_grace_seconds
        self._poll_semaphore = asyncio.Semaphore(max_concurrent_polls)

        self._state = MonitorState.STOPPED
        self._stats = MonitorStats()

        self._wallet_states: dict[str, WalletPollState] = {}
        self._wallet_locks: dict[str, asyncio.Lock] = {}
        self._last_delivery: dict[str, asyncio.Task[None]] = {}
        self._delivery_tasks: set[asyncio.Task[None]] = set()

        self._stop_event: asyncio.Event | None = None
        self._loop_task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        trade_source: TradeSource,
        on_new_trade: DeliveryCallback,
        *,
        registry: TrackingRegistry | None = None,
    ) -> WalletMonitor:
        """Build a monitor using the polling settings of the application."""
        return cls(
            trade_source,
            on_new_trade,
            registry=registry,
            poll_interval_seconds=settings.monitor.poll_interval_seconds,
            max_concurrent_polls=settings.monitor.max_concurrent_polls,
            shutdown_grace_seconds=settings.monitor.shutdown_grace_seconds,
        )

    @property
    def state(self) -> MonitorState:
        """Current monitor state."""
        return self._state

    @property
    def stats(self) -> MonitorStats:
        """Current monitor statistics."""
        return self._stats

    @property
    def is_running(self) -> bool:
        """Check if the poll loop is running."""
        return self._state == MonitorState.RUNNING

    @property
    def registry(self) -> TrackingRegistry:
        return self._registry

    def wallet_state(self, wallet_address: str) -> WalletPollState | None:
        """Poll state of a wallet, or None while it is unseeded."""
        return self._wallet_states.get(wallet_address.lower())

    # ------------------------------------------------------------------
    # Front-end operations
    # ------------------------------------------------------------------

    async def track(self, subscriber_id: Hashable, wallet_address: str) -> TrackResult:
        """Subscribe to a wallet, seeding its state if nobody tracked it yet.

        A failed seeding fetch is logged and retried by the poll loop; only
        a malformed address raises.

        Raises:
            InvalidWalletAddressError: If the address is malformed.
        """
        result = self._registry.track(subscriber_id, wallet_address)
        wallet = result.wallet_address
        if result.first_subscriber or wallet not in self._wallet_states:
            try:
                async with self._lock_for(wallet):
                    if result.first_subscriber:
                        # State left over from before the last untrack, not yet pruned.
                        self._wallet_states.pop(wallet, None)
                    await self._seed_wallet(wallet)
            except Exception as e:
                self._stats.seed_failures += 1
                logger.warning("Failed to seed %s, retrying on next tick: %s", wallet, e)
        return result

    def untrack(self, subscriber_id: Hashable, wallet_address: str) -> bool:
        """Unsubscribe from a wallet. Returns whether the subscription existed.

        Raises:
            InvalidWalletAddressError: If the address is malformed.
        """
        return self._registry.untrack(subscriber_id, wallet_address)

    def list_tracked(self, subscriber_id: Hashable) -> list[str]:
        """Wallets tracked by a subscriber, sorted."""
        return sorted(self._registry.list_wallets(subscriber_id))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the background poll loop.

        Raises:
            WalletMonitorError: If the monitor is not stopped.
        """
        if self._state != MonitorState.STOPPED:
            raise WalletMonitorError(f"Cannot start monitor in state {self._state}")

        self._state = MonitorState.STARTING
        self._stop_event = asyncio.Event()
        logger.info("Starting wallet monitor...")

        self._loop_task = asyncio.create_task(self._run_poll_loop())
        self._stats.started_at = datetime.now(UTC)
        self._state = MonitorState.RUNNING
        logger.info(
            "Wallet monitor started (interval=%.1fs, wallets=%d)",
            self._poll_interval,
            len(self._registry.all_tracked_wallets()),
        )

    def request_stop(self) -> None:
        """Ask the poll loop to exit after the current tick."""
        if self._stop_event:
            self._stop_event.set()

    async def stop(self) -> None:
        """Stop the poll loop and drain pending deliveries.

        The in-flight tick and pending deliveries get up to the shutdown
        grace period before they are cancelled.
        """
        if self._state in (MonitorState.STOPPED, MonitorState.STOPPING):
            return

        self._state = MonitorState.STOPPING
        logger.info("Stopping wallet monitor...")
        self.request_stop()

        if self._loop_task:
            await self._finish_or_cancel({self._loop_task})
            self._loop_task = None

        await self.drain_deliveries(timeout=self._shutdown_grace, cancel_pending=True)

        self._state = MonitorState.STOPPED
        logger.info("Wallet monitor stopped")

    async def run(self) -> None:
        """Start the monitor and block until a stop is requested."""
        await self.start()

        try:
            if self._stop_event:
                await self._stop_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    async def __aenter__(self) -> WalletMonitor:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()

    async def _finish_or_cancel(self, tasks: set[asyncio.Task[None]]) -> None:
        if not tasks:
            return
        _, pending = await asyncio.wait(tasks, timeout=self._shutdown_grace)
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def drain_deliveries(
        self,
        timeout: float | None = None,
        *,
        cancel_pending: bool = False,
    ) -> None:
        """Wait for background deliveries scheduled so far."""
        tasks = set(self._delivery_tasks)
        if not tasks:
            return
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            logger.warning("%d alert deliveries still pending", len(pending))
            if cancel_pending:
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def _run_poll_loop(self) -> None:
        if not self._stop_event:
            return

        while not self._stop_event.is_set():
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Poll loop error: %s", e)
                self._stats.last_error = str(e)
                # Keep running - next tick retries

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval)
                break
            except TimeoutError:
                pass

    async def poll_once(self) -> int:
        """Run one tick over every tracked wallet.

        Returns:
            Number of new trades detected in this tick.
        """
        wallets = sorted(self._registry.all_tracked_wallets())
        self._prune_untracked(set(wallets))

        results = await asyncio.gather(*(self._poll_wallet_bounded(w) for w in wallets))

        detected = 0
        for wallet, new_trades in zip(wallets, results, strict=True):
            if not new_trades:
                continue
            detected += len(new_trades)
            logger.info("Found %d new trades for %s", len(new_trades), wallet)
            self._schedule_delivery(wallet, new_trades)

        self._stats.ticks += 1
        self._stats.new_trades_detected += detected
        self._stats.last_tick_time = datetime.now(UTC)
        return detected

    async def _poll_wallet_bounded(self, wallet: str) -> tuple[TradeRecord, ...]:
        async with self._poll_semaphore:
            try:
                return await self._poll_wallet(wallet)
            except Exception as e:
                self._stats.poll_failures += 1
                self._stats.last_error = str(e)
                logger.warning("Failed to poll %s: %s", wallet, e)
                return ()

    async def _poll_wallet(self, wallet: str) -> tuple[TradeRecord, ...]:
        async with self._lock_for(wallet):
            state = self._wallet_states.get(wallet)
            if state is None:
                try:
                    await self._seed_wallet(wallet)
                except Exception:
                    self._stats.seed_failures += 1
                    raise
                return ()

            snapshot = await self._source.fetch_trades(wallet)
            self._stats.wallets_polled += 1
            result = detect_new_trades(snapshot, state)
            if result.has_new_trades:
                logger.debug(
                    "%s high-water mark %s -> %s",
                    wallet,
                    state.high_water_mark.isoformat(),
                    result.state.high_water_mark.isoformat(),
                )
            self._wallet_states[wallet] = result.state
            return result.new_trades

    async def _seed_wallet(self, wallet: str) -> None:
        """Seed a wallet's state from its current snapshot. Caller holds the wallet lock."""
        if wallet in self._wallet_states:
            return
        snapshot = await self._source.fetch_trades(wallet)
        state = seed_state(snapshot)
        self._wallet_states[wallet] = state
        logger.info(
            "Initialized state for %s from %d trades (last timestamp %s)",
            wallet,
            len(snapshot),
            state.high_water_mark.isoformat(),
        )

    def _lock_for(self, wallet: str) -> asyncio.Lock:
        lock = self._wallet_locks.get(wallet)
        if lock is None:
            lock = asyncio.Lock()
            self._wallet_locks[wallet] = lock
        return lock

    def _prune_untracked(self, tracked: set[str]) -> None:
        """Forget state and locks of wallets nobody tracks; a new subscriber re-seeds them."""
        for wallet in (set(self._wallet_states) | set(self._wallet_locks)) - tracked:
            lock = self._wallet_locks.get(wallet)
            if lock is not None and lock.locked():
                continue
            self._wallet_locks.pop(wallet, None)
            if self._wallet_states.pop(wallet, None) is not None:
                logger.debug("Dropped state of untracked wallet %s", wallet)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _schedule_delivery(self, wallet: str, trades: Sequence[TradeRecord]) -> None:
        previous = self._last_delivery.get(wallet)
        task = asyncio.create_task(self._deliver(wallet, tuple(trades), previous))
        self._last_delivery[wallet] = task
        self._delivery_tasks.add(task)
        task.add_done_callback(lambda t: self._on_delivery_done(wallet, t))

    def _on_delivery_done(self, wallet: str, task: asyncio.Task[None]) -> None:
        self._delivery_tasks.discard(task)
        if self._last_delivery.get(wallet) is task:
            del self._last_delivery[wallet]

    async def _deliver(
        self,
        wallet: str,
        trades: tuple[TradeRecord, ...],
        previous: asyncio.Task[None] | None,
    ) -> None:
        # Alerts of one wallet go out in detection order across ticks.
        if previous is not None and not previous.done():
            await asyncio.wait({previous})

        for trade in trades:
            try:
                result = await self._dispatcher.notify(wallet, trade)
            except Exception as e:
                self._stats.delivery_failures += 1
                logger.error("Alert dispatch for %s failed: %s", wallet, e)
                continue
            self._stats.notifications_sent += result.success_count
            self._stats.delivery_failures += result.failure_count
