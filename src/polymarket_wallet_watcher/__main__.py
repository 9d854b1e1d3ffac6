"""Command-line entry point: python -m polymarket_wallet_watcher."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Hashable, Sequence

from pydantic import ValidationError

from polymarket_wallet_watcher.alerter.formatter import TradeAlertFormatter
from polymarket_wallet_watcher.alerter.telegram import TelegramNotifier
from polymarket_wallet_watcher.config import Settings, get_settings
from polymarket_wallet_watcher.ingestor.data_api import DataApiClient
from polymarket_wallet_watcher.monitor.registry import (
    InvalidWalletAddressError,
    normalize_wallet_address,
)
from polymarket_wallet_watcher.pipeline import WalletMonitor

logger = logging.getLogger("polymarket_wallet_watcher")


def parse_subscription(value: str) -> tuple[Hashable, str]:
    """Parse ``SUBSCRIBER:WALLET``; numeric subscribers become Telegram chat ids."""
    subscriber, sep, wallet = value.rpartition(":")
    if not sep or not subscriber:
        raise argparse.ArgumentTypeError(f"expected SUBSCRIBER:WALLET, got {value!r}")
    try:
        wallet = normalize_wallet_address(wallet)
    except InvalidWalletAddressError as e:
        raise argparse.ArgumentTypeError(str(e)) from e
    subscriber_id: Hashable = subscriber
    with contextlib.suppress(ValueError):
        subscriber_id = int(subscriber)
    return subscriber_id, wallet


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="polymarket_wallet_watcher",
        description="Alert Telegram chats about new trades of tracked Polymarket wallets.",
    )
    parser.add_argument(
        "--track",
        metavar="SUBSCRIBER:WALLET",
        action="append",
        type=parse_subscription,
        default=[],
        help="Track WALLET for SUBSCRIBER (a Telegram chat id). Repeatable.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log alerts instead of sending them (overrides DRY_RUN).",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Poll interval in seconds (overrides MONITOR_POLL_INTERVAL_SECONDS).",
    )
    return parser


async def run_monitor(settings: Settings, subscriptions: Sequence[tuple[Hashable, str]]) -> None:
    """Wire the Data API client, Telegram notifier and monitor, then run until stopped."""
    bot_token = (
        settings.telegram.bot_token.get_secret_value() if settings.telegram.bot_token else None
    )
    notifier = TelegramNotifier(
        bot_token,
        formatter=TradeAlertFormatter(),
        api_url=settings.telegram.api_url,
        dry_run=settings.dry_run,
    )

    try:
        async with DataApiClient(
            base_url=settings.polymarket.data_api_url,
            trades_limit=settings.polymarket.trades_limit,
            timeout_seconds=settings.polymarket.request_timeout_seconds,
            requests_per_second=settings.polymarket.requests_per_second,
            max_retries=settings.polymarket.max_retries,
        ) as source:
            monitor = WalletMonitor.from_settings(settings, source, notifier)
            for subscriber_id, wallet in subscriptions:
                await monitor.track(subscriber_id, wallet)

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError):
                    loop.add_signal_handler(sig, monitor.request_stop)

            await monitor.run()
            logger.info("Final stats: %s", monitor.stats)
    finally:
        await notifier.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        parser.error(f"invalid configuration: {e}")

    updates: dict[str, object] = {}
    if args.dry_run:
        updates["dry_run"] = True
    if args.interval is not None:
        if args.interval <= 0:
            parser.error("--interval must be positive")
        updates["monitor"] = settings.monitor.model_copy(
            update={"poll_interval_seconds": args.interval}
        )
    if updates:
        settings = settings.model_copy(update=updates)

    try:
        settings.validate_requirements()
    except ValueError as e:
        parser.error(str(e))

    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info("Configuration: %s", settings.redacted_summary())

    if not args.track:
        logger.warning("No wallets given with --track; nothing will be polled")

    asyncio.run(run_monitor(settings, args.track))
    return 0


if __name__ == "__main__":
    sys.exit(main())
