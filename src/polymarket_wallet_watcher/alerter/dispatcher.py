"""Fan-out of new-trade alerts to the subscribers of a wallet."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable

from polymarket_wallet_watcher.alerter.models import DispatchResult
from polymarket_wallet_watcher.ingestor.models import TradeRecord
from polymarket_wallet_watcher.monitor.registry import TrackingRegistry

logger = logging.getLogger(__name__)

# on_new_trade(wallet_address, trade, subscriber_id)
DeliveryCallback = Callable[[str, TradeRecord, Hashable], Awaitable[None]]


class NotificationDispatcher:
    """Delivers a trade alert to every current subscriber of a wallet.

    Subscribers are looked up when the alert is dispatched, not when the
    trade was detected, so someone who untracked in between is skipped.
    Deliveries run concurrently and a failing subscriber never affects the
    others.
    """

    def __init__(self, registry: TrackingRegistry, on_new_trade: DeliveryCallback) -> None:
        self._registry = registry
        self._on_new_trade = on_new_trade

    async def notify(self, wallet_address: str, trade: TradeRecord) -> DispatchResult:
        """Deliver one trade to all subscribers of the wallet.

        Never raises for delivery failures; they are logged and reported in
        the returned result.
        """
        subscribers = list(self._registry.list_subscribers(wallet_address))
        if not subscribers:
            logger.debug(
                "No subscribers left for %s, dropping alert %s",
                wallet_address,
                trade.signature,
            )
            return DispatchResult(wallet_address=wallet_address, signature=trade.signature)

        results = await asyncio.gather(
            *(self._on_new_trade(wallet_address, trade, sub) for sub in subscribers),
            return_exceptions=True,
        )

        delivered: list[Hashable] = []
        failed: list[Hashable] = []
        for subscriber_id, result in zip(subscribers, results, strict=True):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                failed.append(subscriber_id)
                logger.warning(
                    "Failed to deliver alert for %s to %s: %s",
                    wallet_address,
                    subscriber_id,
                    result,
                )
            else:
                delivered.append(subscriber_id)

        return DispatchResult(
            wallet_address=wallet_address,
            signature=trade.signature,
            delivered_to=tuple(delivered),
            failed_for=tuple(failed),
        )
