"""Tests for NotificationDispatcher."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from polymarket_wallet_watcher.alerter.dispatcher import NotificationDispatcher
from polymarket_wallet_watcher.monitor.registry import TrackingRegistry


@pytest.fixture
def registry(sample_wallet: str) -> TrackingRegistry:
    registry = TrackingRegistry()
    registry.track(1, sample_wallet)
    registry.track(2, sample_wallet)
    return registry


class TestNotificationDispatcher:
    """Tests for NotificationDispatcher.notify."""

    @pytest.mark.asyncio
    async def test_fans_out_to_every_subscriber(
        self, registry: TrackingRegistry, sample_wallet: str, make_trade
    ) -> None:
        callback = AsyncMock()
        trade = make_trade("a")

        result = await NotificationDispatcher(registry, callback).notify(sample_wallet, trade)

        assert callback.await_count == 2
        assert {c.args[2] for c in callback.await_args_list} == {1, 2}
        assert all(c.args[:2] == (sample_wallet, trade) for c in callback.await_args_list)
        assert set(result.delivered_to) == {1, 2}
        assert result.all_succeeded
        assert result.signature == trade.signature

    @pytest.mark.asyncio
    async def test_failure_is_isolated(
        self, registry: TrackingRegistry, sample_wallet: str, make_trade
    ) -> None:
        """One failing subscriber does not prevent delivery to the others."""

        async def callback(wallet, trade, subscriber_id) -> None:
            if subscriber_id == 1:
                raise RuntimeError("chat not found")

        result = await NotificationDispatcher(registry, callback).notify(
            sample_wallet, make_trade("a")
        )

        assert result.delivered_to == (2,)
        assert result.failed_for == (1,)
        assert result.success_count == 1
        assert result.failure_count == 1
        assert not result.all_succeeded

    @pytest.mark.asyncio
    async def test_subscribers_resolved_at_dispatch(
        self, registry: TrackingRegistry, sample_wallet: str, make_trade
    ) -> None:
        """A subscriber who untracked before dispatch is not notified."""
        callback = AsyncMock()
        registry.untrack(1, sample_wallet)

        result = await NotificationDispatcher(registry, callback).notify(
            sample_wallet, make_trade("a")
        )

        assert result.delivered_to == (2,)
        callback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_subscribers(self, sample_wallet: str, make_trade) -> None:
        callback = AsyncMock()

        result = await NotificationDispatcher(TrackingRegistry(), callback).notify(
            sample_wallet, make_trade("a")
        )

        callback.assert_not_awaited()
        assert result.success_count == 0
        assert result.all_succeeded

    @pytest.mark.asyncio
    async def test_cancellation_propagates(
        self, registry: TrackingRegistry, sample_wallet: str, make_trade
    ) -> None:
        callback = AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await NotificationDispatcher(registry, callback).notify(
                sample_wallet, make_trade("a")
            )
