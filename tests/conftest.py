"""Pytest configuration and fixtures."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from polymarket_wallet_watcher.ingestor.models import TradeRecord

BASE_TIME = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def sample_wallet() -> str:
    """Sample tracked wallet address (lower-cased)."""
    return "0x" + "ab" * 20


@pytest.fixture
def base_time() -> datetime:
    """Reference timestamp used by trade factories."""
    return BASE_TIME


@pytest.fixture
def make_trade() -> Callable[..., TradeRecord]:
    """Factory for TradeRecords stamped relative to BASE_TIME.

    ``name`` drives the transaction hash so two trades with different names
    have different signatures.
    """

    def _make(
        name: str,
        offset_seconds: int = 0,
        *,
        side: str = "BUY",
        size: str = "10",
        price: str = "0.5",
        condition_id: str = "0xcond",
        outcome: str = "Yes",
    ) -> TradeRecord:
        return TradeRecord(
            transaction_hash=f"0xtx-{name}",
            condition_id=condition_id,
            side=side,
            size=Decimal(size),
            price=Decimal(price),
            timestamp=BASE_TIME + timedelta(seconds=offset_seconds),
            market=f"Market {name}",
            outcome=outcome,
        )

    return _make
