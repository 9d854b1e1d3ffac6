"""Tests for ingestor data models."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from polymarket_wallet_watcher.ingestor.models import UNKNOWN_MARKET, TradeRecord, TradeRecordError


def _payload(**overrides):
    data = {
        "proxyWallet": "0x" + "ab" * 20,
        "side": "buy",
        "asset": "1234567890",
        "conditionId": "0x" + "c" * 64,
        "size": 25.5,
        "price": 0.61,
        "timestamp": 1768478400,
        "title": "Will BTC close above $100k?",
        "slug": "btc-100k-daily",
        "eventSlug": "btc-100k",
        "outcome": "Yes",
        "outcomeIndex": 0,
        "transactionHash": "0x" + "f" * 64,
    }
    data.update(overrides)
    return data


class TestTradeRecord:
    """Tests for TradeRecord model."""

    def test_from_data_api(self) -> None:
        """Test creating TradeRecord from a Data API item."""
        trade = TradeRecord.from_data_api(_payload())

        assert trade.transaction_hash == "0x" + "f" * 64
        assert trade.condition_id == "0x" + "c" * 64
        assert trade.side == "BUY"
        assert trade.size == Decimal("25.5")
        assert trade.price == Decimal("0.61")
        assert trade.timestamp == datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)
        assert trade.market == "Will BTC close above $100k?"
        assert trade.outcome == "Yes"
        assert trade.outcome_index == 0
        assert trade.asset_id == "1234567890"
        assert trade.market_slug == "btc-100k"

    def test_millisecond_timestamp(self) -> None:
        trade = TradeRecord.from_data_api(_payload(timestamp=1768478400123))

        assert trade.timestamp == datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)

    def test_string_timestamps(self) -> None:
        numeric = TradeRecord.from_data_api(_payload(timestamp="1768478400"))
        iso = TradeRecord.from_data_api(_payload(timestamp="2026-01-15T12:00:00.250Z"))

        assert numeric.timestamp == iso.timestamp

    @pytest.mark.parametrize(
        "timestamp",
        [None, "soon", -5, True, "nan", "inf", float("nan"), "99999999999999999", 1e20, 10**400],
    )
    def test_invalid_timestamp(self, timestamp) -> None:
        with pytest.raises(TradeRecordError, match="timestamp"):
            TradeRecord.from_data_api(_payload(timestamp=timestamp))

    def test_missing_transaction_hash(self) -> None:
        with pytest.raises(TradeRecordError, match="transactionHash"):
            TradeRecord.from_data_api(_payload(transactionHash=None))

    @pytest.mark.parametrize("size", [None, "lots", "NaN"])
    def test_invalid_size(self, size) -> None:
        with pytest.raises(TradeRecordError, match="size"):
            TradeRecord.from_data_api(_payload(size=size))

    def test_not_an_object(self) -> None:
        with pytest.raises(TradeRecordError):
            TradeRecord.from_data_api(["not", "a", "dict"])  # type: ignore[arg-type]

    def test_optional_fields_default(self) -> None:
        """Only hash, timestamp and size are required."""
        trade = TradeRecord.from_data_api(
            {"transactionHash": "0xabc", "timestamp": 1768478400, "size": "3"}
        )

        assert trade.price == Decimal("0")
        assert trade.side == "UNKNOWN"
        assert trade.market == UNKNOWN_MARKET
        assert trade.condition_id == ""
        assert trade.outcome_index is None
        assert trade.market_slug == ""

    def test_signature_excludes_timestamp(self) -> None:
        a = TradeRecord.from_data_api(_payload(timestamp=1768478400))
        b = TradeRecord.from_data_api(_payload(timestamp=1768478401))

        assert a.signature == b.signature
        assert a.signature == f"{'0x' + 'f' * 64}-{'0x' + 'c' * 64}-BUY-25.5"

    def test_signature_falls_back_to_trade_id(self) -> None:
        trade = TradeRecord.from_data_api(_payload(conditionId="", id="trade-7"))

        assert trade.signature == f"{'0x' + 'f' * 64}-trade-7-BUY-25.5"

    def test_notional_and_side(self) -> None:
        trade = TradeRecord.from_data_api(_payload(side="SELL", size="100", price="0.25"))

        assert trade.notional == Decimal("25.00")
        assert trade.is_sell
        assert not trade.is_buy

    def test_is_frozen(self) -> None:
        trade = TradeRecord.from_data_api(_payload())

        with pytest.raises(AttributeError):
            trade.side = "SELL"  # type: ignore[misc]
