"""Data models for the ingestor module."""

import contextlib
import math
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

UNKNOWN_MARKET = "Unknown Market"


class TradeRecordError(ValueError):
    """Raised when a provider payload cannot be turned into a TradeRecord."""


def _parse_timestamp(raw: Any) -> datetime | None:
    """Parse a provider timestamp (unix seconds, unix millis or ISO-8601)."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        stripped = raw.strip()
        try:
            raw = float(stripped)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(stripped.replace("Z", "+00:00"))
                if parsed.tzinfo is None:
                    parsed = parsed.replace(tzinfo=UTC)
                return parsed.astimezone(UTC).replace(microsecond=0)
            except (ValueError, OverflowError):
                return None
    if isinstance(raw, (int, float)):
        try:
            ts_f = float(raw)
        except OverflowError:
            return None
        if not math.isfinite(ts_f) or ts_f < 0:
            return None
        if ts_f > 1e12:
            ts_f /= 1000.0
        try:
            return datetime.fromtimestamp(int(ts_f), tz=UTC)
        except (ValueError, OverflowError, OSError):
            return None
    return None


def _parse_decimal(raw: Any) -> Decimal | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite():
        return None
    return value


@dataclass(frozen=True)
class TradeRecord:
    """One executed fill of a tracked wallet, as reported by the Data API.

    Timestamps are second precision, so several distinct records may share
    one. Use ``signature`` rather than the timestamp to tell them apart.
    """

    transaction_hash: str
    condition_id: str
    side: str
    size: Decimal
    price: Decimal
    timestamp: datetime

    trade_id: str = ""
    market: str = UNKNOWN_MARKET
    outcome: str = ""
    outcome_index: int | None = None
    asset_id: str = ""
    market_slug: str = ""

    @classmethod
    def from_data_api(cls, data: dict[str, Any]) -> "TradeRecord":
        """Create a TradeRecord from a Data API ``/trades`` item.

        Args:
            data: One element of the ``/trades`` response array.

        Returns:
            TradeRecord instance.

        Raises:
            TradeRecordError: If the payload lacks a transaction hash,
                a parseable timestamp or a parseable size.
        """
        if not isinstance(data, dict):
            raise TradeRecordError(f"Trade payload must be an object, got {type(data).__name__}")

        transaction_hash = str(data.get("transactionHash") or data.get("transaction_hash") or "")
        if not transaction_hash:
            raise TradeRecordError("Trade payload has no transactionHash")

        timestamp = _parse_timestamp(data.get("timestamp"))
        if timestamp is None:
            raise TradeRecordError(
                f"Trade {transaction_hash} has an invalid timestamp: {data.get('timestamp')!r}"
            )

        size = _parse_decimal(data.get("size"))
        if size is None:
            raise TradeRecordError(f"Trade {transaction_hash} has an invalid size: {data.get('size')!r}")

        price = _parse_decimal(data.get("price")) or Decimal("0")

        outcome_index: int | None = None
        raw_index = data.get("outcomeIndex", data.get("outcome_index"))
        if raw_index is not None:
            with contextlib.suppress(TypeError, ValueError):
                outcome_index = int(raw_index)

        return cls(
            transaction_hash=transaction_hash,
            condition_id=str(data.get("conditionId") or data.get("condition_id") or ""),
            side=str(data.get("side") or "UNKNOWN").upper(),
            size=size,
            price=price,
            timestamp=timestamp,
            trade_id=str(data.get("id") or ""),
            market=str(data.get("title") or UNKNOWN_MARKET),
            outcome=str(data.get("outcome") or ""),
            outcome_index=outcome_index,
            asset_id=str(data.get("asset") or data.get("asset_id") or ""),
            market_slug=str(data.get("eventSlug") or data.get("slug") or ""),
        )

    @property
    def signature(self) -> str:
        """Identity used for deduplication; deliberately excludes the timestamp."""
        record_id = self.condition_id or self.trade_id
        return f"{self.transaction_hash}-{record_id}-{self.side}-{self.size}"

    @property
    def notional(self) -> Decimal:
        """Traded value in USDC (size x price)."""
        return self.size * self.price

    @property
    def is_buy(self) -> bool:
        """Return True if this is a buy trade."""
        return self.side == "BUY"

    @property
    def is_sell(self) -> bool:
        """Return True if this is a sell trade."""
        return self.side == "SELL"
