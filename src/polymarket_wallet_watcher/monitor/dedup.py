"""New-trade detection over repeated, overlapping wallet snapshots.

The Data API has no cursor: every poll returns the wallet's latest trades,
most of which were already seen. A wallet's progress is therefore kept as a
high-water mark (the newest timestamp already processed) plus the signatures
of the trades seen *at* that timestamp. Timestamps only have one-second
precision, so the signature set is what lets a trade that lands in the same
second as an already-alerted one still be reported.

Trades older than the high-water mark are always treated as known, even when
their signature was never observed. A trade that shows up late with an older
timestamp is missed rather than risking a re-alert of old history.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from polymarket_wallet_watcher.ingestor.models import TradeRecord

EPOCH = datetime.fromtimestamp(0, tz=UTC)


@dataclass(frozen=True)
class WalletPollState:
    """How far a wallet's trades have already been processed."""

    high_water_mark: datetime = EPOCH
    seen_at_high_water_mark: frozenset[str] = field(default_factory=frozenset)

    def is_known(self, trade: TradeRecord) -> bool:
        """Return True if the trade was delivered or suppressed before."""
        if trade.timestamp < self.high_water_mark:
            return True
        if trade.timestamp == self.high_water_mark:
            return trade.signature in self.seen_at_high_water_mark
        return False


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of one dedup pass over a snapshot."""

    new_trades: tuple[TradeRecord, ...]
    state: WalletPollState

    @property
    def has_new_trades(self) -> bool:
        return bool(self.new_trades)


def sort_newest_first(snapshot: Iterable[TradeRecord]) -> list[TradeRecord]:
    """Sort by timestamp descending, keeping provider order within a second."""
    return sorted(snapshot, key=lambda t: t.timestamp, reverse=True)


def signatures_at(snapshot: Iterable[TradeRecord], timestamp: datetime) -> frozenset[str]:
    """Signatures of every trade in the snapshot stamped exactly ``timestamp``."""
    return frozenset(t.signature for t in snapshot if t.timestamp == timestamp)


def seed_state(snapshot: Sequence[TradeRecord]) -> WalletPollState:
    """Build the initial state of a newly tracked wallet.

    Everything already in the snapshot counts as history, so the first poll
    after seeding reports nothing until the wallet trades again.
    """
    if not snapshot:
        return WalletPollState()
    latest = max(t.timestamp for t in snapshot)
    return WalletPollState(
        high_water_mark=latest,
        seen_at_high_water_mark=signatures_at(snapshot, latest),
    )


def detect_new_trades(
    snapshot: Sequence[TradeRecord],
    state: WalletPollState,
) -> DetectionResult:
    """Split a snapshot into new trades and an advanced state.

    Args:
        snapshot: The wallet's current trades, in any order.
        state: The wallet's state after the previous poll.

    Returns:
        New trades oldest first, and the state to store for the next poll.
        When nothing is new the input state is returned unchanged.
    """
    new_trades: list[TradeRecord] = []
    emitted: set[str] = set()

    for trade in sort_newest_first(snapshot):
        if state.is_known(trade):
            continue
        signature = trade.signature
        # The API occasionally repeats an item within one page.
        if signature in emitted:
            continue
        emitted.add(signature)
        new_trades.append(trade)

    if not new_trades:
        return DetectionResult(new_trades=(), state=state)

    new_mark = new_trades[0].timestamp
    if new_mark > state.high_water_mark:
        # Every trade of the snapshot stamped new_mark must stay known next poll.
        next_state = WalletPollState(
            high_water_mark=new_mark,
            seen_at_high_water_mark=signatures_at(snapshot, new_mark),
        )
    else:
        next_state = WalletPollState(
            high_water_mark=state.high_water_mark,
            seen_at_high_water_mark=state.seen_at_high_water_mark | emitted,
        )

    new_trades.reverse()
    return DetectionResult(new_trades=tuple(new_trades), state=next_state)
