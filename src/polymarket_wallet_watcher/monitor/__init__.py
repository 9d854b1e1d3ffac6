"""Wallet monitoring layer - Tracking registry and new-trade detection."""

from polymarket_wallet_watcher.monitor.dedup import (
    DetectionResult,
    WalletPollState,
    detect_new_trades,
    seed_state,
)
from polymarket_wallet_watcher.monitor.registry import (
    InvalidWalletAddressError,
    TrackingRegistry,
    TrackResult,
    normalize_wallet_address,
)

__all__ = [
    "DetectionResult",
    "InvalidWalletAddressError",
    "TrackResult",
    "TrackingRegistry",
    "WalletPollState",
    "detect_new_trades",
    "normalize_wallet_address",
    "seed_state",
]
