"""Subscriber to wallet tracking registry."""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Hashable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

WALLET_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")

SubscriberId = Hashable


class InvalidWalletAddressError(ValueError):
    """Raised when a wallet address is not 0x followed by 40 hex characters."""


def normalize_wallet_address(wallet_address: str) -> str:
    """Validate a wallet address and return its lower-cased form.

    Raises:
        InvalidWalletAddressError: If the address is malformed.
    """
    candidate = wallet_address.strip() if isinstance(wallet_address, str) else ""
    if not WALLET_ADDRESS_RE.match(candidate):
        raise InvalidWalletAddressError(f"Invalid wallet address: {wallet_address!r}")
    return candidate.lower()


@dataclass(frozen=True)
class TrackResult:
    """Outcome of a track() call."""

    wallet_address: str
    added: bool
    first_subscriber: bool


class TrackingRegistry:
    """Many-to-many mapping between subscribers and tracked wallets.

    All methods take an internal lock, so the registry can be shared between
    the polling loop and front-end handlers running on other threads. Reads
    return copies that callers may keep.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._wallets_by_subscriber: dict[SubscriberId, set[str]] = {}
        self._subscribers_by_wallet: dict[str, set[SubscriberId]] = {}

    def track(self, subscriber_id: SubscriberId, wallet_address: str) -> TrackResult:
        """Start tracking a wallet for a subscriber. Idempotent.

        Raises:
            InvalidWalletAddressError: If the address is malformed.
        """
        wallet = normalize_wallet_address(wallet_address)
        with self._lock:
            wallets = self._wallets_by_subscriber.setdefault(subscriber_id, set())
            if wallet in wallets:
                return TrackResult(wallet_address=wallet, added=False, first_subscriber=False)
            wallets.add(wallet)
            subscribers = self._subscribers_by_wallet.setdefault(wallet, set())
            first_subscriber = not subscribers
            subscribers.add(subscriber_id)

        logger.info("Subscriber %s now tracks wallet %s", subscriber_id, wallet)
        return TrackResult(wallet_address=wallet, added=True, first_subscriber=first_subscriber)

    def untrack(self, subscriber_id: SubscriberId, wallet_address: str) -> bool:
        """Stop tracking a wallet for a subscriber.

        Returns:
            True if the pair existed and was removed.

        Raises:
            InvalidWalletAddressError: If the address is malformed.
        """
        wallet = normalize_wallet_address(wallet_address)
        with self._lock:
            wallets = self._wallets_by_subscriber.get(subscriber_id)
            if not wallets or wallet not in wallets:
                return False
            wallets.discard(wallet)
            if not wallets:
                del self._wallets_by_subscriber[subscriber_id]

            subscribers = self._subscribers_by_wallet.get(wallet, set())
            subscribers.discard(subscriber_id)
            if not subscribers:
                self._subscribers_by_wallet.pop(wallet, None)

        logger.info("Subscriber %s stopped tracking wallet %s", subscriber_id, wallet)
        return True

    def list_wallets(self, subscriber_id: SubscriberId) -> set[str]:
        """Wallets tracked by one subscriber."""
        with self._lock:
            return set(self._wallets_by_subscriber.get(subscriber_id, ()))

    def list_subscribers(self, wallet_address: str) -> set[SubscriberId]:
        """Subscribers currently tracking a wallet (empty for unknown or malformed input)."""
        wallet = wallet_address.lower()
        with self._lock:
            return set(self._subscribers_by_wallet.get(wallet, ()))

    def all_tracked_wallets(self) -> set[str]:
        """Union of every subscriber's wallets; the poll universe of one tick."""
        with self._lock:
            return set(self._subscribers_by_wallet)

    def is_tracked(self, wallet_address: str) -> bool:
        with self._lock:
            return wallet_address.lower() in self._subscribers_by_wallet

    @property
    def subscription_count(self) -> int:
        """Number of (subscriber, wallet) pairs."""
        with self._lock:
            return sum(len(w) for w in self._wallets_by_subscriber.values())

    def __len__(self) -> int:
        return self.subscription_count
