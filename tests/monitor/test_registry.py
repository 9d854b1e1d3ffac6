"""Tests for the subscriber to wallet registry."""

import pytest

from polymarket_wallet_watcher.monitor.registry import (
    InvalidWalletAddressError,
    TrackingRegistry,
    normalize_wallet_address,
)

WALLET_A = "0x" + "a" * 40
WALLET_B = "0x" + "b" * 40


class TestNormalizeWalletAddress:
    """Tests for normalize_wallet_address."""

    def test_lowercases_and_strips(self) -> None:
        assert normalize_wallet_address("  0x" + "AbCd" * 10 + " ") == "0x" + "abcd" * 10

    @pytest.mark.parametrize(
        "value",
        ["", "0x123", "a" * 42, "0x" + "g" * 40, "0x" + "a" * 41],
    )
    def test_rejects_malformed(self, value: str) -> None:
        with pytest.raises(InvalidWalletAddressError):
            normalize_wallet_address(value)

    def test_error_is_value_error(self) -> None:
        """Callers catching ValueError also see bad addresses."""
        with pytest.raises(ValueError):
            normalize_wallet_address("nope")


class TestTrackingRegistry:
    """Tests for TrackingRegistry."""

    def test_track_new_wallet(self) -> None:
        registry = TrackingRegistry()

        result = registry.track(1, WALLET_A.upper().replace("0X", "0x"))

        assert result.added
        assert result.first_subscriber
        assert result.wallet_address == WALLET_A
        assert registry.list_wallets(1) == {WALLET_A}
        assert registry.list_subscribers(WALLET_A) == {1}

    def test_track_is_idempotent(self) -> None:
        registry = TrackingRegistry()
        registry.track(1, WALLET_A)

        result = registry.track(1, WALLET_A)

        assert not result.added
        assert registry.subscription_count == 1

    def test_second_subscriber_is_not_first(self) -> None:
        registry = TrackingRegistry()
        registry.track(1, WALLET_A)

        result = registry.track(2, WALLET_A)

        assert result.added
        assert not result.first_subscriber
        assert registry.list_subscribers(WALLET_A) == {1, 2}

    def test_track_rejects_bad_address(self) -> None:
        registry = TrackingRegistry()

        with pytest.raises(InvalidWalletAddressError):
            registry.track(1, "0xnothex")
        assert len(registry) == 0

    def test_untrack(self) -> None:
        """Removing the last pair drops the wallet from the poll universe."""
        registry = TrackingRegistry()
        registry.track(1, WALLET_A)

        assert registry.untrack(1, WALLET_A)
        assert registry.all_tracked_wallets() == set()
        assert registry.list_wallets(1) == set()
        assert not registry.is_tracked(WALLET_A)

    def test_untrack_unknown_pair(self) -> None:
        registry = TrackingRegistry()
        registry.track(1, WALLET_A)

        assert not registry.untrack(2, WALLET_A)
        assert not registry.untrack(1, WALLET_B)
        assert registry.is_tracked(WALLET_A)

    def test_untrack_keeps_other_subscribers(self) -> None:
        registry = TrackingRegistry()
        registry.track(1, WALLET_A)
        registry.track(2, WALLET_A)

        registry.untrack(1, WALLET_A)

        assert registry.list_subscribers(WALLET_A) == {2}
        assert registry.all_tracked_wallets() == {WALLET_A}

    def test_all_tracked_wallets_is_union(self) -> None:
        registry = TrackingRegistry()
        registry.track(1, WALLET_A)
        registry.track(2, WALLET_A)
        registry.track(2, WALLET_B)

        assert registry.all_tracked_wallets() == {WALLET_A, WALLET_B}
        assert registry.subscription_count == 3

    def test_reads_return_copies(self) -> None:
        registry = TrackingRegistry()
        registry.track(1, WALLET_A)

        registry.list_wallets(1).clear()
        registry.all_tracked_wallets().clear()

        assert registry.is_tracked(WALLET_A)
        assert registry.list_wallets(1) == {WALLET_A}

    def test_list_subscribers_unknown_wallet(self) -> None:
        registry = TrackingRegistry()

        assert registry.list_subscribers(WALLET_B) == set()
        assert registry.list_wallets("nobody") == set()
