"""Polymarket Wallet Watcher - Trade alerts for tracked Polymarket wallets."""

__version__ = "0.1.0"
