"""Data ingestion layer - Per-wallet trade snapshots from the Polymarket Data API."""

from polymarket_wallet_watcher.ingestor.data_api import (
    DataApiClient,
    DataApiError,
    DataApiTransientError,
    RetryError,
)
from polymarket_wallet_watcher.ingestor.models import TradeRecord, TradeRecordError

__all__ = [
    "DataApiClient",
    "DataApiError",
    "DataApiTransientError",
    "RetryError",
    "TradeRecord",
    "TradeRecordError",
]
