"""Alerting layer - Formatting and fan-out of new-trade notifications."""

from polymarket_wallet_watcher.alerter.dispatcher import DeliveryCallback, NotificationDispatcher
from polymarket_wallet_watcher.alerter.formatter import TradeAlertFormatter
from polymarket_wallet_watcher.alerter.models import DispatchResult, FormattedAlert
from polymarket_wallet_watcher.alerter.telegram import TelegramDeliveryError, TelegramNotifier

__all__ = [
    "DeliveryCallback",
    "DispatchResult",
    "FormattedAlert",
    "NotificationDispatcher",
    "TelegramDeliveryError",
    "TelegramNotifier",
    "TradeAlertFormatter",
]
