"""Telegram delivery of trade alerts via the Bot API."""

from __future__ import annotations

import logging
from collections.abc import Hashable
from typing import Any

import httpx

from polymarket_wallet_watcher.alerter.formatter import TradeAlertFormatter
from polymarket_wallet_watcher.ingestor.models import TradeRecord

logger = logging.getLogger(__name__)

DEFAULT_TELEGRAM_API_URL = "https://api.telegram.org"
DEFAULT_TIMEOUT_SECONDS = 10.0


class TelegramDeliveryError(Exception):
    """Raised when Telegram rejects or fails to accept a message."""


class TelegramNotifier:
    """Delivery callback sending each alert to the subscriber's Telegram chat.

    The subscriber id is used as the chat id. Instances are meant to be
    passed as ``on_new_trade`` to the wallet monitor.
    """

    name = "telegram"

    def __init__(
        self,
        bot_token: str | None,
        *,
        formatter: TradeAlertFormatter | None = None,
        api_url: str = DEFAULT_TELEGRAM_API_URL,
        dry_run: bool = False,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not bot_token and not dry_run:
            raise ValueError("A bot token is required unless dry_run is enabled")
        self._bot_token = bot_token or ""
        self._formatter = formatter or TradeAlertFormatter()
        self._api_url = api_url.rstrip("/")
        self._dry_run = dry_run
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS)

    async def __call__(self, wallet_address: str, trade: TradeRecord, subscriber_id: Hashable) -> None:
        alert = self._formatter.format(wallet_address, trade)

        if self._dry_run:
            logger.info("[DRY RUN] Would send alert to %s: %s", subscriber_id, alert.body)
            return

        await self.send_message(subscriber_id, alert.telegram_markdown)

    async def send_message(self, chat_id: Hashable, text: str) -> None:
        """Send a MarkdownV2 message to one chat.

        Raises:
            TelegramDeliveryError: On transport errors or a rejected message.
        """
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "MarkdownV2",
            "disable_web_page_preview": True,
        }
        url = f"{self._api_url}/bot{self._bot_token}/sendMessage"
        try:
            response = await self._http.post(url, json=payload)
        except httpx.HTTPError as e:
            # The request URL embeds the bot token.
            raise TelegramDeliveryError(f"Telegram request failed: {type(e).__name__}") from None

        description = ""
        ok = response.is_success
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            ok = ok and bool(body.get("ok", False))
            description = str(body.get("description", ""))
        else:
            ok = False

        if not ok:
            raise TelegramDeliveryError(
                f"Telegram rejected message to {chat_id}: "
                f"{response.status_code} {description}".strip()
            )

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()
