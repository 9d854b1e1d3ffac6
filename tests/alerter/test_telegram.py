"""Tests for TelegramNotifier."""

import json
import logging

import httpx
import pytest

from polymarket_wallet_watcher.alerter.telegram import TelegramDeliveryError, TelegramNotifier

TOKEN = "123:secret-token"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestTelegramNotifier:
    """Tests for TelegramNotifier."""

    def test_requires_token_unless_dry_run(self) -> None:
        with pytest.raises(ValueError):
            TelegramNotifier(None)

    @pytest.mark.asyncio
    async def test_sends_markdown_to_subscriber_chat(self, sample_wallet: str, make_trade) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True, "result": {}})

        async with _client(handler) as http:
            notifier = TelegramNotifier(TOKEN, http_client=http)
            await notifier(sample_wallet, make_trade("a"), -100123)

        assert len(requests) == 1
        assert requests[0].url == f"https://api.telegram.org/bot{TOKEN}/sendMessage"
        payload = json.loads(requests[0].content)
        assert payload["chat_id"] == -100123
        assert payload["parse_mode"] == "MarkdownV2"
        assert payload["disable_web_page_preview"] is True
        assert payload["text"].startswith("🚨 *New Transaction Detected*")

    @pytest.mark.asyncio
    async def test_dry_run_does_not_send(
        self, sample_wallet: str, make_trade, caplog: pytest.LogCaptureFixture
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("dry run must not call Telegram")

        async with _client(handler) as http:
            notifier = TelegramNotifier(None, dry_run=True, http_client=http)
            with caplog.at_level(logging.INFO):
                await notifier(sample_wallet, make_trade("a"), 42)

        assert "[DRY RUN] Would send alert to 42" in caplog.text

    @pytest.mark.asyncio
    async def test_rejected_message_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400, json={"ok": False, "description": "Bad Request: chat not found"}
            )

        async with _client(handler) as http:
            notifier = TelegramNotifier(TOKEN, http_client=http)
            with pytest.raises(TelegramDeliveryError, match="chat not found"):
                await notifier.send_message(1, "hi")

    @pytest.mark.asyncio
    async def test_ok_false_with_200_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"ok": False})

        async with _client(handler) as http:
            notifier = TelegramNotifier(TOKEN, http_client=http)
            with pytest.raises(TelegramDeliveryError):
                await notifier.send_message(1, "hi")

    @pytest.mark.asyncio
    async def test_transport_error_hides_token(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as http:
            notifier = TelegramNotifier(TOKEN, http_client=http)
            with pytest.raises(TelegramDeliveryError) as exc_info:
                await notifier.send_message(1, "hi")

        assert TOKEN not in str(exc_info.value)
        assert exc_info.value.__cause__ is None

    @pytest.mark.asyncio
    async def test_aclose_leaves_injected_client_open(self) -> None:
        async with _client(lambda r: httpx.Response(200, json={"ok": True})) as http:
            notifier = TelegramNotifier(TOKEN, http_client=http)
            await notifier.aclose()

            assert not http.is_closed
