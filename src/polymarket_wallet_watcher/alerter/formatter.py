"""Alert message formatter for new-trade notifications.

This module turns a TradeRecord of a tracked wallet into the message a
subscriber receives, in Telegram MarkdownV2 and plain text.
"""

from __future__ import annotations

from decimal import Decimal

from polymarket_wallet_watcher.alerter.models import FormattedAlert
from polymarket_wallet_watcher.ingestor.models import UNKNOWN_MARKET, TradeRecord

# Polymarket / Polygon URLs
POLYMARKET_EVENT_URL = "https://polymarket.com/event/{slug}"
POLYGONSCAN_TX_URL = "https://polygonscan.com/tx/{tx_hash}"
POLYGONSCAN_ADDRESS_URL = "https://polygonscan.com/address/{address}"

ALERT_TITLE = "New Transaction Detected"
TIME_FORMAT = "%b %d, %Y, %H:%M:%S UTC"

_TELEGRAM_SPECIAL_CHARS = "\\_*[]()~`>#+-=|{}.!"


def truncate_address(address: str, chars: int = 4) -> str:
    """Truncate an Ethereum address to 0x1234...5678 format."""
    if len(address) < chars * 2 + 4:
        return address
    return f"{address[: chars + 2]}...{address[-chars:]}"


def format_usdc(amount: Decimal) -> str:
    """Format a USDC amount with commas and 2 decimal places."""
    return f"${amount:,.2f}"


def escape_telegram_markdown(text: str) -> str:
    """Escape special Telegram MarkdownV2 characters."""
    return "".join(f"\\{c}" if c in _TELEGRAM_SPECIAL_CHARS else c for c in text)


def side_emoji(side: str) -> str:
    if side == "BUY":
        return "🟢"
    if side == "SELL":
        return "🔴"
    return "⚪"


def outcome_emoji(outcome: str) -> str:
    normalized = outcome.upper()
    if normalized in ("YES", "UP"):
        return "👍"
    if normalized in ("NO", "DOWN"):
        return "👎"
    return "🎲"


class TradeAlertFormatter:
    """Formats new trades of tracked wallets into alert messages."""

    def format(self, wallet_address: str, trade: TradeRecord) -> FormattedAlert:
        """Format one trade into a multi-format alert.

        Args:
            wallet_address: The tracked wallet that made the trade.
            trade: The newly detected trade.

        Returns:
            FormattedAlert with all delivery formats.
        """
        wallet_short = truncate_address(wallet_address)
        links = self._build_links(wallet_address, trade)

        return FormattedAlert(
            title=ALERT_TITLE,
            body=self._build_body(wallet_short, trade),
            telegram_markdown=self._build_telegram_markdown(wallet_short, trade, links),
            plain_text=self._build_plain_text(wallet_short, trade, links),
            links=links,
        )

    def _build_links(self, wallet_address: str, trade: TradeRecord) -> dict[str, str]:
        links = {
            "transaction": POLYGONSCAN_TX_URL.format(tx_hash=trade.transaction_hash),
            "wallet": POLYGONSCAN_ADDRESS_URL.format(address=wallet_address),
        }
        if trade.market_slug:
            links["market"] = POLYMARKET_EVENT_URL.format(slug=trade.market_slug)
        return links

    def _build_body(self, wallet_short: str, trade: TradeRecord) -> str:
        """One-line summary, used for logs and previews."""
        outcome = f" {trade.outcome}" if trade.outcome else ""
        return (
            f"Wallet {wallet_short} {trade.side}{outcome} "
            f"{trade.size:,.2f} @ ${trade.price:.2f} ({format_usdc(trade.notional)}) "
            f"on {trade.market}"
        )

    def _build_telegram_markdown(
        self,
        wallet_short: str,
        trade: TradeRecord,
        links: dict[str, str],
    ) -> str:
        """Build Telegram MarkdownV2 format."""
        esc = escape_telegram_markdown

        market_title = esc(trade.market or UNKNOWN_MARKET)
        if "market" in links:
            market_line = f"📊 *Market:* [{market_title}]({links['market']})"
        else:
            market_line = f"📊 *Market:* {market_title}"

        lines = [
            f"🚨 *{esc(ALERT_TITLE)}*",
            "",
            f"👛 *Wallet:* `{wallet_short}`",
            f"{side_emoji(trade.side)} *Side:* {esc(trade.side)}",
            market_line,
        ]
        if trade.outcome:
            lines.append(f"🎲 *Outcome:* {outcome_emoji(trade.outcome)} {esc(trade.outcome)}")
        lines.extend(
            [
                f"💰 *Size:* {esc(f'{trade.size:,.2f}')}",
                f"💵 *Price:* {esc(f'${trade.price:.2f}')}",
                f"💲 *Value:* {esc(format_usdc(trade.notional))}",
                f"⏰ *Time:* {esc(trade.timestamp.strftime(TIME_FORMAT))}",
                "",
                f"🔗 [View Transaction]({links['transaction']})",
            ]
        )
        return "\n".join(lines)

    def _build_plain_text(
        self,
        wallet_short: str,
        trade: TradeRecord,
        links: dict[str, str],
    ) -> str:
        """Build plain text format for generic channels."""
        lines = [
            ALERT_TITLE.upper(),
            "=" * 30,
            "",
            f"Wallet: {wallet_short}",
            f"Side: {trade.side}",
            f"Market: {trade.market or UNKNOWN_MARKET}",
        ]
        if trade.outcome:
            lines.append(f"Outcome: {trade.outcome}")
        lines.extend(
            [
                f"Size: {trade.size:,.2f}",
                f"Price: ${trade.price:.2f}",
                f"Value: {format_usdc(trade.notional)}",
                f"Time: {trade.timestamp.strftime(TIME_FORMAT)}",
                "",
                f"Transaction: {links['transaction']}",
            ]
        )
        if "market" in links:
            lines.append(f"Market: {links['market']}")
        return "\n".join(lines)
