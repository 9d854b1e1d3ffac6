"""Data models for the alerter module."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FormattedAlert:
    """A trade alert rendered for each delivery format."""

    title: str
    body: str
    telegram_markdown: str
    plain_text: str
    links: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DispatchResult:
    """Per-subscriber outcome of delivering one trade alert."""

    wallet_address: str
    signature: str
    delivered_to: tuple[object, ...] = ()
    failed_for: tuple[object, ...] = ()

    @property
    def success_count(self) -> int:
        return len(self.delivered_to)

    @property
    def failure_count(self) -> int:
        return len(self.failed_for)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed_for
