"""Async Polymarket Data API client with rate limiting and retry logic."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

import httpx

from polymarket_wallet_watcher.ingestor.models import TradeRecord, TradeRecordError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Constants
DEFAULT_DATA_API_URL = "https://data-api.polymarket.com"
DEFAULT_TRADES_LIMIT = 50
DEFAULT_TIMEOUT_SECONDS = 10.0
MAX_REQUESTS_PER_SECOND = 10

DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_BASE_DELAY = 0.5
RETRY_STATUS_CODES = (429, 500, 502, 503, 504)


class RateLimiter:
    """Minimum-interval rate limiter shared by all requests of one client."""

    def __init__(self, max_requests_per_second: float = MAX_REQUESTS_PER_SECOND) -> None:
        """Initialize the rate limiter.

        Args:
            max_requests_per_second: Maximum requests allowed per second.
        """
        self._min_interval = 1.0 / max_requests_per_second
        self._last_request_time: float = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until a request slot is available."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_time = time.monotonic()


class DataApiError(Exception):
    """Base exception for Data API errors."""


class DataApiTransientError(DataApiError):
    """Raised for retryable errors (429/5xx, timeouts, connection failures)."""


class RetryError(DataApiError):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, message: str, last_exception: Exception | None = None) -> None:
        super().__init__(message)
        self.last_exception = last_exception


def with_retry(
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_RETRY_BASE_DELAY,
    retry_on: tuple[type[Exception], ...] = (DataApiTransientError,),
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator adding retry with exponential backoff to a coroutine function.

    Args:
        max_retries: Maximum number of retry attempts.
        base_delay: Base delay in seconds (doubles with each retry).
        retry_on: Tuple of exception types to retry on.

    Returns:
        Decorated coroutine function with retry logic.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            last_exception: Exception | None = None

            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except retry_on as e:
                    last_exception = e
                    if attempt == max_retries:
                        break

                    delay = base_delay * (2**attempt)
                    logger.warning(
                        "Attempt %d/%d failed: %s. Retrying in %.1f seconds...",
                        attempt + 1,
                        max_retries + 1,
                        str(e),
                        delay,
                    )
                    await asyncio.sleep(delay)

            raise RetryError(
                f"All {max_retries + 1} attempts failed for {func.__name__}",
                last_exception=last_exception,
            )

        return wrapper

    return decorator


class DataApiClient:
    """Fetches per-wallet trade snapshots from the Polymarket Data API.

    ``fetch_trades`` returns the wallet's most recent trades, unordered and
    possibly overlapping with earlier snapshots. Malformed items are logged
    and left out. Any failure raises ``DataApiError``; callers must never
    read a failure as "this wallet has no trades".

    Example:
        >>> async with DataApiClient() as client:
        ...     trades = await client.fetch_trades("0xabc...")
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_DATA_API_URL,
        trades_limit: int = DEFAULT_TRADES_LIMIT,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        requests_per_second: float = MAX_REQUESTS_PER_SECOND,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Data API client.

        Args:
            base_url: Data API endpoint URL.
            trades_limit: Number of most recent trades requested per wallet.
            timeout_seconds: Per-request timeout.
            requests_per_second: Rate limit for API requests.
            max_retries: Retry attempts for transient failures.
            retry_base_delay: First backoff delay in seconds.
            http_client: Optional pre-built httpx client (owned by the caller).
        """
        self._base_url = base_url.rstrip("/")
        self._trades_limit = trades_limit
        self._rate_limiter = RateLimiter(requests_per_second)
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={"Accept": "application/json"},
        )
        self._fetch_with_retry = with_retry(
            max_retries=max_retries,
            base_delay=retry_base_delay,
        )(self._get_trades_page)

        logger.info(
            "Initialized DataApiClient with base_url=%s, rate_limit=%.1f req/s",
            self._base_url,
            requests_per_second,
        )

    async def fetch_trades(self, wallet_address: str) -> list[TradeRecord]:
        """Fetch the current trade snapshot of a wallet.

        Args:
            wallet_address: Wallet (proxy) address to query.

        Returns:
            Parsed trade records; may be empty.

        Raises:
            DataApiError: If the request fails or the response is unusable.
        """
        payload = await self._fetch_with_retry(wallet_address.lower())
        return self._parse_trades(payload, wallet_address=wallet_address)

    async def _get_trades_page(self, wallet_address: str) -> Any:
        await self._rate_limiter.acquire()
        params: dict[str, str | int] = {
            "user": wallet_address,
            "limit": self._trades_limit,
            # The endpoint is CDN cached; a changing parameter keeps snapshots fresh.
            "t": int(time.time() * 1000),
        }
        try:
            response = await self._http.get(f"{self._base_url}/trades", params=params)
        except httpx.TimeoutException as e:
            raise DataApiTransientError(f"Timed out fetching trades for {wallet_address}") from e
        except httpx.TransportError as e:
            raise DataApiTransientError(f"Network error fetching trades for {wallet_address}: {e}") from e

        if response.status_code in RETRY_STATUS_CODES:
            raise DataApiTransientError(
                f"Data API returned {response.status_code} for {wallet_address}"
            )
        if response.status_code >= 400:
            raise DataApiError(f"Data API returned {response.status_code} for {wallet_address}")

        try:
            return response.json()
        except ValueError as e:
            raise DataApiError(f"Data API returned invalid JSON for {wallet_address}") from e

    def _parse_trades(self, payload: Any, *, wallet_address: str) -> list[TradeRecord]:
        items: Any = payload
        if isinstance(payload, dict) and isinstance(payload.get("data"), list):
            items = payload["data"]
        if not isinstance(items, list):
            raise DataApiError(f"Unexpected trades response shape for {wallet_address}")

        trades: list[TradeRecord] = []
        skipped = 0
        for item in items:
            try:
                trades.append(TradeRecord.from_data_api(item))
            except TradeRecordError as e:
                skipped += 1
                logger.warning("Skipping malformed trade for %s: %s", wallet_address, e)

        logger.debug(
            "Fetched %d trades for %s (%d skipped)",
            len(trades),
            wallet_address,
            skipped,
        )
        return trades

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> "DataApiClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
