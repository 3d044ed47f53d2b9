"""CoinGecko price client for the coin trade simulator.

Fetches current USD prices from the public ``simple/price`` endpoint.
The simulator never trades against a real exchange; this client is the
only outbound network dependency.
"""
import asyncio
from typing import Any, Dict, List, Optional

import aiohttp
import structlog

from coinsim.core.config import PriceFeedConfig, price_feed_config
from coinsim.core.errors import PriceFeedError
from coinsim.core.models import PriceSnapshot

logger = structlog.get_logger(__name__)

VS_CURRENCY = "usd"


class RetryConfig:
    """Configuration for retry logic."""
    DEFAULT_MAX_RETRIES = 3
    DEFAULT_BASE_DELAY = 1.0  # seconds
    DEFAULT_MAX_DELAY = 30.0  # seconds
    DEFAULT_EXPONENTIAL_BASE = 2.0


RETRYABLE_EXCEPTIONS = (aiohttp.ClientConnectionError, asyncio.TimeoutError)


def with_retry(
    max_retries: Optional[int] = None,
    base_delay: float = RetryConfig.DEFAULT_BASE_DELAY,
    max_delay: float = RetryConfig.DEFAULT_MAX_DELAY,
    exponential_base: float = RetryConfig.DEFAULT_EXPONENTIAL_BASE,
    retryable_exceptions: tuple = RETRYABLE_EXCEPTIONS,
):
    """Decorator for adding retry logic with exponential backoff.

    When ``max_retries`` is None the decorated method's instance is asked
    for ``self.max_retries``.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential backoff calculation
        retryable_exceptions: Tuple of exceptions that should trigger a retry
    """
    def decorator(func):
        async def wrapper(*args, **kwargs):
            retries = max_retries
            if retries is None:
                retries = getattr(args[0], "max_retries", RetryConfig.DEFAULT_MAX_RETRIES)
            last_exception = None

            for attempt in range(retries + 1):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    last_exception = e
                    if attempt < retries:
                        delay = min(
                            base_delay * (exponential_base ** attempt),
                            max_delay
                        )
                        logger.warning(
                            f"{func.__name__}.retry_attempt",
                            attempt=attempt + 1,
                            max_retries=retries,
                            delay=delay,
                            error=str(e) or type(e).__name__
                        )
                        await asyncio.sleep(delay)

            logger.error(
                f"{func.__name__}.max_retries_exceeded",
                max_retries=retries,
                last_error=str(last_exception) or type(last_exception).__name__
            )
            raise last_exception

        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        return wrapper
    return decorator


class CoinGeckoClient:
    """Async client for the CoinGecko simple price API.

    Attributes:
        api_url: Base API URL
        coins: Coin ids requested by default
        timeout: Per-request timeout in seconds
        max_retries: Retry attempts for connection errors and timeouts
    """

    def __init__(
        self,
        config: Optional[PriceFeedConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        config = config or price_feed_config
        self.api_url = config.api_url.rstrip("/")
        self.coins: List[str] = config.coins
        self.timeout = config.timeout
        self.max_retries = config.retry_attempts

        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the HTTP session if this client created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
            logger.debug("coingecko_client.closed")
        self._session = None

    async def __aenter__(self) -> "CoinGeckoClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    @with_retry()
    async def fetch_prices(self, coins: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Fetch current USD prices.

        Args:
            coins: Coin ids to query, defaults to the configured list

        Returns:
            Raw payload, e.g. ``{"bitcoin": {"usd": 50000}}``

        Raises:
            PriceFeedError: on a non-200 response or a non-object body
        """
        coins = coins or self.coins
        params = {"ids": ",".join(coins), "vs_currencies": VS_CURRENCY}
        session = await self._get_session()

        async with session.get(f"{self.api_url}/simple/price", params=params) as resp:
            if resp.status != 200:
                body = await resp.text()
                logger.warning(
                    "coingecko_client.bad_status",
                    status=resp.status,
                    body=body[:200],
                )
                raise PriceFeedError(
                    f"Price API returned HTTP {resp.status}", status=resp.status
                )
            try:
                data = await resp.json(content_type=None)
            except ValueError as e:
                raise PriceFeedError(f"Price API returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise PriceFeedError(f"Unexpected price payload: {type(data).__name__}")

        logger.debug("coingecko_client.prices_fetched", coins=list(data.keys()))
        return data

    async def get_snapshot(self, coins: Optional[List[str]] = None) -> PriceSnapshot:
        """Fetch prices and wrap them in a PriceSnapshot."""
        return PriceSnapshot.from_api(await self.fetch_prices(coins))