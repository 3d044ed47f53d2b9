"""Price feed module for the coin trade simulator."""

from coinsim.exchange.coingecko_client import (
    CoinGeckoClient,
    RetryConfig,
    with_retry,
)
from coinsim.exchange.price_poller import PricePoller

__all__ = [
    'CoinGeckoClient',
    'RetryConfig',
    'with_retry',
    'PricePoller',
]
