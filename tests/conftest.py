"""Pytest fixtures and utilities for the coin trade simulator test suite."""
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from coinsim.core.config import TradingConfig, PriceFeedConfig
from coinsim.core.engine import TradeSimulationEngine
from coinsim.core.models import AccountState, PriceSnapshot, Trade, TradeAction, TradeRequest
from coinsim.exchange.coingecko_client import CoinGeckoClient
from coinsim.risk.eligibility import EligibilityChecker


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def trading_config():
    """Reference trading parameters: 1000 USD start, 100 USD trades, 1% fee, 5% threshold."""
    return TradingConfig(
        starting_balance=Decimal("1000"),
        trade_amount=Decimal("100"),
        trade_fee=Decimal("0.01"),
        trade_threshold=Decimal("0.05"),
        last_trade_lookup="latest",
    )


@pytest.fixture
def price_feed_config():
    return PriceFeedConfig(
        api_url="https://prices.test/api/v3",
        coins_str="bitcoin,ethereum,litecoin",
        poll_interval=60.0,
        timeout=5.0,
        retry_attempts=0,
    )


# =============================================================================
# Model Fixtures
# =============================================================================

@pytest.fixture
def fixed_now():
    return datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def price_payload():
    """CoinGecko simple/price response for the default coins."""
    return {
        "bitcoin": {"usd": 50000},
        "ethereum": {"usd": 2500.5},
        "litecoin": {"usd": 80.25},
    }


@pytest.fixture
def initial_state():
    return AccountState.initial(Decimal("1000"))


@pytest.fixture
def snapshot(price_payload, fixed_now):
    return PriceSnapshot.from_api(price_payload, fetched_at=fixed_now)


@pytest.fixture
def buy_request():
    return TradeRequest(coin="bitcoin", action=TradeAction.BUY, price=Decimal("50000"))


@pytest.fixture
def make_trade(fixed_now):
    """Factory for Trades with Decimal fields given as strings."""
    def _make_trade(coin="bitcoin", action=TradeAction.BUY, price="50000", amount="100", fee="1"):
        return Trade(
            coin=coin,
            action=action,
            price=Decimal(price),
            amount=Decimal(amount),
            fee=Decimal(fee),
            timestamp=fixed_now,
        )
    return _make_trade


# =============================================================================
# Component Fixtures
# =============================================================================

@pytest.fixture
def checker(trading_config):
    return EligibilityChecker.from_config(trading_config)


@pytest.fixture
def engine(trading_config):
    return TradeSimulationEngine(trading_config)


@pytest.fixture
def mock_price_client(snapshot, price_payload):
    """Price client that never touches the network."""
    client = MagicMock(spec=CoinGeckoClient)
    client.coins = ["bitcoin", "ethereum", "litecoin"]
    client.fetch_prices = AsyncMock(return_value=dict(price_payload))
    client.get_snapshot = AsyncMock(return_value=snapshot)
    client.close = AsyncMock()
    return client
