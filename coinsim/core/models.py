"""Data models for the coin trade simulator.

This module defines the data structures shared by the trade simulation
engine and its collaborators:
- Trade / TradeRequest: a simulated trade and the request that produces it
- AccountState: balance, holdings and append-only trade history
- PriceSnapshot: the latest USD prices supplied by the price feed
- HoldingsOverride: user-submitted holdings that bypass the engine

All monetary values use Decimal for precision.
All timestamps are timezone-aware UTC datetime objects.
"""

import math
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    StrictFloat,
    StrictInt,
    field_validator,
    model_validator,
)

from coinsim.core.errors import PriceFeedError, UnknownCoinError


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def normalize_coin(coin: str) -> str:
    """Coin identifiers are lowercase CoinGecko ids (e.g. "bitcoin")."""
    return coin.strip().lower()


# =============================================================================
# Enums
# =============================================================================

class TradeAction(str, Enum):
    """Trade action - buy or sell."""
    BUY = "buy"
    SELL = "sell"

    @property
    def balance_sign(self) -> int:
        """Direction the balance moves by (amount + fee)."""
        return -1 if self is TradeAction.BUY else 1

    @property
    def holdings_sign(self) -> int:
        """Direction the coin quantity moves by amount / price."""
        return 1 if self is TradeAction.BUY else -1


# =============================================================================
# Trade Models
# =============================================================================

class TradeRequest(BaseModel):
    """A proposed trade.

    The price is taken by the caller from the latest known price snapshot;
    the engine never re-fetches it, so it may be stale.
    """
    model_config = ConfigDict(frozen=True)

    coin: str = Field(..., description="Coin identifier")
    action: TradeAction = Field(..., description="Buy or sell")
    price: Decimal = Field(..., gt=0, description="USD price per unit")

    @field_validator("coin")
    @classmethod
    def coin_not_empty(cls, v: str) -> str:
        v = normalize_coin(v)
        if not v:
            raise ValueError("Coin identifier must not be empty")
        return v


class Trade(BaseModel):
    """Executed simulated trade.

    Immutable once created. Trades are appended to the account history
    and never mutated or removed.

    Attributes:
        coin: Coin identifier
        action: Buy or sell
        price: USD price per unit at execution
        amount: USD notional of the trade
        fee: USD fee charged
        timestamp: Execution time (UTC)
    """
    model_config = ConfigDict(frozen=True)

    coin: str = Field(..., description="Coin identifier")
    action: TradeAction = Field(..., description="Buy or sell")
    price: Decimal = Field(..., gt=0, description="USD price per unit")
    amount: Decimal = Field(..., gt=0, description="USD notional")
    fee: Decimal = Field(default=Decimal("0"), ge=0, description="USD fee")
    timestamp: datetime = Field(default_factory=utc_now, description="Execution time")

    @property
    def quantity(self) -> Decimal:
        """Coin quantity moved by this trade."""
        return self.amount / self.price

    def price_change_from(self, price: Decimal) -> Decimal:
        """Fractional move of ``price`` relative to this trade's price."""
        return abs(price - self.price) / self.price


# =============================================================================
# Price Models
# =============================================================================

def _parse_price(value: Any) -> Optional[Decimal]:
    """Decimal price from an API value, None unless finite and positive."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


class CoinPrice(BaseModel):
    """Price entry as returned by the price API."""
    model_config = ConfigDict(frozen=True)

    usd: Decimal = Field(..., gt=0, description="USD price per unit")


class PriceSnapshot(BaseModel):
    """Mapping of coin identifier to current USD price."""
    model_config = ConfigDict(frozen=True)

    prices: Dict[str, CoinPrice] = Field(default_factory=dict, description="Prices by coin")
    fetched_at: datetime = Field(default_factory=utc_now, description="Fetch time")

    @classmethod
    def from_api(
        cls, payload: Mapping[str, Any], fetched_at: Optional[datetime] = None
    ) -> "PriceSnapshot":
        """Build a snapshot from a ``simple/price`` payload.

        Coins without a finite, positive ``usd`` entry are skipped; the API
        answers ``{}`` for ids it does not know.
        """
        if not isinstance(payload, Mapping):
            raise PriceFeedError(f"Unexpected price payload: {type(payload).__name__}")

        prices = {}
        for coin, entry in payload.items():
            if not isinstance(entry, Mapping):
                continue
            usd = _parse_price(entry.get("usd"))
            if usd is None:
                continue
            prices[normalize_coin(coin)] = CoinPrice(usd=usd)

        return cls(prices=prices, fetched_at=fetched_at or utc_now())

    @property
    def coins(self) -> List[str]:
        return list(self.prices.keys())

    def price_of(self, coin: str) -> Decimal:
        """USD price for ``coin``.

        Raises:
            UnknownCoinError: if the snapshot has no price for the coin
        """
        entry = self.prices.get(normalize_coin(coin))
        if entry is None:
            raise UnknownCoinError(coin)
        return entry.usd

    def to_api(self) -> Dict[str, Dict[str, float]]:
        """Serialise back to the ``{coin: {"usd": price}}`` wire shape."""
        return {coin: {"usd": float(entry.usd)} for coin, entry in self.prices.items()}


# =============================================================================
# Account Models
# =============================================================================

class AccountState(BaseModel):
    """Simulated account: USD balance, coin holdings and trade history.

    State values are never modified in place; every transition returns a
    new AccountState.

    Attributes:
        balance: USD balance (not forced to stay >= 0)
        holdings: Coin quantity by coin identifier
        history: Executed trades, oldest first
    """
    model_config = ConfigDict(frozen=True)

    balance: Decimal = Field(..., description="USD balance")
    holdings: Dict[str, Decimal] = Field(default_factory=dict, description="Coin holdings")
    history: Tuple[Trade, ...] = Field(default=(), description="Trade history")

    @classmethod
    def initial(cls, starting_balance: Decimal) -> "AccountState":
        """Fresh account with empty holdings and history."""
        return cls(balance=starting_balance)

    def holding(self, coin: str) -> Decimal:
        """Held quantity of ``coin`` (0 when not held)."""
        return self.holdings.get(normalize_coin(coin), Decimal("0"))

    def trades_for(self, coin: str) -> List[Trade]:
        """Trades for ``coin`` in stored (oldest first) order."""
        coin = normalize_coin(coin)
        return [trade for trade in self.history if trade.coin == coin]

    def holdings_value(self, snapshot: PriceSnapshot) -> Decimal:
        """USD value of holdings at snapshot prices.

        Coins missing from the snapshot contribute nothing.
        """
        value = Decimal("0")
        for coin, quantity in self.holdings.items():
            entry = snapshot.prices.get(coin)
            if entry is not None:
                value += quantity * entry.usd
        return value

    def total_equity(self, snapshot: PriceSnapshot) -> Decimal:
        """Balance plus holdings value."""
        return self.balance + self.holdings_value(snapshot)


# =============================================================================
# Holdings Override
# =============================================================================

Quantity = Union[StrictInt, StrictFloat]


class HoldingsOverride(RootModel[Dict[str, Quantity]]):
    """User-submitted holdings replacing the account holdings wholesale.

    Accepts only a non-empty mapping of coin identifier to number.
    Booleans and numeric strings are rejected.
    """

    @model_validator(mode="after")
    def check_entries(self) -> "HoldingsOverride":
        if not self.root:
            raise ValueError("Holdings must contain at least one coin")
        for coin, quantity in self.root.items():
            if not coin.strip():
                raise ValueError("Coin identifier must not be empty")
            try:
                finite = math.isfinite(quantity)
            except OverflowError:
                finite = False
            if not finite:
                raise ValueError(f"Quantity for '{coin}' must be a finite number")
        return self

    def to_holdings(self) -> Dict[str, Decimal]:
        return {
            normalize_coin(coin): Decimal(str(quantity))
            for coin, quantity in self.root.items()
        }
