"""Trade simulation engine - owns the simulated account state."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Union
import structlog
from pydantic import ValidationError

from coinsim.core.config import TradingConfig, trading_config
from coinsim.core.errors import HoldingsValidationError
from coinsim.core.executor import execute_trade
from coinsim.core.models import (
    AccountState, HoldingsOverride, PriceSnapshot, Trade, TradeAction, TradeRequest
)
from coinsim.risk.eligibility import EligibilityCheck, EligibilityChecker

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TradeResult:
    """Outcome of a submitted trade request.

    Attributes:
        executed: Whether the trade was applied
        check: Eligibility evaluation behind the decision
        trade: The recorded trade (None when rejected)
        state: Account state after the request
    """
    executed: bool
    check: EligibilityCheck
    trade: Optional[Trade]
    state: AccountState


class TradeSimulationEngine:
    """
    Owns a single simulated account and applies trades to it.

    Responsibilities:
    - Evaluates trade requests through the eligibility checker
    - Installs the executor's next state for eligible requests
    - Replaces holdings wholesale on user override (no trade logic)

    Every operation reads the current state, decides and installs the next
    state without suspending, so requests are applied one at a time in
    arrival order. Under asyncio all callers share one event loop, which
    serialises them.
    """

    def __init__(self, config: Optional[TradingConfig] = None):
        self.config = config or trading_config
        self.checker = EligibilityChecker.from_config(self.config)
        self._state = AccountState.initial(self.config.starting_balance)

        logger.info(
            "engine.initialized",
            starting_balance=str(self.config.starting_balance),
            trade_amount=str(self.config.trade_amount),
            trade_fee=str(self.config.trade_fee),
            trade_threshold=str(self.config.trade_threshold),
            last_trade_lookup=self.config.last_trade_lookup,
        )

    @property
    def state(self) -> AccountState:
        """Current account state."""
        return self._state

    def evaluate(self, request: TradeRequest) -> EligibilityCheck:
        """Check a request against the current state without applying it."""
        return self.checker.evaluate(self._state, request)

    def submit_trade(
        self, request: TradeRequest, now: Optional[datetime] = None
    ) -> TradeResult:
        """
        Evaluate a trade request and apply it if eligible.

        Args:
            request: Proposed trade
            now: Execution time override (defaults to current UTC time)

        Returns:
            TradeResult; a rejected request leaves the state unchanged
        """
        state = self._state
        check = self.checker.evaluate(state, request)

        if not check.passed:
            return TradeResult(executed=False, check=check, trade=None, state=state)

        next_state = execute_trade(
            state,
            request,
            amount=self.config.trade_amount,
            fee_rate=self.config.trade_fee,
            now=now,
        )
        self._state = next_state
        trade = next_state.history[-1]

        logger.info(
            "engine.trade_executed",
            coin=trade.coin,
            action=trade.action.value,
            price=str(trade.price),
            balance=str(next_state.balance),
            trades=len(next_state.history),
        )
        return TradeResult(executed=True, check=check, trade=trade, state=next_state)

    def trade_at_market(
        self,
        coin: str,
        action: Union[TradeAction, str],
        snapshot: PriceSnapshot,
        now: Optional[datetime] = None,
    ) -> TradeResult:
        """
        Submit a trade at the snapshot's price for ``coin``.

        Raises:
            UnknownCoinError: if the snapshot has no price for the coin
        """
        request = TradeRequest(
            coin=coin, action=TradeAction(action), price=snapshot.price_of(coin)
        )
        return self.submit_trade(request, now=now)

    def replace_holdings(
        self, holdings: Union[HoldingsOverride, Mapping[str, Any], str, bytes]
    ) -> AccountState:
        """
        Replace the account holdings wholesale.

        This pathway bypasses the trade logic entirely: no history entry,
        no fee and no eligibility checks. Quantities are not checked against
        the account's balance or history.

        Args:
            holdings: HoldingsOverride, mapping of coin -> number, or JSON text

        Returns:
            New account state

        Raises:
            HoldingsValidationError: input is not a non-empty mapping of
                string -> number; state is left unchanged
        """
        override = parse_holdings(holdings)
        self._state = self._state.model_copy(update={"holdings": override.to_holdings()})

        logger.info(
            "engine.holdings_replaced",
            coins=sorted(self._state.holdings.keys()),
        )
        return self._state

    def reset(self) -> AccountState:
        """Return to the starting balance with empty holdings and history."""
        self._state = AccountState.initial(self.config.starting_balance)
        logger.info("engine.reset", balance=str(self._state.balance))
        return self._state

    def get_status(self, snapshot: Optional[PriceSnapshot] = None) -> Dict[str, Any]:
        """Summary of the account for status displays."""
        state = self._state
        status = {
            "balance": str(state.balance),
            "holdings": {coin: str(qty) for coin, qty in state.holdings.items()},
            "trades": len(state.history),
        }
        if snapshot is not None:
            status["holdings_value"] = str(state.holdings_value(snapshot))
            status["total_equity"] = str(state.total_equity(snapshot))
        return status


def parse_holdings(
    holdings: Union[HoldingsOverride, Mapping[str, Any], str, bytes]
) -> HoldingsOverride:
    """Validate user-submitted holdings.

    Raises:
        HoldingsValidationError: with a user-facing message
    """
    if isinstance(holdings, HoldingsOverride):
        return holdings
    try:
        if isinstance(holdings, (str, bytes)):
            return HoldingsOverride.model_validate_json(holdings)
        return HoldingsOverride.model_validate(holdings)
    except ValidationError as e:
        logger.info("engine.holdings_rejected", errors=e.error_count())
        raise HoldingsValidationError(_validation_message(e)) from e


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    if first.get("type") == "json_invalid":
        return first.get("msg", "Invalid JSON")
    return f"Invalid data format: {first.get('msg')}"
