"""Trade eligibility checks.

A proposed trade is eligible when the account can fund it and, for a coin
that has been traded before, the price has moved far enough since the
reference trade. Rules are evaluated in priority order; the first failing
rule rejects the trade.

A rejected trade is not an error: evaluation returns an EligibilityCheck
with ``passed=False`` and the caller decides how to report it.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Literal, Optional
import structlog

from coinsim.core.models import AccountState, Trade, TradeAction, TradeRequest

logger = structlog.get_logger(__name__)

LastTradeLookup = Literal["latest", "first"]

REJECTION_MESSAGE = "Trade not possible or profitable"


@dataclass(frozen=True)
class EligibilityCheck:
    """Result of an eligibility evaluation.

    Attributes:
        passed: Whether the request passed all rules
        reason: Human-readable explanation if a rule failed
        rule_triggered: Name of the rule that rejected the request (if any)
        metadata: Diagnostic values used by the failing rule
    """
    passed: bool
    reason: str = ""
    rule_triggered: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.passed

    @classmethod
    def approved(cls) -> "EligibilityCheck":
        return cls(passed=True)

    @classmethod
    def rejected(cls, rule: str, reason: str, **metadata) -> "EligibilityCheck":
        return cls(passed=False, reason=reason, rule_triggered=rule, metadata=metadata)


@dataclass(frozen=True)
class EligibilityRule:
    """Individual eligibility rule.

    Attributes:
        name: Unique identifier for the rule
        check_fn: Function(state, request) -> EligibilityCheck
        priority: Lower numbers are checked first
    """
    name: str
    check_fn: Callable[[AccountState, TradeRequest], EligibilityCheck]
    priority: int = 100


def find_reference_trade(
    history, coin: str, lookup: LastTradeLookup = "latest"
) -> Optional[Trade]:
    """Trade the price threshold is measured against.

    ``latest`` scans from the end and returns the most recent trade for the
    coin. ``first`` returns the first match in stored order, which is the
    oldest trade for the coin.
    """
    trades = history if lookup == "first" else reversed(history)
    for trade in trades:
        if trade.coin == coin:
            return trade
    return None


class EligibilityChecker:
    """
    Decides whether a proposed trade should execute.

    Rules, in priority order:
    1. sufficient_balance: a buy needs ``balance >= trade_amount``
    2. sufficient_holdings: a sell needs ``holdings[coin] * price >= trade_amount``
    3. price_threshold: a coin traded before needs a price move of at least
       ``trade_threshold`` relative to the reference trade's price

    Evaluation is a pure function of the account state and the request.
    """

    def __init__(
        self,
        trade_amount: Decimal,
        trade_threshold: Decimal,
        last_trade_lookup: LastTradeLookup = "latest",
    ):
        self.trade_amount = Decimal(trade_amount)
        self.trade_threshold = Decimal(trade_threshold)
        self.last_trade_lookup = last_trade_lookup

        self._rules: List[EligibilityRule] = [
            EligibilityRule(
                name="sufficient_balance",
                check_fn=self._check_balance,
                priority=1,
            ),
            EligibilityRule(
                name="sufficient_holdings",
                check_fn=self._check_holdings,
                priority=2,
            ),
            EligibilityRule(
                name="price_threshold",
                check_fn=self._check_price_threshold,
                priority=3,
            ),
        ]
        self._rules.sort(key=lambda r: r.priority)

    @classmethod
    def from_config(cls, config) -> "EligibilityChecker":
        """Build a checker from a TradingConfig."""
        return cls(
            trade_amount=config.trade_amount,
            trade_threshold=config.trade_threshold,
            last_trade_lookup=config.last_trade_lookup,
        )

    @property
    def rules(self) -> List[EligibilityRule]:
        return list(self._rules)

    def evaluate(self, state: AccountState, request: TradeRequest) -> EligibilityCheck:
        """
        Evaluate a trade request against all rules.

        Args:
            state: Current account state (not modified)
            request: Proposed trade

        Returns:
            EligibilityCheck from the first failing rule, or an approval
        """
        for rule in self._rules:
            result = rule.check_fn(state, request)
            if not result.passed:
                logger.info(
                    "eligibility.rejected",
                    coin=request.coin,
                    action=request.action.value,
                    price=str(request.price),
                    rule=rule.name,
                    reason=result.reason,
                )
                return result

        logger.debug(
            "eligibility.approved",
            coin=request.coin,
            action=request.action.value,
            price=str(request.price),
        )
        return EligibilityCheck.approved()

    def is_eligible(self, state: AccountState, request: TradeRequest) -> bool:
        """Boolean form of :meth:`evaluate`."""
        return self.evaluate(state, request).passed

    # === Rule Implementations ===

    def _check_balance(self, state: AccountState, request: TradeRequest) -> EligibilityCheck:
        if request.action is TradeAction.BUY and state.balance < self.trade_amount:
            return EligibilityCheck.rejected(
                "sufficient_balance",
                f"Balance {state.balance} is below trade amount {self.trade_amount}",
                balance=str(state.balance),
                trade_amount=str(self.trade_amount),
            )
        return EligibilityCheck.approved()

    def _check_holdings(self, state: AccountState, request: TradeRequest) -> EligibilityCheck:
        if request.action is not TradeAction.SELL:
            return EligibilityCheck.approved()

        quantity = state.holding(request.coin)
        sellable_value = quantity * request.price
        if sellable_value < self.trade_amount:
            return EligibilityCheck.rejected(
                "sufficient_holdings",
                f"Holdings of {request.coin} worth {sellable_value} USD are below "
                f"trade amount {self.trade_amount}",
                quantity=str(quantity),
                sellable_value=str(sellable_value),
                trade_amount=str(self.trade_amount),
            )
        return EligibilityCheck.approved()

    def _check_price_threshold(
        self, state: AccountState, request: TradeRequest
    ) -> EligibilityCheck:
        reference = find_reference_trade(state.history, request.coin, self.last_trade_lookup)
        if reference is None:
            return EligibilityCheck.approved()

        change = reference.price_change_from(request.price)
        if change < self.trade_threshold:
            return EligibilityCheck.rejected(
                "price_threshold",
                f"Price change {change:.4%} since last {request.coin} trade is below "
                f"threshold {self.trade_threshold:.2%}",
                reference_price=str(reference.price),
                price_change=str(change),
                threshold=str(self.trade_threshold),
            )
        return EligibilityCheck.approved()


def check_trade(
    state: AccountState,
    request: TradeRequest,
    trade_amount: Decimal,
    trade_threshold: Decimal,
    last_trade_lookup: LastTradeLookup = "latest",
) -> bool:
    """Return True if ``request`` may execute against ``state``."""
    checker = EligibilityChecker(trade_amount, trade_threshold, last_trade_lookup)
    return checker.is_eligible(state, request)
