"""Trade execution - account state transitions for simulated trades."""
from datetime import datetime
from decimal import Decimal
from typing import Optional
import structlog

from coinsim.core.models import AccountState, Trade, TradeRequest, utc_now

logger = structlog.get_logger(__name__)


def execute_trade(
    state: AccountState,
    request: TradeRequest,
    amount: Decimal,
    fee_rate: Decimal,
    now: Optional[datetime] = None,
) -> AccountState:
    """
    Apply a trade to an account state and return the next state.

    The caller is expected to have checked eligibility first; no checks
    are made here and the input state is left untouched.

    Balance moves by ``amount + fee`` in the action's direction, so a sell
    credits the fee on top of the notional rather than deducting it from
    the proceeds. Holdings move by ``amount / price``.

    Args:
        state: Current account state
        request: Trade to apply
        amount: USD notional
        fee_rate: Fee as a fraction of the notional (0.01 = 1%)
        now: Execution time, defaults to the current UTC time

    Returns:
        New AccountState with balance, holdings and history updated together
    """
    amount = Decimal(amount)
    fee = amount * Decimal(fee_rate)
    action = request.action

    trade = Trade(
        coin=request.coin,
        action=action,
        price=request.price,
        amount=amount,
        fee=fee,
        timestamp=now or utc_now(),
    )

    balance = state.balance + action.balance_sign * (amount + fee)

    holdings = dict(state.holdings)
    holdings[request.coin] = state.holding(request.coin) + action.holdings_sign * amount / request.price

    next_state = AccountState(
        balance=balance,
        holdings=holdings,
        history=state.history + (trade,),
    )

    logger.info(
        "executor.trade_applied",
        coin=trade.coin,
        action=action.value,
        price=str(trade.price),
        amount=str(amount),
        fee=str(fee),
        balance=str(balance),
        holding=str(holdings[request.coin]),
    )
    return next_state
