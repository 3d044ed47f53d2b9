"""Unit tests for trade execution state transitions."""
from datetime import datetime, timezone
from decimal import Decimal

from coinsim.core.executor import execute_trade
from coinsim.core.models import AccountState, TradeAction, TradeRequest


AMOUNT = Decimal("100")
FEE_RATE = Decimal("0.01")


def sell_request(price="50000", coin="bitcoin"):
    return TradeRequest(coin=coin, action=TradeAction.SELL, price=Decimal(price))


class TestBuyExecution:
    """Buying debits amount + fee and adds amount / price of the coin."""

    def test_reference_buy(self, initial_state, buy_request, fixed_now):
        state = execute_trade(initial_state, buy_request, AMOUNT, FEE_RATE, now=fixed_now)

        assert state.balance == Decimal("899")
        assert state.holdings == {"bitcoin": Decimal("0.002")}
        assert len(state.history) == 1

        trade = state.history[0]
        assert trade.coin == "bitcoin"
        assert trade.action is TradeAction.BUY
        assert trade.price == Decimal("50000")
        assert trade.amount == Decimal("100")
        assert trade.fee == Decimal("1")
        assert trade.timestamp == fixed_now

    def test_buy_adds_to_existing_holdings(self, buy_request):
        state = AccountState(balance=Decimal("500"), holdings={"bitcoin": Decimal("0.5")})
        next_state = execute_trade(state, buy_request, AMOUNT, FEE_RATE)
        assert next_state.holdings["bitcoin"] == Decimal("0.502")

    def test_buy_keeps_other_holdings(self, buy_request):
        state = AccountState(balance=Decimal("500"), holdings={"ethereum": Decimal("3")})
        next_state = execute_trade(state, buy_request, AMOUNT, FEE_RATE)
        assert next_state.holdings == {
            "ethereum": Decimal("3"),
            "bitcoin": Decimal("0.002"),
        }


class TestSellExecution:
    """Selling credits amount + fee and removes amount / price of the coin."""

    def test_sell_credits_amount_plus_fee(self, fixed_now):
        state = AccountState(balance=Decimal("1000"), holdings={"bitcoin": Decimal("0.01")})
        next_state = execute_trade(state, sell_request(), AMOUNT, FEE_RATE, now=fixed_now)

        # The fee is added to the proceeds, not deducted from them
        assert next_state.balance == Decimal("1101")
        assert next_state.holdings["bitcoin"] == Decimal("0.008")

        trade = next_state.history[-1]
        assert trade.action is TradeAction.SELL
        assert trade.fee == Decimal("1")

    def test_sell_without_holdings_goes_negative(self, initial_state):
        next_state = execute_trade(initial_state, sell_request(), AMOUNT, FEE_RATE)
        assert next_state.holdings["bitcoin"] == Decimal("-0.002")


class TestTransition:
    """Execution returns a new state and leaves the input untouched."""

    def test_input_state_unchanged(self, initial_state, buy_request):
        execute_trade(initial_state, buy_request, AMOUNT, FEE_RATE)
        assert initial_state.balance == Decimal("1000")
        assert initial_state.holdings == {}
        assert initial_state.history == ()

    def test_trade_appended_at_end(self, buy_request, make_trade):
        earlier = make_trade(coin="ethereum", price="2500")
        state = AccountState(balance=Decimal("1000"), history=(earlier,))
        next_state = execute_trade(state, buy_request, AMOUNT, FEE_RATE)

        assert next_state.history[0] == earlier
        assert next_state.history[1].coin == "bitcoin"

    def test_zero_fee(self, initial_state, buy_request):
        next_state = execute_trade(initial_state, buy_request, AMOUNT, Decimal("0"))
        assert next_state.balance == Decimal("900")
        assert next_state.history[0].fee == Decimal("0")

    def test_timestamp_taken_at_execution(self, initial_state, buy_request):
        before = datetime.now(timezone.utc)
        next_state = execute_trade(initial_state, buy_request, AMOUNT, FEE_RATE)
        after = datetime.now(timezone.utc)
        assert before <= next_state.history[0].timestamp <= after

    def test_round_trip_restores_quantity(self, initial_state, buy_request):
        bought = execute_trade(initial_state, buy_request, AMOUNT, FEE_RATE)
        sold = execute_trade(bought, sell_request(), AMOUNT, FEE_RATE)

        assert sold.holdings["bitcoin"] == Decimal("0")
        # Buy cost 101, sell credited 101
        assert sold.balance == Decimal("1000")
        assert [t.action for t in sold.history] == [TradeAction.BUY, TradeAction.SELL]
