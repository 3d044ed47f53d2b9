"""Unit tests for trade eligibility checks."""
import pytest
from decimal import Decimal

from coinsim.core.models import AccountState, TradeAction, TradeRequest
from coinsim.risk.eligibility import (
    EligibilityCheck, EligibilityChecker, check_trade, find_reference_trade
)


def request(action="buy", price="50000", coin="bitcoin"):
    return TradeRequest(coin=coin, action=TradeAction(action), price=Decimal(price))


def state_with(balance="1000", holdings=None, history=()):
    return AccountState(
        balance=Decimal(balance),
        holdings={k: Decimal(v) for k, v in (holdings or {}).items()},
        history=tuple(history),
    )


# =============================================================================
# EligibilityCheck Tests
# =============================================================================

class TestEligibilityCheck:
    """Test EligibilityCheck result object."""

    def test_approved(self):
        check = EligibilityCheck.approved()
        assert check.passed
        assert bool(check) is True
        assert check.rule_triggered is None

    def test_rejected(self):
        check = EligibilityCheck.rejected("price_threshold", "too small", change="0.01")
        assert not check.passed
        assert bool(check) is False
        assert check.rule_triggered == "price_threshold"
        assert check.metadata == {"change": "0.01"}


# =============================================================================
# Balance / Holdings Sufficiency
# =============================================================================

class TestSufficiency:
    """Buy needs balance, sell needs holdings worth the trade amount."""

    def test_buy_rejected_when_balance_below_amount(self, checker):
        check = checker.evaluate(state_with(balance="99.99"), request("buy"))
        assert not check.passed
        assert check.rule_triggered == "sufficient_balance"

    def test_buy_allowed_at_exact_amount(self, checker):
        assert checker.is_eligible(state_with(balance="100"), request("buy"))

    def test_buy_ignores_holdings(self, checker):
        assert checker.is_eligible(state_with(balance="1000", holdings={}), request("buy"))

    def test_sell_rejected_without_holdings(self, checker):
        check = checker.evaluate(state_with(), request("sell"))
        assert not check.passed
        assert check.rule_triggered == "sufficient_holdings"
        assert check.metadata["quantity"] == "0"

    def test_sell_rejected_when_value_below_amount(self, checker):
        state = state_with(holdings={"bitcoin": "0.001"})  # 50 USD at 50000
        check = checker.evaluate(state, request("sell"))
        assert not check.passed
        assert check.rule_triggered == "sufficient_holdings"

    def test_sell_allowed_at_exact_amount(self, checker):
        state = state_with(holdings={"bitcoin": "0.002"})  # 100 USD at 50000
        assert checker.is_eligible(state, request("sell"))

    def test_sell_ignores_balance(self, checker):
        state = state_with(balance="0", holdings={"bitcoin": "1"})
        assert checker.is_eligible(state, request("sell"))

    def test_sell_uses_request_price(self, checker):
        state = state_with(holdings={"bitcoin": "0.002"})
        assert not checker.is_eligible(state, request("sell", price="49999"))

    def test_sell_checks_requested_coin_only(self, checker):
        state = state_with(holdings={"ethereum": "10"})
        assert not checker.is_eligible(state, request("sell"))

    def test_negative_holdings_block_sell(self, checker):
        state = state_with(holdings={"bitcoin": "-1"})
        assert not checker.is_eligible(state, request("sell"))


# =============================================================================
# Price Threshold
# =============================================================================

class TestPriceThreshold:
    """A coin traded before needs a minimum price move."""

    def test_first_trade_skips_threshold(self, checker):
        assert checker.is_eligible(state_with(), request("buy", price="1"))

    def test_small_move_rejected(self, checker, make_trade):
        state = state_with(history=[make_trade(price="50000")])
        check = checker.evaluate(state, request("buy", price="50100"))  # 0.2%
        assert not check.passed
        assert check.rule_triggered == "price_threshold"
        assert Decimal(check.metadata["price_change"]) == Decimal("0.002")
        assert check.metadata["reference_price"] == "50000"

    def test_large_move_allowed(self, checker, make_trade):
        state = state_with(history=[make_trade(price="50000")])
        assert checker.is_eligible(state, request("buy", price="60000"))  # 20%

    def test_exact_threshold_allowed(self, checker, make_trade):
        state = state_with(history=[make_trade(price="50000")])
        assert checker.is_eligible(state, request("buy", price="52500"))  # exactly 5%

    def test_price_drop_counts(self, checker, make_trade):
        state = state_with(history=[make_trade(price="50000")])
        assert checker.is_eligible(state, request("buy", price="47000"))  # -6%
        assert not checker.is_eligible(state, request("buy", price="49000"))  # -2%

    def test_threshold_applies_to_sell(self, checker, make_trade):
        state = state_with(
            holdings={"bitcoin": "1"},
            history=[make_trade(price="50000")],
        )
        check = checker.evaluate(state, request("sell", price="50500"))
        assert check.rule_triggered == "price_threshold"

    def test_other_coins_do_not_count(self, checker, make_trade):
        state = state_with(history=[make_trade(coin="ethereum", price="50000")])
        assert checker.is_eligible(state, request("buy", price="50001"))

    def test_sufficiency_checked_before_threshold(self, checker, make_trade):
        state = state_with(balance="10", history=[make_trade(price="50000")])
        check = checker.evaluate(state, request("buy", price="50001"))
        assert check.rule_triggered == "sufficient_balance"

    def test_zero_threshold_allows_unchanged_price(self, make_trade):
        checker = EligibilityChecker(Decimal("100"), Decimal("0"))
        state = state_with(history=[make_trade(price="50000")])
        assert checker.is_eligible(state, request("buy", price="50000"))


# =============================================================================
# Reference Trade Lookup
# =============================================================================

class TestReferenceTradeLookup:
    """Threshold reference is the latest trade, or the oldest in 'first' mode."""

    @pytest.fixture
    def history(self, make_trade):
        return (
            make_trade(price="50000"),
            make_trade(coin="ethereum", price="2500"),
            make_trade(price="60000"),
        )

    def test_find_latest(self, history):
        assert find_reference_trade(history, "bitcoin", "latest").price == Decimal("60000")

    def test_find_first(self, history):
        assert find_reference_trade(history, "bitcoin", "first").price == Decimal("50000")

    def test_find_none(self, history):
        assert find_reference_trade(history, "litecoin") is None
        assert find_reference_trade((), "bitcoin") is None

    def test_latest_mode_measures_from_most_recent_trade(self, history):
        checker = EligibilityChecker(Decimal("100"), Decimal("0.05"), "latest")
        state = state_with(history=history)
        assert not checker.is_eligible(state, request("buy", price="60500"))
        assert checker.is_eligible(state, request("buy", price="50500"))

    def test_first_mode_measures_from_oldest_trade(self, history):
        checker = EligibilityChecker(Decimal("100"), Decimal("0.05"), "first")
        state = state_with(history=history)
        assert checker.is_eligible(state, request("buy", price="60500"))
        assert not checker.is_eligible(state, request("buy", price="50500"))


# =============================================================================
# Purity / Construction
# =============================================================================

class TestCheckerBehavior:
    """Evaluation is pure and configurable."""

    def test_evaluation_is_idempotent(self, checker, make_trade):
        state = state_with(balance="150", history=[make_trade(price="50000")])
        req = request("buy", price="50100")
        results = [checker.evaluate(state, req) for _ in range(3)]
        assert results[0] == results[1] == results[2]
        assert state.balance == Decimal("150")
        assert len(state.history) == 1

    def test_from_config(self, trading_config):
        checker = EligibilityChecker.from_config(trading_config)
        assert checker.trade_amount == Decimal("100")
        assert checker.trade_threshold == Decimal("0.05")
        assert checker.last_trade_lookup == "latest"

    def test_rule_order(self, checker):
        assert [r.name for r in checker.rules] == [
            "sufficient_balance", "sufficient_holdings", "price_threshold"
        ]

    def test_check_trade_function(self, make_trade):
        state = state_with(history=[make_trade(price="50000")])
        assert check_trade(state, request("buy", price="60000"), Decimal("100"), Decimal("0.05"))
        assert not check_trade(state, request("buy", price="50100"), Decimal("100"), Decimal("0.05"))
        assert not check_trade(
            state, request("buy", price="60000"), Decimal("2000"), Decimal("0.05")
        )
