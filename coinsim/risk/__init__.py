"""Trade eligibility module for the coin trade simulator.

A trade executes only when the account can fund it and the coin's price
has moved far enough since its reference trade.
"""

from coinsim.risk.eligibility import (
    EligibilityChecker,
    EligibilityCheck,
    EligibilityRule,
    REJECTION_MESSAGE,
    check_trade,
    find_reference_trade,
)

__all__ = [
    'EligibilityChecker',
    'EligibilityCheck',
    'EligibilityRule',
    'REJECTION_MESSAGE',
    'check_trade',
    'find_reference_trade',
]
