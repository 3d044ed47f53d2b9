"""Exception hierarchy for the coin trade simulator.

Eligibility failures are not exceptions: a rejected trade is reported as
an ``EligibilityCheck`` with ``passed=False``.
"""


class CoinSimError(Exception):
    """Base class for all simulator errors."""


class HoldingsValidationError(CoinSimError, ValueError):
    """Holdings override is not a non-empty mapping of coin -> number."""

    def __init__(self, message: str = "Invalid data format"):
        super().__init__(message)
        self.message = message


class UnknownCoinError(CoinSimError, KeyError):
    """No known price for the requested coin."""

    def __init__(self, coin: str):
        super().__init__(coin)
        self.coin = coin

    def __str__(self) -> str:
        return f"No known price for coin '{self.coin}'"


class PriceFeedError(CoinSimError):
    """Upstream price API returned an unusable response."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status
