"""Web interface for the coin trade simulator."""

from coinsim.web.app import create_app, run_app

__all__ = [
    'create_app',
    'run_app',
]
