"""
Coin Trade Simulator - Main Entry Point

Serves live coin prices and a simulated trading account over HTTP.

Usage:
    # Check configuration
    python main.py --check

    # Fetch and print one price snapshot
    python main.py --prices

    # Run the web server (default port 3000)
    python main.py
    python main.py --host 127.0.0.1 --port 8000
"""

import argparse
import asyncio
from typing import List, Optional

import aiohttp
import structlog

from coinsim.core.config import simulator_config
from coinsim.core.engine import TradeSimulationEngine
from coinsim.core.errors import PriceFeedError
from coinsim.exchange.coingecko_client import CoinGeckoClient
from coinsim.utils.logging_config import setup_logging
from coinsim.web.app import create_app, run_app

logger = structlog.get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Coin Trade Simulator - simulated trading against live prices"
    )
    parser.add_argument(
        "--check", action="store_true", help="Validate configuration and exit"
    )
    parser.add_argument(
        "--prices", action="store_true", help="Fetch one price snapshot and exit"
    )
    parser.add_argument(
        "--host", default=None, help="Bind address (default from SERVER_HOST)"
    )
    parser.add_argument(
        "--port", type=int, default=None, help="Bind port (default from SERVER_PORT)"
    )
    return parser.parse_args(argv)


def check_configuration() -> dict:
    """Validate configuration and collect a summary for display."""
    result = simulator_config.validate_configuration()
    trading = simulator_config.trading
    return {
        **result,
        "coins": simulator_config.price_feed.coins,
        "starting_balance": str(trading.starting_balance),
        "trade_amount": str(trading.trade_amount),
        "trade_fee": str(trading.trade_fee),
        "trade_threshold": str(trading.trade_threshold),
        "last_trade_lookup": trading.last_trade_lookup,
    }


def print_configuration(config_check: dict):
    print("\n" + "=" * 60)
    print("           CONFIGURATION CHECK")
    print("=" * 60)

    if config_check["valid"]:
        print("\n✓ Configuration is valid")
    else:
        print("\n✗ Configuration errors:")
        for issue in config_check["issues"]:
            print(f"   - {issue}")

    print(f"\nCoins: {', '.join(config_check['coins'])}")
    print(f"Starting balance: {config_check['starting_balance']} USD")
    print(f"Trade amount: {config_check['trade_amount']} USD")
    print(f"Trade fee: {config_check['trade_fee']}")
    print(f"Trade threshold: {config_check['trade_threshold']}")
    print(f"Last trade lookup: {config_check['last_trade_lookup']}")
    print("\n" + "=" * 60)


async def print_prices() -> int:
    """Fetch one snapshot and print it. Returns a process exit code."""
    async with CoinGeckoClient(config=simulator_config.price_feed) as client:
        try:
            snapshot = await client.get_snapshot()
        except (PriceFeedError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            print(f"✗ Price fetch failed: {str(e) or type(e).__name__}")
            return 1

    for coin, entry in snapshot.prices.items():
        print(f"{coin.upper():<12} {entry.usd:>14.2f} USD")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(simulator_config.logging)

    config_check = check_configuration()

    if args.check:
        print_configuration(config_check)
        return 0 if config_check["valid"] else 1

    if not config_check["valid"]:
        print_configuration(config_check)
        print("\nPlease check your .env file and try again.")
        return 1

    if args.prices:
        return asyncio.run(print_prices())

    server = simulator_config.server
    host = args.host or server.host
    port = args.port or server.port

    app = create_app(
        engine=TradeSimulationEngine(simulator_config.trading),
        client=CoinGeckoClient(config=simulator_config.price_feed),
        config=server,
        poll_interval=simulator_config.price_feed.poll_interval,
    )

    logger.info(
        "main.starting",
        app=simulator_config.system.app_name,
        environment=simulator_config.system.environment,
        host=host,
        port=port,
    )
    run_app(app, host=host, port=port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
