"""HTTP interface for the coin trade simulator.

Routes:
- GET  /             HTML page with prices, balance, holdings and history
- POST /trade        form submit for a buy/sell button
- POST /holdings     form submit for the custom holdings input
- GET  /v1/price     proxy to the public price API
- GET  /v1/account   current account state as JSON
- POST /v1/trade     JSON trade request {"coin": ..., "action": "buy"|"sell"}
- PUT  /v1/holdings  JSON holdings override {"bitcoin": 0.1, ...}

Every response carries the configured CORS origin; OPTIONS preflight
requests are answered directly.
"""
import asyncio
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import aiohttp
import structlog
from aiohttp import web

from coinsim.core.config import ServerConfig, SystemConfig, server_config
from coinsim.core.engine import TradeResult, TradeSimulationEngine
from coinsim.core.errors import HoldingsValidationError, PriceFeedError, UnknownCoinError
from coinsim.core.models import TradeAction
from coinsim.exchange.coingecko_client import CoinGeckoClient
from coinsim.exchange.price_poller import PricePoller
from coinsim.risk.eligibility import REJECTION_MESSAGE
from coinsim.web.dashboard import render_dashboard

logger = structlog.get_logger(__name__)

ENGINE_KEY = web.AppKey("engine", TradeSimulationEngine)
CLIENT_KEY = web.AppKey("client", CoinGeckoClient)
POLLER_KEY = web.AppKey("poller", PricePoller)
SETTINGS_KEY = web.AppKey("settings", dict)

CORS_ALLOW_METHODS = "GET,HEAD,PUT,PATCH,POST,DELETE"
CORS_ALLOW_HEADERS = "Content-Type"


class TradeRequestError(Exception):
    """Trade request could not be formed; carries the HTTP status."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.message = message
        self.status = status


# =============================================================================
# Helpers
# =============================================================================

def _account_payload(engine: TradeSimulationEngine) -> Dict[str, Any]:
    return engine.state.model_dump(mode="json")


def _submit(app: web.Application, coin: Any, action: Any) -> TradeResult:
    """Turn a (coin, action) pair into a trade at the latest known price.

    Raises:
        TradeRequestError: bad input (400), no prices yet (503) or
            unknown coin (404)
    """
    if not isinstance(coin, str) or not coin.strip():
        raise TradeRequestError("Field 'coin' must be a non-empty string", 400)
    try:
        trade_action = TradeAction(action)
    except ValueError:
        raise TradeRequestError("Field 'action' must be 'buy' or 'sell'", 400) from None

    snapshot = app[POLLER_KEY].latest
    if snapshot is None:
        raise TradeRequestError("Prices not available yet", 503)

    try:
        return app[ENGINE_KEY].trade_at_market(coin, trade_action, snapshot)
    except UnknownCoinError as e:
        raise TradeRequestError(str(e), 404) from e


def _redirect_home(message: str) -> web.HTTPFound:
    return web.HTTPFound("/?" + urlencode({"message": message}))


# =============================================================================
# Middleware
# =============================================================================

@web.middleware
async def cors_middleware(request: web.Request, handler):
    """Allow cross-origin calls, answering preflight requests directly."""
    origin = request.app[SETTINGS_KEY]["cors_origin"]

    if request.method == "OPTIONS":
        response = web.Response(status=204)
        response.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
        response.headers["Access-Control-Allow-Headers"] = request.headers.get(
            "Access-Control-Request-Headers", CORS_ALLOW_HEADERS
        )
        response.headers["Access-Control-Allow-Origin"] = origin
        return response

    try:
        response = await handler(request)
    except web.HTTPException as e:
        # Redirects and error pages are raised, not returned
        e.headers["Access-Control-Allow-Origin"] = origin
        raise
    response.headers["Access-Control-Allow-Origin"] = origin
    return response


# =============================================================================
# JSON API Handlers
# =============================================================================

async def handle_price(request: web.Request) -> web.Response:
    """Forward a price query to the public price API."""
    client = request.app[CLIENT_KEY]
    try:
        data = await client.fetch_prices()
    except (PriceFeedError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error("web.price_proxy_failed", error=str(e) or type(e).__name__)
        return web.json_response({"error": "Price API unavailable"}, status=502)
    return web.json_response(data)


async def handle_account(request: web.Request) -> web.Response:
    engine = request.app[ENGINE_KEY]
    payload = _account_payload(engine)
    snapshot = request.app[POLLER_KEY].latest
    if snapshot is not None:
        payload["prices"] = snapshot.to_api()
        payload["total_equity"] = str(engine.state.total_equity(snapshot))
    return web.json_response(payload)


async def handle_trade(request: web.Request) -> web.Response:
    try:
        body = await request.json()
    except ValueError:
        return web.json_response({"error": "Request body must be JSON"}, status=400)
    if not isinstance(body, dict):
        return web.json_response({"error": "Request body must be a JSON object"}, status=400)

    try:
        result = _submit(request.app, body.get("coin"), body.get("action"))
    except TradeRequestError as e:
        return web.json_response({"error": e.message}, status=e.status)

    if not result.executed:
        return web.json_response(
            {
                "error": REJECTION_MESSAGE,
                "reason": result.check.reason,
                "rule": result.check.rule_triggered,
            },
            status=409,
        )

    return web.json_response(
        {
            "executed": True,
            "trade": result.trade.model_dump(mode="json"),
            "account": result.state.model_dump(mode="json"),
        }
    )


async def handle_holdings(request: web.Request) -> web.Response:
    engine = request.app[ENGINE_KEY]
    raw = await request.read()
    try:
        engine.replace_holdings(raw)
    except HoldingsValidationError as e:
        return web.json_response({"error": e.message}, status=400)
    return web.json_response(_account_payload(engine))


# =============================================================================
# HTML Handlers
# =============================================================================

async def handle_index(request: web.Request) -> web.Response:
    app = request.app
    html = render_dashboard(
        app[ENGINE_KEY].state,
        app[POLLER_KEY].latest,
        message=request.query.get("message"),
        title=app[SETTINGS_KEY]["app_name"],
    )
    return web.Response(text=html, content_type="text/html")


async def handle_trade_form(request: web.Request) -> web.Response:
    form = await request.post()
    try:
        result = _submit(request.app, form.get("coin"), form.get("action"))
    except TradeRequestError as e:
        raise _redirect_home(e.message)

    if not result.executed:
        raise _redirect_home(REJECTION_MESSAGE)

    trade = result.trade
    raise _redirect_home(f"{trade.action.value.capitalize()} {trade.coin} at {trade.price:.2f} USD")


async def handle_holdings_form(request: web.Request) -> web.Response:
    form = await request.post()
    try:
        request.app[ENGINE_KEY].replace_holdings(str(form.get("holdings", "")))
    except HoldingsValidationError as e:
        raise _redirect_home(e.message)
    raise _redirect_home("Holdings updated")


# =============================================================================
# Lifecycle
# =============================================================================

async def _start_background(app: web.Application):
    if app[SETTINGS_KEY]["start_poller"]:
        await app[POLLER_KEY].start()


async def _stop_background(app: web.Application):
    poller = app[POLLER_KEY]
    if poller.is_running:
        await poller.stop()
    await app[CLIENT_KEY].close()


def create_app(
    engine: Optional[TradeSimulationEngine] = None,
    client: Optional[CoinGeckoClient] = None,
    poller: Optional[PricePoller] = None,
    config: Optional[ServerConfig] = None,
    poll_interval: float = 60.0,
    start_poller: bool = True,
) -> web.Application:
    """
    Build the web application.

    Args:
        engine: Trade simulation engine (a fresh one by default)
        client: Price API client
        poller: Price poller; built around ``client`` when omitted
        config: Server settings (CORS origin)
        poll_interval: Seconds between price refreshes for a new poller
        start_poller: Whether to start polling on application startup

    Returns:
        Configured aiohttp Application
    """
    config = config or server_config
    client = client or CoinGeckoClient()
    poller = poller or PricePoller(client, interval=poll_interval)

    app = web.Application(middlewares=[cors_middleware])
    app[ENGINE_KEY] = engine or TradeSimulationEngine()
    app[CLIENT_KEY] = client
    app[POLLER_KEY] = poller
    app[SETTINGS_KEY] = {
        "cors_origin": config.cors_origin,
        "app_name": SystemConfig().app_name,
        "start_poller": start_poller,
    }

    app.router.add_get("/", handle_index)
    app.router.add_post("/trade", handle_trade_form)
    app.router.add_post("/holdings", handle_holdings_form)
    app.router.add_get("/v1/price", handle_price)
    app.router.add_get("/v1/account", handle_account)
    app.router.add_post("/v1/trade", handle_trade)
    app.router.add_put("/v1/holdings", handle_holdings)

    app.on_startup.append(_start_background)
    app.on_cleanup.append(_stop_background)
    return app


def run_app(app: web.Application, host: str, port: int):
    """Serve ``app`` until interrupted."""
    logger.info("web.starting", host=host, port=port)
    web.run_app(app, host=host, port=port, print=None)
