"""Periodic price refresh."""
import asyncio
import inspect
from typing import Any, Callable, List, Optional
import aiohttp
import structlog

from coinsim.core.errors import PriceFeedError
from coinsim.core.models import PriceSnapshot
from coinsim.exchange.coingecko_client import CoinGeckoClient

logger = structlog.get_logger(__name__)

SnapshotCallback = Callable[[PriceSnapshot], Any]


class PricePoller:
    """
    Keeps the latest price snapshot fresh.

    Fetches once immediately on start, then every ``interval`` seconds.
    A failed fetch is logged and the previous snapshot is kept.
    """

    def __init__(self, client: CoinGeckoClient, interval: float = 60.0):
        self.client = client
        self.interval = interval

        self._latest: Optional[PriceSnapshot] = None
        self._callbacks: List[SnapshotCallback] = []
        self._task: Optional[asyncio.Task] = None
        self._running = False

        self.fetch_count = 0
        self.error_count = 0

    @property
    def latest(self) -> Optional[PriceSnapshot]:
        """Most recent snapshot, None before the first successful fetch."""
        return self._latest

    @property
    def is_running(self) -> bool:
        return self._running

    def on_snapshot(self, callback: SnapshotCallback):
        """Register a callback invoked with each new snapshot."""
        self._callbacks.append(callback)

    async def start(self):
        """Start polling in a background task."""
        if self._running:
            return
        logger.info("price_poller.starting", interval=self.interval, coins=self.client.coins)
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self):
        """Cancel the polling task."""
        logger.info("price_poller.stopping")
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("price_poller.stopped", fetches=self.fetch_count, errors=self.error_count)

    async def refresh(self) -> Optional[PriceSnapshot]:
        """Fetch one snapshot now.

        Returns:
            The new snapshot, or None if the fetch failed
        """
        try:
            snapshot = await self.client.get_snapshot()
        except (PriceFeedError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.error_count += 1
            logger.error(
                "price_poller.fetch_failed",
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
            )
            return None

        self._latest = snapshot
        self.fetch_count += 1
        logger.info(
            "price_poller.snapshot",
            prices={coin: str(entry.usd) for coin, entry in snapshot.prices.items()},
        )

        for callback in self._callbacks:
            result = callback(snapshot)
            if inspect.isawaitable(result):
                await result
        return snapshot

    async def _poll_loop(self):
        while self._running:
            try:
                await self.refresh()
            except Exception as e:
                self.error_count += 1
                logger.error(
                    "price_poller.loop_error",
                    error=str(e) or type(e).__name__,
                    error_type=type(e).__name__,
                )
            await asyncio.sleep(self.interval)
