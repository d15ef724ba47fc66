"""PricePoller: Periodic Hermes price refresh for the selected feed.

The poller owns at most one asyncio task. start() and restart() return the
task handle; restart() and stop() cancel the previous task so changing the
feed or the interval never leaves an orphaned loop behind.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from .errors import DashboardError
from .PriceFeedRegistry import normalize_feed_id

if TYPE_CHECKING:
    from .AppState import AppState
    from .PriceClient import PriceClient
    from .PriceQuote import PriceQuote

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0


class PricePoller:
    """Refreshes the current price and chart history on a fixed interval.

    :ivar price_client: Hermes client.
    :ivar state: Dashboard state updated with each quote.
    :ivar interval: Seconds between fetches.
    """

    def __init__(
        self,
        price_client: PriceClient,
        state: AppState,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Initialize the poller.

        :param price_client: Hermes client.
        :param state: Dashboard state.
        :param interval: Seconds between fetches (minimum: 1, default: 10).
        """
        self.price_client = price_client
        self.state = state
        self.interval = max(1.0, interval)
        self._task: asyncio.Task | None = None
        self._feed_id: str | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self, feed_id: str) -> PriceQuote:
        """Fetch one quote and record it in the state.

        A quote for a feed that is no longer selected is returned but not
        recorded.

        :param feed_id: Feed id with or without ``0x`` prefix.
        :returns: Fetched quote.
        :raises DashboardError: If the fetch fails.
        :raises ValueError: If feed_id is malformed.
        """
        feed_id = normalize_feed_id(feed_id)
        quote = await self.price_client.fetch_display_quote(feed_id)
        if feed_id != self.state.selected_feed:
            logger.debug(f"Discarding quote for deselected feed {feed_id[:8]}")
            return quote
        self.state.set_current_price(quote)
        self.state.add_price_to_history(quote.publish_time, float(quote.display_value))
        return quote

    async def _loop(self, feed_id: str) -> None:
        logger.info(f"Starting price polling for {feed_id[:8]} every {self.interval}s")
        while True:
            try:
                await self.poll_once(feed_id)
            except DashboardError as e:
                logger.warning(f"Price fetch for {feed_id[:8]} failed: {e}")
            except Exception as e:
                logger.error(f"Unexpected error fetching price for {feed_id[:8]}: {e}")
            await asyncio.sleep(self.interval)

    def _selected(self, feed_id: str | None) -> str:
        feed_id = normalize_feed_id(feed_id or self.state.selected_feed)
        if feed_id != self.state.selected_feed:
            raise ValueError(f"Feed {feed_id} is not the selected feed; select it first")
        return feed_id

    def start(self, feed_id: str | None = None) -> asyncio.Task:
        """Start polling; fetches immediately, then every interval.

        Must be called from a running event loop.

        :param feed_id: Feed to poll (default: the selected feed).
        :returns: Handle of the polling task.
        :raises RuntimeError: If the poller is already running.
        :raises ValueError: If feed_id is malformed or not the selected feed.
        """
        if self.running:
            raise RuntimeError("Price poller is already running")
        self._feed_id = self._selected(feed_id)
        self._task = asyncio.create_task(self._loop(self._feed_id))
        return self._task

    async def stop(self) -> None:
        """Cancel the polling task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("Price polling stopped")

    async def restart(
        self, feed_id: str | None = None, interval: float | None = None
    ) -> asyncio.Task:
        """Cancel the current task and start a new one.

        :param feed_id: New feed (default: the selected feed).
        :param interval: New interval in seconds (default: unchanged).
        :returns: Handle of the new polling task.
        :raises ValueError: If feed_id is malformed or not the selected feed.
        """
        self._selected(feed_id)
        await self.stop()
        if interval is not None:
            self.interval = max(1.0, interval)
        return self.start(feed_id)
