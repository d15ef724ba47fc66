"""PriceClient: Pyth Hermes price service client.

Hermes serves both forms of a price:
    - parsed quotes (mantissa/exponent) for display
    - signed binary updates that are submitted on-chain before reading

Endpoint: GET {hermes}/v2/updates/price/latest?ids[]=<feed id>
"""

import logging

from .errors import FeedDataMissing, UpstreamUnavailable
from .HttpClient import BaseHttpClient
from .PriceFeedRegistry import normalize_feed_id
from .PriceQuote import PriceQuote

logger = logging.getLogger(__name__)

DEFAULT_HERMES_URL = "https://hermes.pyth.network"


class PriceClient(BaseHttpClient):
    """Client for the Hermes price service.

    Calls have no side effects and may run concurrently for different feeds.

    :ivar base_url: Hermes base URL.
    """

    LATEST_PATH = "/v2/updates/price/latest"

    def __init__(self, base_url: str = DEFAULT_HERMES_URL, **kwargs) -> None:
        """Initialize the price client.

        :param base_url: Hermes base URL (default: public Hermes).
        :param kwargs: Passed to BaseHttpClient (timeout, client).
        """
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    async def _latest(self, feed_id: str, **extra: str) -> dict:
        params = [("ids[]", normalize_feed_id(feed_id))]
        params.extend(extra.items())
        response = await self._get(self.base_url + self.LATEST_PATH, params=params)
        return self._json(response)

    async def fetch_display_quote(self, feed_id: str) -> PriceQuote:
        """Fetch the latest parsed quote for a feed.

        :param feed_id: Feed id with or without ``0x`` prefix.
        :returns: Latest quote.
        :raises UpstreamUnavailable: On network failure or malformed response.
        :raises FeedDataMissing: If Hermes returns no quote for the feed.
        """
        data = await self._latest(feed_id)

        parsed = data.get("parsed")
        if not isinstance(parsed, list):
            raise UpstreamUnavailable(f"No parsed price data in response for {feed_id}")
        if not parsed:
            raise FeedDataMissing(f"No price data received for {feed_id}")

        try:
            quote = PriceQuote.from_hermes(parsed[0]["price"])
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamUnavailable(f"Failed to parse price for {feed_id}: {e}") from e

        logger.debug(
            f"Hermes quote for {feed_id[:8]}: {quote.display_value} "
            f"(publish_time={quote.publish_time})"
        )
        return quote

    async def fetch_update_payload(self, feed_id: str) -> list[bytes]:
        """Fetch the signed update data needed to push a price on-chain.

        :param feed_id: Feed id with or without ``0x`` prefix.
        :returns: List of opaque update payloads.
        :raises UpstreamUnavailable: On network failure or malformed response.
        :raises FeedDataMissing: If Hermes returns no update for the feed.
        """
        data = await self._latest(feed_id, encoding="hex", parsed="false")

        binary = data.get("binary")
        updates = binary.get("data") if isinstance(binary, dict) else None
        if updates is None:
            raise UpstreamUnavailable(f"No price feed data received for {feed_id}")
        if isinstance(updates, str):
            updates = [updates]
        if not updates:
            raise FeedDataMissing(f"Empty update data received for {feed_id}")

        try:
            payload = [bytes.fromhex(u[2:] if u.startswith("0x") else u) for u in updates]
        except (AttributeError, ValueError) as e:
            raise UpstreamUnavailable(f"Invalid update data for {feed_id}: {e}") from e

        logger.info(f"Fetched {len(payload)} update(s) from Hermes for {feed_id[:8]}")
        return payload
