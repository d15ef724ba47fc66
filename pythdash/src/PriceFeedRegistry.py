"""PriceFeedRegistry: Known Pyth price feeds and feed id normalization.

Feed ids are 32-byte identifiers. They are stored as 64 lowercase hex
characters without a ``0x`` prefix, which is the form Hermes expects; the
contracts take the ``0x``-prefixed ``bytes32`` form.

.. code-block:: python

    >>> feed = get_feed("btc/usd")
    >>> feed.name
    'Bitcoin'
    >>> feed.bytes32[:10]
    '0xe62df6c8'
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_HEX_ID = re.compile(r"^[0-9a-f]{64}$")


def normalize_feed_id(feed_id: str) -> str:
    """Normalize a feed id to 64 lowercase hex characters.

    :param feed_id: Feed id with or without ``0x`` prefix.
    :returns: Normalized feed id.
    :raises ValueError: If the id is not 32 bytes of hex.
    """
    value = feed_id.strip().lower()
    if value.startswith("0x"):
        value = value[2:]
    if not _HEX_ID.match(value):
        raise ValueError(
            f"Invalid feed id '{feed_id}'. Expected 32 bytes of hex"
        )
    return value


@dataclass(frozen=True)
class PriceFeedDescriptor:
    """An immutable description of one Pyth price feed.

    :ivar id: Normalized feed id (64 hex chars, no prefix).
    :ivar symbol: Trading symbol (e.g., "BTC/USD").
    :ivar name: Display name (e.g., "Bitcoin").
    """

    id: str
    symbol: str
    name: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", normalize_feed_id(self.id))
        object.__setattr__(self, "symbol", self.symbol.upper())

    def __str__(self) -> str:
        return f"{self.symbol} ({self.name})"

    @property
    def bytes32(self) -> str:
        """Return the ``0x``-prefixed id used in contract calls."""
        return "0x" + self.id


PRICE_FEEDS: tuple[PriceFeedDescriptor, ...] = (
    PriceFeedDescriptor(
        "e62df6c8b4a85fe1a67db44dc12de5db330f7ac66b72dc658afedf0f4a415b43",
        "BTC/USD",
        "Bitcoin",
    ),
    PriceFeedDescriptor(
        "ff61491a931112ddf1bd8147cd1b641375f79f5825126d665480874634fd0ace",
        "ETH/USD",
        "Ethereum",
    ),
    PriceFeedDescriptor(
        "eaa020c61cc479712813461ce153894a96a6c00b21ed0cfc2798d1f9a9e9c94a",
        "USDC/USD",
        "USD Coin",
    ),
    PriceFeedDescriptor(
        "03ae4db29ed4ae33d323568895aa00337e658e348b37509f5372ae51f0af00d5",
        "SOL/USD",
        "Solana",
    ),
    PriceFeedDescriptor(
        "49f6b65cb1de6b10eaf75e7c03ca029c306d0357e91b5311b175084a5ad55688",
        "AAPL/USD",
        "Apple Inc",
    ),
)

DEFAULT_FEED = PRICE_FEEDS[0]


def find_feed(key: str) -> PriceFeedDescriptor | None:
    """Look up a known feed by symbol or id.

    :param key: Symbol (case-insensitive, e.g. "eth/usd") or feed id.
    :returns: Matching descriptor, or None if the feed is not registered.
    """
    symbol = key.strip().upper()
    for feed in PRICE_FEEDS:
        if feed.symbol == symbol:
            return feed
    try:
        feed_id = normalize_feed_id(key)
    except ValueError:
        return None
    for feed in PRICE_FEEDS:
        if feed.id == feed_id:
            return feed
    return None


def get_feed(key: str) -> PriceFeedDescriptor:
    """Resolve a symbol or feed id to a descriptor.

    Unregistered but well-formed feed ids resolve to an ad-hoc descriptor
    so any Pyth feed can be used.

    :param key: Symbol or feed id.
    :returns: Feed descriptor.
    :raises ValueError: If key is neither a known symbol nor a valid id.
    """
    feed = find_feed(key)
    if feed is not None:
        return feed
    try:
        feed_id = normalize_feed_id(key)
    except ValueError:
        known = ", ".join(f.symbol for f in PRICE_FEEDS)
        raise ValueError(f"Unknown feed '{key}'. Known feeds: {known}") from None
    return PriceFeedDescriptor(feed_id, feed_id[:8], "Custom feed")
