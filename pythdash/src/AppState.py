"""AppState: Dashboard state shared by the clients and the presentation.

Every mutation replaces a whole field (tuples instead of lists, frozen
dataclasses for records), so concurrent coroutines never observe a partially
updated value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .ChatClient import ChatMessage
from .PriceFeedRegistry import DEFAULT_FEED, normalize_feed_id
from .PriceQuote import PriceQuote
from .RandomnessRequest import RandomnessRequest

logger = logging.getLogger(__name__)

# Number of price points kept for the chart.
HISTORY_CAPACITY = 20


@dataclass(frozen=True)
class PriceHistoryPoint:
    """One chart point.

    :ivar timestamp: Publish time in Unix seconds.
    :ivar value: Display-scale price.
    """

    timestamp: int
    value: float


@dataclass(frozen=True)
class Notification:
    """A user-visible message.

    :ivar level: "info" or "error".
    :ivar message: Message text.
    """

    level: str
    message: str


class AppState:
    """Explicit state container passed to the Dashboard.

    :ivar wallet_connected: Whether a signing connection is established.
    :ivar wallet_address: Connected account address.
    :ivar api_key: Chat API key (process memory only).
    :ivar selected_feed: Selected feed id.
    :ivar current_price: Latest quote from Hermes or the contract.
    :ivar price_history: Bounded chart history, oldest first.
    :ivar chat_messages: Chat transcript, oldest first.
    :ivar randomness_request: Tracked randomness request.
    :ivar generated_random: Resolved random value for the tracked request.
    :ivar notifications: User-visible messages, oldest first.
    """

    def __init__(self, selected_feed: str = DEFAULT_FEED.id, api_key: str = "") -> None:
        self.wallet_connected = False
        self.wallet_address: str | None = None
        self.api_key = api_key
        self.selected_feed = normalize_feed_id(selected_feed)
        self.current_price: PriceQuote | None = None
        self.price_history: tuple[PriceHistoryPoint, ...] = ()
        self.chat_messages: tuple[ChatMessage, ...] = ()
        self.randomness_request: RandomnessRequest | None = None
        self.generated_random: str | None = None
        self.notifications: tuple[Notification, ...] = ()

        # In-flight flags
        self.is_loading_chat = False
        self.is_updating_price = False
        self.is_requesting_random = False

    # Wallet
    def set_wallet_connected(self, connected: bool, address: str | None) -> None:
        """Record the wallet connection.

        :param connected: Whether a signing connection is established.
        :param address: Connected account; ignored when disconnecting.
        """
        self.wallet_connected = connected
        self.wallet_address = address if connected else None

    # Chat
    def add_chat_message(self, message: ChatMessage) -> None:
        """Append a message to the transcript.

        :param message: Message to append.
        """
        self.chat_messages = (*self.chat_messages, message)

    def clear_chat(self) -> None:
        """Remove every message from the transcript."""
        self.chat_messages = ()

    def set_api_key(self, api_key: str) -> None:
        """Store the chat API key in memory.

        :param api_key: Bearer credential; surrounding whitespace is stripped.
        """
        self.api_key = api_key.strip()

    @property
    def has_api_key(self) -> bool:
        """Return True if a chat API key is configured."""
        return bool(self.api_key)

    # Price feeds
    def select_feed(self, feed_id: str) -> bool:
        """Select a feed.

        Switching feeds clears the current quote and history, since they
        belong to the previous feed.

        :param feed_id: Feed id with or without ``0x`` prefix.
        :returns: True if the selection changed.
        :raises ValueError: If feed_id is malformed.
        """
        feed_id = normalize_feed_id(feed_id)
        if feed_id == self.selected_feed:
            return False
        self.selected_feed = feed_id
        self.current_price = None
        self.price_history = ()
        return True

    def set_current_price(self, quote: PriceQuote | None) -> None:
        """Replace the displayed quote.

        :param quote: Latest quote, or None to clear it.
        """
        self.current_price = quote

    def add_price_to_history(self, timestamp: int, value: float) -> None:
        """Append a point, evicting the oldest beyond HISTORY_CAPACITY.

        :param timestamp: Publish time in Unix seconds.
        :param value: Display-scale price.
        """
        point = PriceHistoryPoint(timestamp=timestamp, value=value)
        self.price_history = (*self.price_history[-(HISTORY_CAPACITY - 1):], point)

    # Entropy
    def set_randomness_request(self, request: RandomnessRequest | None) -> None:
        """Track a request, replacing any previously tracked one.

        :param request: Request to track, or None to stop tracking.
        """
        self.randomness_request = request

    def mark_randomness_fulfilled(self, request_id: str, value: str) -> bool:
        """Record fulfilment for the tracked request.

        Results for a request that is no longer tracked are ignored.

        :param request_id: Sequence number the result belongs to.
        :param value: Resolved random value.
        :returns: True if the tracked request was updated.
        """
        request = self.randomness_request
        if request is None or request.request_id != request_id:
            logger.debug(f"Ignoring result for untracked request {request_id}")
            return False
        self.randomness_request = request.mark_fulfilled()
        self.generated_random = value
        return True

    def set_generated_random(self, value: str | None) -> None:
        """Replace the displayed random value.

        :param value: Random value, or None to clear it.
        """
        self.generated_random = value

    # Notifications
    def notify(self, level: str, message: str) -> None:
        """Append a user-visible notification.

        :param level: "info" or "error".
        :param message: Message text.
        """
        self.notifications = (*self.notifications, Notification(level, message))
