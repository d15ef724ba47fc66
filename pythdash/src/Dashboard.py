"""Dashboard: User actions over the price, oracle, randomness and chat clients.

Each public coroutine is the call site nearest a user action. Operation
failures are caught here, turned into notifications on the AppState, and
reported to the caller as a None return; the state fields an action would
have replaced are left untouched.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from .ChatClient import ERROR_REPLY, WELCOME_MESSAGE, ChatMessage, demo_reply
from .errors import DashboardError
from .HttpClient import BaseHttpClient
from .OracleUpdater import DEFAULT_MAX_AGE_SECONDS
from .PriceFeedRegistry import get_feed
from .PricePoller import PricePoller
from .PriceQuote import format_price
from .RandomnessClient import DEFAULT_MAX_ATTEMPTS, DEFAULT_POLL_INTERVAL

if TYPE_CHECKING:
    from .AppState import AppState
    from .ChatClient import ChatClient
    from .OracleUpdater import OracleUpdater
    from .PriceClient import PriceClient
    from .PriceQuote import PriceQuote
    from .RandomnessClient import RandomnessClient
    from .RandomnessRequest import RandomnessRequest, RandomnessResult
    from .SigningConnection import SigningConnection

logger = logging.getLogger(__name__)


class Dashboard:
    """Coordinates user actions and keeps the AppState current.

    :ivar state: Shared dashboard state.
    :ivar connection: Signing connection, set by connect_wallet().
    :ivar poller: Periodic price refresher.
    """

    def __init__(
        self,
        state: AppState,
        price_client: PriceClient,
        chat_client: ChatClient,
        updater: OracleUpdater | None = None,
        randomness: RandomnessClient | None = None,
        poll_interval: float = 10.0,
        random_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        random_poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Initialize the dashboard.

        :param state: Shared dashboard state.
        :param price_client: Hermes client.
        :param chat_client: Chat-completion client.
        :param updater: Pyth contract client (None if not configured).
        :param randomness: Entropy client (None if not configured).
        :param poll_interval: Seconds between price refreshes (default: 10).
        :param random_max_attempts: Poll budget for randomness requests.
        :param random_poll_interval: Seconds between randomness polls.
        """
        self.state = state
        self.price_client = price_client
        self.chat_client = chat_client
        self.updater = updater
        self.randomness = randomness
        self.random_max_attempts = random_max_attempts
        self.random_poll_interval = random_poll_interval

        self.connection: SigningConnection | None = None
        self.poller = PricePoller(price_client, state, interval=poll_interval)
        self.random_task: asyncio.Task | None = None
        self._random_cancel: asyncio.Event | None = None

    def _error(self, message: str) -> None:
        logger.error(message)
        self.state.notify("error", message)

    def _info(self, message: str) -> None:
        logger.info(message)
        self.state.notify("info", message)

    async def start(self, poll: bool = True) -> None:
        """Seed the chat transcript and start price polling."""
        if not self.state.chat_messages:
            self.state.add_chat_message(ChatMessage("assistant", WELCOME_MESSAGE))
        if poll and not self.poller.running:
            self.poller.start()

    async def close(self) -> None:
        """Stop background tasks and release HTTP connections."""
        await self.poller.stop()
        await self._cancel_random_task()
        await BaseHttpClient.close_shared_client()

    # Wallet
    async def connect_wallet(self, connection: SigningConnection) -> str | None:
        """Connect a signing connection.

        :returns: Connected account address, or None on failure.
        """
        try:
            accounts = await asyncio.to_thread(connection.request_accounts)
        except Exception as e:
            self._error(f"Failed to connect wallet: {e}")
            return None
        if not accounts:
            self._error("Failed to connect wallet: no accounts available")
            return None

        self.connection = connection
        self.state.set_wallet_connected(True, accounts[0])
        self._info(f"Wallet connected: {accounts[0]}")
        return accounts[0]

    def disconnect_wallet(self) -> None:
        """Drop the signing connection and mark the wallet disconnected."""
        self.connection = None
        self.state.set_wallet_connected(False, None)

    def _require_wallet(self) -> bool:
        if self.connection is None:
            self._error("Please connect your wallet first!")
            return False
        return True

    # Price feeds
    async def select_feed(self, key: str) -> bool:
        """Select a feed by symbol or id, restarting polling if it runs.

        :returns: True if the selection changed.
        """
        try:
            feed = get_feed(key)
        except ValueError as e:
            self._error(str(e))
            return False
        if not self.state.select_feed(feed.id):
            return False
        logger.info(f"Selected feed {feed}")
        if self.poller.running:
            await self.poller.restart(feed.id)
        return True

    async def set_poll_interval(self, seconds: float) -> None:
        """Change the price refresh interval, restarting polling if it runs."""
        if self.poller.running:
            await self.poller.restart(interval=seconds)
        else:
            self.poller.interval = max(1.0, seconds)

    async def refresh_price(self) -> PriceQuote | None:
        """Fetch the selected feed's quote from Hermes."""
        try:
            return await self.poller.poll_once(self.state.selected_feed)
        except DashboardError as e:
            self._error(f"Failed to fetch price: {e}")
            return None

    async def update_on_chain(self) -> str | None:
        """Push the selected feed on-chain, then read the settled price back.

        :returns: Transaction hash, or None on failure.
        """
        if not self._require_wallet():
            return None
        if self.updater is None:
            self._error("No Pyth contract configured for this network")
            return None

        self.state.is_updating_price = True
        try:
            tx_hash = await self.updater.push_update(self.state.selected_feed, self.connection)
        except DashboardError as e:
            self._error(f"Failed to update price on-chain: {e}")
            return None
        finally:
            self.state.is_updating_price = False

        self._info(f"Price updated successfully! Transaction: {tx_hash}")
        await self.read_on_chain()
        return tx_hash

    async def read_on_chain(
        self, max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS
    ) -> PriceQuote | None:
        """Read the settled price of the selected feed from the contract."""
        if not self._require_wallet():
            return None
        if self.updater is None:
            self._error("No Pyth contract configured for this network")
            return None

        try:
            quote = await self.updater.read_settled_quote(
                self.state.selected_feed, self.connection, max_age_seconds
            )
        except DashboardError as e:
            self._error(
                f"Failed to read on-chain price: {e}. "
                "Make sure the price feed has been updated first."
            )
            return None

        self.state.set_current_price(quote)
        self._info(f"On-chain price: {format_price(quote.display_value, 2)}")
        return quote

    # Entropy
    async def request_random(self) -> RandomnessRequest | None:
        """Submit a randomness request and start waiting for it in the background.

        A previously tracked request stops being polled.

        :returns: The pending request, or None on failure.
        """
        if not self._require_wallet():
            return None
        if self.randomness is None:
            self._error("No Entropy contract configured for this network")
            return None

        self.state.is_requesting_random = True
        try:
            request = await self.randomness.submit_request(self.connection)
        except DashboardError as e:
            self._error(f"Failed to request random number: {e}")
            return None
        finally:
            self.state.is_requesting_random = False

        await self._cancel_random_task()
        self.state.set_randomness_request(request)
        self.state.set_generated_random(None)
        self._info(
            f"Random number requested! Request ID: {request.request_id}. "
            "Waiting for fulfillment..."
        )

        self._random_cancel = asyncio.Event()
        self.random_task = asyncio.create_task(
            self._await_random(request, self._random_cancel)
        )
        return request

    async def _await_random(
        self, request: RandomnessRequest, cancel_event: asyncio.Event
    ) -> RandomnessResult | None:
        try:
            result = await self.randomness.await_fulfillment(
                request.request_id,
                self.connection,
                max_attempts=self.random_max_attempts,
                interval_seconds=self.random_poll_interval,
                user_random=request.user_random,
                cancel_event=cancel_event,
            )
        except DashboardError as e:
            self._error(f"Failed to retrieve random number: {e}")
            return None

        if result is None:
            if not cancel_event.is_set():
                self._error(
                    f"Random number request {request.request_id} was not fulfilled "
                    f"after {self.random_max_attempts} attempts"
                )
            return None

        if self.state.mark_randomness_fulfilled(result.request_id, result.value):
            self._info(f"Random number generated: {result.value}")
        return result

    async def _cancel_random_task(self) -> None:
        task, self.random_task = self.random_task, None
        if self._random_cancel is not None:
            self._random_cancel.set()
        if task is None:
            return
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            return
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Randomness task failed: {task.exception()}")

    # Chat
    async def send_chat(self, text: str) -> str | None:
        """Append a user message and the assistant's reply to the transcript.

        Without an API key the offline demo responder answers and the chat
        service is not called.

        :returns: Assistant reply, or None if the message was ignored.
        """
        text = text.strip()
        if not text or self.state.is_loading_chat:
            return None

        self.state.add_chat_message(ChatMessage("user", text))
        self.state.is_loading_chat = True
        try:
            if self.state.has_api_key:
                reply = await self.chat_client.converse(
                    list(self.state.chat_messages), self.state.api_key
                )
            else:
                reply = demo_reply(text)
        except DashboardError as e:
            logger.error(f"Error getting AI response: {e}")
            reply = ERROR_REPLY
        finally:
            self.state.is_loading_chat = False

        self.state.add_chat_message(ChatMessage("assistant", reply))
        return reply
