"""OracleUpdater: Pull-oracle update and consume flow against the Pyth contract.

Steps:
    1. Fetch signed update data from Hermes (PriceClient)
    2. Query the on-chain fee for that exact payload
    3. Submit updatePriceFeeds paying exactly that fee and wait for the receipt
    4. Read the settled price back with getPriceNoOlderThan

Every push sends a new transaction, even if Hermes returns unchanged data.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from hexbytes import HexBytes
from web3.exceptions import ContractLogicError

from .ContractUtility import ContractUtility
from .errors import (
    ChainSubmissionFailed,
    DashboardError,
    StaleOrMissingQuote,
    UpstreamUnavailable,
    WalletNotConnected,
)
from .PriceFeedRegistry import normalize_feed_id
from .PriceQuote import PriceQuote

if TYPE_CHECKING:
    from web3.contract import Contract

    from .PriceClient import PriceClient
    from .SigningConnection import SigningConnection

logger = logging.getLogger(__name__)

# Default freshness bound for settled reads.
DEFAULT_MAX_AGE_SECONDS = 60


class OracleUpdater:
    """Pushes Hermes updates on-chain and reads settled quotes.

    :ivar price_client: Hermes client used to fetch update payloads.
    :ivar contract_address: Pyth contract address.
    """

    def __init__(
        self,
        price_client: PriceClient,
        contract_address: str | None,
        abi: list | None = None,
    ) -> None:
        """Initialize the updater.

        :param price_client: Hermes client.
        :param contract_address: Pyth contract address on the target chain.
        :param abi: Contract ABI (default: bundled IPyth ABI).
        :raises ValueError: If no contract address is given.
        """
        if not contract_address:
            raise ValueError("No Pyth contract address configured")
        self.price_client = price_client
        self.contract_address = contract_address
        self.abi = abi if abi is not None else ContractUtility.get_contract("IPyth")

    def _contract(self, connection: SigningConnection | None) -> Contract:
        if connection is None:
            raise WalletNotConnected()
        try:
            return connection.contract(self.contract_address, self.abi)
        except Exception as e:
            raise DashboardError(f"Cannot load contract at {self.contract_address}: {e}") from e

    async def get_update_fee(
        self, payload: list[bytes], connection: SigningConnection | None
    ) -> int:
        """Query the fee owed for an update payload.

        :param payload: Update payload from Hermes.
        :param connection: Signing connection.
        :returns: Fee in wei.
        :raises ChainSubmissionFailed: If the fee query fails.
        """
        contract = self._contract(connection)
        try:
            fee = await asyncio.to_thread(contract.functions.getUpdateFee(payload).call)
        except Exception as e:
            raise ChainSubmissionFailed("Update fee query", e) from e
        return int(fee)

    async def push_update(self, feed_id: str, connection: SigningConnection | None) -> str:
        """Fetch a fresh update from Hermes and submit it on-chain.

        :param feed_id: Feed id with or without ``0x`` prefix.
        :param connection: Signing connection.
        :returns: Confirmed transaction hash (``0x``-prefixed).
        :raises WalletNotConnected: If there is no usable signing connection.
        :raises UpstreamUnavailable: If Hermes cannot be reached.
        :raises FeedDataMissing: If Hermes has no update for the feed.
        :raises ChainSubmissionFailed: If the transaction is rejected or reverts.
        """
        contract = self._contract(connection)
        signer = await asyncio.to_thread(connection.get_signer)

        payload = await self.price_client.fetch_update_payload(feed_id)
        fee = await self.get_update_fee(payload, connection)
        logger.info(f"Submitting price update for {feed_id[:8]} (fee={fee} wei)")

        try:
            tx_params = await asyncio.to_thread(
                contract.functions.updatePriceFeeds(payload).build_transaction,
                {"from": signer, "value": fee},
            )
        except Exception as e:
            raise ChainSubmissionFailed("Price update", e) from e

        tx_receipt = await asyncio.to_thread(connection.submit_tx, tx_params, "Price update")
        tx_hash = HexBytes(tx_receipt["transactionHash"]).to_0x_hex()
        logger.info(f"Price updated on-chain for {feed_id[:8]}: {tx_hash}")
        return tx_hash

    async def read_settled_quote(
        self,
        feed_id: str,
        connection: SigningConnection | None,
        max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
    ) -> PriceQuote:
        """Read the quote stored on-chain for a feed.

        :param feed_id: Feed id with or without ``0x`` prefix.
        :param connection: Signing connection.
        :param max_age_seconds: Reject quotes older than this (default: 60).
        :returns: Settled quote.
        :raises WalletNotConnected: If there is no connection.
        :raises StaleOrMissingQuote: If no quote within the age bound exists.
        :raises UpstreamUnavailable: If the RPC endpoint cannot be reached.
        """
        contract = self._contract(connection)
        price_id = "0x" + normalize_feed_id(feed_id)

        try:
            result = await asyncio.to_thread(
                contract.functions.getPriceNoOlderThan(price_id, max_age_seconds).call
            )
        except ContractLogicError as e:
            raise StaleOrMissingQuote(
                f"No on-chain price for {feed_id} newer than {max_age_seconds}s: {e}"
            ) from e
        except Exception as e:
            raise UpstreamUnavailable(f"Failed to read on-chain price: {e}") from e

        quote = PriceQuote.from_contract(result)
        if quote.publish_time == 0:
            raise StaleOrMissingQuote(f"No on-chain price for {feed_id}")

        logger.info(f"On-chain price for {feed_id[:8]}: {quote.display_value}")
        return quote
