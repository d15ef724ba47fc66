"""RandomnessClient: Pyth Entropy request, polling and reveal.

Steps:
    1. Request: commit to keccak256(user random) and pay the provider fee
    2. Poll: read getRequest until the contract records fulfilment, within a
       fixed attempt budget
    3. Reveal: combine the provider revelation (from the Fortuna service) with
       the user random value through the contract's reveal entry point

Without a configured Fortuna service the reveal step is replaced by a locally
generated placeholder value. That value is NOT verifiable randomness and is
flagged with ``revealed=False``.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections import OrderedDict
from collections.abc import Mapping
from typing import TYPE_CHECKING

from hexbytes import HexBytes
from web3 import Web3
from web3.logs import DISCARD

from .ContractUtility import DEFAULT_ENTROPY_PROVIDER, ContractUtility
from .errors import ChainSubmissionFailed, DashboardError, UpstreamUnavailable, WalletNotConnected
from .HttpClient import BaseHttpClient
from .RandomnessRequest import RandomnessRequest, RandomnessResult

if TYPE_CHECKING:
    from web3.contract import Contract
    from web3.types import TxReceipt

    from .SigningConnection import SigningConnection

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_POLL_INTERVAL = 5.0

# Fulfilled sequence numbers remembered per client
FULFILLED_CACHE_SIZE = 128


def generate_user_random() -> str:
    """Generate a random 32-byte user value.

    :returns: ``0x``-prefixed hex string.
    """
    return "0x" + secrets.token_hex(32)


def scale_to_range(random_hex: str, max_value: int) -> int:
    """Map a random value to an integer in ``[1, max_value]``.

    :param random_hex: Random value as hex (with or without ``0x``).
    :param max_value: Upper bound, inclusive.
    :returns: ``(value mod max_value) + 1``.
    :raises ValueError: If max_value < 1 or random_hex is not hex.
    """
    if max_value < 1:
        raise ValueError("max_value must be at least 1")
    return int(random_hex, 16) % max_value + 1


class FortunaClient(BaseHttpClient):
    """Client for the Fortuna provider revelation service.

    Endpoint: GET {base}/v1/chains/{chain}/revelations/{sequence}

    :ivar base_url: Fortuna base URL.
    :ivar chain: Fortuna chain identifier (e.g., "blast-sepolia").
    """

    def __init__(self, base_url: str, chain: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")
        self.chain = chain

    async def fetch_revelation(self, sequence_number: int) -> bytes:
        """Fetch the provider revelation for a sequence number.

        :param sequence_number: Entropy sequence number.
        :returns: 32-byte provider revelation.
        :raises UpstreamUnavailable: On network failure or malformed response.
        """
        url = f"{self.base_url}/v1/chains/{self.chain}/revelations/{sequence_number}"
        data = self._json(await self._get(url))
        try:
            return bytes(HexBytes(data["value"]["data"]))
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamUnavailable(f"Invalid revelation response: {e}") from e


class RandomnessClient:
    """Client for the Pyth Entropy contract.

    :ivar contract_address: Entropy contract address.
    :ivar provider: Randomness provider address.
    :ivar fortuna: Optional revelation client enabling the real reveal.
    """

    def __init__(
        self,
        contract_address: str | None,
        provider: str = DEFAULT_ENTROPY_PROVIDER,
        fortuna: FortunaClient | None = None,
        abi: list | None = None,
    ) -> None:
        """Initialize the randomness client.

        :param contract_address: Entropy contract address on the target chain.
        :param provider: Randomness provider address.
        :param fortuna: Revelation client; without it results are placeholders.
        :param abi: Contract ABI (default: bundled IEntropy ABI).
        :raises ValueError: If no contract address is given.
        """
        if not contract_address:
            raise ValueError("No Entropy contract address configured")
        self.contract_address = contract_address
        self.provider = provider
        self.fortuna = fortuna
        self.abi = abi if abi is not None else ContractUtility.get_contract("IEntropy")
        # Offline contract used only to decode receipt logs
        self._events = Web3().eth.contract(abi=self.abi).events
        # Most recent sequence numbers observed as fulfilled, oldest first
        self._fulfilled: OrderedDict[str, None] = OrderedDict()

    def _contract(self, connection: SigningConnection | None) -> Contract:
        if connection is None:
            raise WalletNotConnected()
        try:
            return connection.contract(self.contract_address, self.abi)
        except Exception as e:
            raise DashboardError(f"Cannot load contract at {self.contract_address}: {e}") from e

    async def get_fee(self, connection: SigningConnection | None) -> int:
        """Query the provider fee for one request.

        :param connection: Signing connection.
        :returns: Fee in wei.
        :raises ChainSubmissionFailed: If the fee query fails.
        """
        contract = self._contract(connection)
        try:
            fee = await asyncio.to_thread(contract.functions.getFee(self.provider).call)
        except Exception as e:
            raise ChainSubmissionFailed("Entropy fee query", e) from e
        return int(fee)

    def _sequence_number(self, tx_receipt: TxReceipt) -> int:
        """Extract the sequence number from the Requested event.

        The event carries the whole request struct as unindexed data, so the
        sequence number is decoded from the log data with the contract ABI.

        :raises ChainSubmissionFailed: If the receipt holds no Requested event.
        """
        logs = [
            log
            for log in tx_receipt.get("logs", [])
            if str(log["address"]).lower() == self.contract_address.lower()
        ]
        events = self._events.Requested().process_receipt({"logs": logs}, errors=DISCARD)
        for event in events:
            request = event["args"]["request"]
            if isinstance(request, Mapping):
                return int(request["sequenceNumber"])
            return int(request[1])
        raise ChainSubmissionFailed(
            "Randomness request", "no sequence number in transaction logs"
        )

    async def submit_request(
        self,
        connection: SigningConnection | None,
        user_random: str | None = None,
    ) -> RandomnessRequest:
        """Submit a randomness request.

        :param connection: Signing connection.
        :param user_random: 32-byte user value (hex); generated if omitted.
        :returns: Pending request.
        :raises WalletNotConnected: If there is no usable signing connection.
        :raises ChainSubmissionFailed: If the transaction is rejected or reverts.
        """
        contract = self._contract(connection)
        signer = await asyncio.to_thread(connection.get_signer)

        user_random = user_random or generate_user_random()
        commitment = Web3.keccak(HexBytes(user_random))
        fee = await self.get_fee(connection)
        logger.info(f"Requesting random number from {self.provider} (fee={fee} wei)")

        try:
            tx_params = await asyncio.to_thread(
                contract.functions.request(self.provider, commitment, True).build_transaction,
                {"from": signer, "value": fee},
            )
        except Exception as e:
            raise ChainSubmissionFailed("Randomness request", e) from e

        tx_receipt = await asyncio.to_thread(
            connection.submit_tx, tx_params, "Randomness request"
        )
        sequence_number = self._sequence_number(tx_receipt)

        request = RandomnessRequest(
            request_id=str(sequence_number),
            user_commitment=commitment.to_0x_hex(),
            submission_block=int(tx_receipt["blockNumber"]),
            user_random=user_random,
        )
        logger.info(
            f"Random number requested: sequence={request.request_id}, "
            f"block={request.submission_block}"
        )
        return request

    async def poll_once(self, request_id: str, connection: SigningConnection | None) -> bool:
        """Check whether the contract records the request as fulfilled.

        Once a request id has been seen fulfilled, later polls report it
        fulfilled without reading the contract again.

        :param request_id: Sequence number.
        :param connection: Signing connection.
        :returns: True if fulfilled.
        :raises WalletNotConnected: If there is no connection.
        :raises UpstreamUnavailable: If the contract read fails.
        """
        if request_id in self._fulfilled:
            self._fulfilled.move_to_end(request_id)
            return True

        contract = self._contract(connection)
        try:
            _, _, fulfilled = await asyncio.to_thread(
                contract.functions.getRequest(self.provider, int(request_id)).call
            )
        except Exception as e:
            raise UpstreamUnavailable(f"Failed to read request {request_id}: {e}") from e

        if fulfilled:
            self._fulfilled[request_id] = None
            if len(self._fulfilled) > FULFILLED_CACHE_SIZE:
                self._fulfilled.popitem(last=False)
        return bool(fulfilled)

    async def _wait(self, interval: float, cancel_event: asyncio.Event | None) -> bool:
        """Sleep between polls; return True if cancelled meanwhile."""
        if cancel_event is None:
            await asyncio.sleep(interval)
            return False
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            return False
        return True

    async def await_fulfillment(
        self,
        request_id: str,
        connection: SigningConnection | None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        interval_seconds: float = DEFAULT_POLL_INTERVAL,
        user_random: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RandomnessResult | None:
        """Poll until the request is fulfilled or the attempt budget is spent.

        Polls run one at a time with ``interval_seconds`` between them. A
        failed poll counts as an unfulfilled attempt.

        :param request_id: Sequence number.
        :param connection: Signing connection.
        :param max_attempts: Maximum number of polls (default: 10).
        :param interval_seconds: Delay between polls (default: 5.0).
        :param user_random: User random value, required for the real reveal.
        :param cancel_event: Optional event that stops polling when set.
        :returns: Result, or None if abandoned or cancelled.
        """
        for attempt in range(1, max_attempts + 1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Polling for request {request_id} cancelled")
                return None

            try:
                fulfilled = await self.poll_once(request_id, connection)
            except Exception as e:
                logger.warning(
                    f"Poll {attempt}/{max_attempts} for request {request_id} failed: {e}"
                )
                fulfilled = False

            if fulfilled:
                logger.info(f"Request {request_id} fulfilled after {attempt} poll(s)")
                return await self._resolve(request_id, connection, user_random)

            logger.debug(f"Request {request_id} pending ({attempt}/{max_attempts})")
            if attempt < max_attempts and await self._wait(interval_seconds, cancel_event):
                logger.info(f"Polling for request {request_id} cancelled")
                return None

        logger.info(f"Stopped polling for request {request_id} after {max_attempts} attempts")
        return None

    async def _resolve(
        self,
        request_id: str,
        connection: SigningConnection | None,
        user_random: str | None,
    ) -> RandomnessResult:
        if self.fortuna is None or user_random is None:
            logger.warning(
                f"No revelation available for request {request_id}; "
                "returning a non-cryptographic placeholder value"
            )
            return RandomnessResult(value=generate_user_random(), request_id=request_id)
        return await self.reveal(request_id, connection, user_random)

    async def reveal(
        self,
        request_id: str,
        connection: SigningConnection | None,
        user_random: str,
    ) -> RandomnessResult:
        """Run the reveal exchange and return the authoritative random value.

        :param request_id: Sequence number.
        :param connection: Signing connection.
        :param user_random: User random value whose hash was committed.
        :returns: Revealed result.
        :raises UpstreamUnavailable: If the revelation cannot be fetched.
        :raises ChainSubmissionFailed: If the reveal call or transaction fails.
        """
        if self.fortuna is None:
            raise UpstreamUnavailable("No revelation service configured")
        contract = self._contract(connection)
        signer = await asyncio.to_thread(connection.get_signer)

        sequence_number = int(request_id)
        revelation = await self.fortuna.fetch_revelation(sequence_number)
        try:
            reveal_fn = contract.functions.reveal(
                self.provider, sequence_number, bytes(HexBytes(user_random)), revelation
            )
            # The call returns the value the transaction will produce
            random_number = await asyncio.to_thread(reveal_fn.call, {"from": signer})
            tx_params = await asyncio.to_thread(reveal_fn.build_transaction, {"from": signer})
        except Exception as e:
            raise ChainSubmissionFailed("Randomness reveal", e) from e

        await asyncio.to_thread(connection.submit_tx, tx_params, "Randomness reveal")
        value = HexBytes(random_number).to_0x_hex()
        logger.info(f"Random number revealed for request {request_id}")
        return RandomnessResult(value=value, request_id=request_id, revealed=True)
