"""Unit tests for RandomnessClient."""

import asyncio
from unittest.mock import MagicMock

import httpx
import pytest
from conftest import (
    ENTROPY_ADDRESS,
    REQUESTED_TOPIC,
    SIGNER,
    FakeConnection,
    mock_http,
    request_receipt,
    requested_log,
)
from hexbytes import HexBytes
from web3 import Web3

from pythdash.src.ContractUtility import DEFAULT_ENTROPY_PROVIDER
from pythdash.src.errors import (
    ChainSubmissionFailed,
    DashboardError,
    UpstreamUnavailable,
    WalletNotConnected,
)
from pythdash.src.RandomnessClient import (
    FULFILLED_CACHE_SIZE,
    FortunaClient,
    RandomnessClient,
    generate_user_random,
    scale_to_range,
)
from pythdash.src.RandomnessRequest import RequestStatus

USER_RANDOM = "0x" + "ab" * 32
PENDING = (b"\x00" * 32, 0, False)
FULFILLED = (b"\x00" * 32, 0, True)


@pytest.fixture
def client() -> RandomnessClient:
    return RandomnessClient(ENTROPY_ADDRESS)


class TestScaleToRange:
    """Test mapping random values to [1, max]."""

    @pytest.mark.parametrize("max_value", [6, 100, 1000])
    def test_bounds(self, max_value: int) -> None:
        """Scaled values always fall inside [1, max_value]."""
        for _ in range(200):
            value = scale_to_range(generate_user_random(), max_value)
            assert 1 <= value <= max_value

    def test_deterministic(self) -> None:
        """The same input always maps to the same output."""
        assert scale_to_range("0x0b", 6) == 6
        assert scale_to_range("0x0c", 6) == 1
        assert scale_to_range(USER_RANDOM, 100) == scale_to_range(USER_RANDOM, 100)

    def test_max_of_one(self) -> None:
        assert scale_to_range(USER_RANDOM, 1) == 1

    def test_invalid_max(self) -> None:
        with pytest.raises(ValueError, match="at least 1"):
            scale_to_range(USER_RANDOM, 0)


class TestSubmitRequest:
    """Test randomness request submission."""

    def test_requires_address(self) -> None:
        with pytest.raises(ValueError, match="No Entropy contract address"):
            RandomnessClient(None)

    @pytest.mark.asyncio
    async def test_submits_commitment(self, client: RandomnessClient, contract: MagicMock) -> None:
        """The request commits to keccak256 of the user value and pays the fee."""
        contract.functions.getFee.return_value.call.return_value = 15
        contract.functions.request.return_value.build_transaction.side_effect = lambda p: dict(p)
        connection = FakeConnection(contract, receipt=request_receipt(requested_log(42)))

        request = await client.submit_request(connection, user_random=USER_RANDOM)

        commitment = Web3.keccak(HexBytes(USER_RANDOM))
        contract.functions.getFee.assert_called_once_with(DEFAULT_ENTROPY_PROVIDER)
        contract.functions.request.assert_called_once_with(
            DEFAULT_ENTROPY_PROVIDER, commitment, True
        )
        assert connection.sent == [{"from": SIGNER, "value": 15}]

        assert request.request_id == "42"
        assert request.user_commitment == commitment.to_0x_hex()
        assert request.submission_block == 456
        assert request.status is RequestStatus.PENDING
        assert request.user_random == USER_RANDOM

    @pytest.mark.asyncio
    async def test_generates_user_random(self, client: RandomnessClient, contract: MagicMock) -> None:
        contract.functions.getFee.return_value.call.return_value = 0
        contract.functions.request.return_value.build_transaction.return_value = {}
        connection = FakeConnection(contract, receipt=request_receipt(requested_log(1)))

        request = await client.submit_request(connection)

        assert len(HexBytes(request.user_random)) == 32
        assert request.user_commitment == Web3.keccak(HexBytes(request.user_random)).to_0x_hex()

    @pytest.mark.asyncio
    async def test_missing_log(self, client: RandomnessClient, contract: MagicMock) -> None:
        """A receipt without an Entropy log is a failed submission."""
        contract.functions.getFee.return_value.call.return_value = 0
        contract.functions.request.return_value.build_transaction.return_value = {}
        receipt = request_receipt(
            requested_log(7, address="0x0000000000000000000000000000000000000001")
        )
        connection = FakeConnection(contract, receipt=receipt)

        with pytest.raises(ChainSubmissionFailed, match="no sequence number"):
            await client.submit_request(connection, user_random=USER_RANDOM)

    @pytest.mark.asyncio
    async def test_sequence_number_from_log_data(
        self, client: RandomnessClient, contract: MagicMock
    ) -> None:
        """The Requested event has no indexed fields; the id comes from its data."""
        contract.functions.getFee.return_value.call.return_value = 0
        contract.functions.request.return_value.build_transaction.return_value = {}
        log = requested_log(42)
        assert log["topics"] == [REQUESTED_TOPIC]
        other = {**requested_log(99), "address": "0x0000000000000000000000000000000000000002"}
        connection = FakeConnection(contract, receipt=request_receipt(other, log))

        request = await client.submit_request(connection, user_random=USER_RANDOM)

        assert request.request_id == "42"

    @pytest.mark.asyncio
    async def test_indexed_topic_is_not_a_sequence_number(
        self, client: RandomnessClient, contract: MagicMock
    ) -> None:
        """Logs that are not Requested events are not read for an id."""
        contract.functions.getFee.return_value.call.return_value = 0
        contract.functions.request.return_value.build_transaction.return_value = {}
        log = {
            **requested_log(1),
            "topics": [HexBytes(b"\x01" * 32), HexBytes((42).to_bytes(32, "big"))],
            "data": HexBytes(b""),
        }
        connection = FakeConnection(contract, receipt=request_receipt(log))

        with pytest.raises(ChainSubmissionFailed, match="no sequence number"):
            await client.submit_request(connection, user_random=USER_RANDOM)

    @pytest.mark.asyncio
    async def test_no_connection(self, client: RandomnessClient) -> None:
        with pytest.raises(WalletNotConnected):
            await client.submit_request(None)

    @pytest.mark.asyncio
    async def test_signer_lookup_fails(self, client: RandomnessClient, contract: MagicMock) -> None:
        """Node failures while looking up the signer become UpstreamUnavailable."""
        connection = FakeConnection(contract)
        connection.accounts_error = ConnectionError("rpc unreachable")

        with pytest.raises(UpstreamUnavailable, match="rpc unreachable"):
            await client.submit_request(connection, user_random=USER_RANDOM)
        assert connection.sent == []

    @pytest.mark.asyncio
    async def test_contract_load_fails(self, client: RandomnessClient) -> None:
        connection = FakeConnection(contract_error=ValueError("bad address"))
        with pytest.raises(DashboardError, match="Cannot load contract"):
            await client.submit_request(connection, user_random=USER_RANDOM)


class TestPolling:
    """Test fulfilment polling."""

    @pytest.mark.asyncio
    async def test_poll_once_is_monotonic(
        self, client: RandomnessClient, contract: MagicMock, connection: FakeConnection
    ) -> None:
        """Once fulfilled, a request stays fulfilled without further reads."""
        call = contract.functions.getRequest.return_value.call
        call.side_effect = [FULFILLED, PENDING]

        assert await client.poll_once("5", connection) is True
        assert await client.poll_once("5", connection) is True
        assert call.call_count == 1
        contract.functions.getRequest.assert_called_once_with(DEFAULT_ENTROPY_PROVIDER, 5)

    @pytest.mark.asyncio
    async def test_fulfilled_cache_is_bounded(
        self, client: RandomnessClient, contract: MagicMock, connection: FakeConnection
    ) -> None:
        """Only the most recent fulfilled ids are remembered."""
        contract.functions.getRequest.return_value.call.return_value = FULFILLED

        for request_id in range(FULFILLED_CACHE_SIZE + 10):
            assert await client.poll_once(str(request_id), connection) is True

        assert len(client._fulfilled) == FULFILLED_CACHE_SIZE
        assert "0" not in client._fulfilled
        assert str(FULFILLED_CACHE_SIZE + 9) in client._fulfilled

    @pytest.mark.asyncio
    async def test_poll_once_read_error(
        self, client: RandomnessClient, contract: MagicMock, connection: FakeConnection
    ) -> None:
        contract.functions.getRequest.return_value.call.side_effect = ConnectionError("refused")
        with pytest.raises(UpstreamUnavailable):
            await client.poll_once("5", connection)

    @pytest.mark.asyncio
    async def test_abandons_after_budget(
        self, client: RandomnessClient, contract: MagicMock, connection: FakeConnection
    ) -> None:
        """Exactly max_attempts polls are made before giving up."""
        call = contract.functions.getRequest.return_value.call
        call.return_value = PENDING

        result = await client.await_fulfillment(
            "9", connection, max_attempts=4, interval_seconds=0.01
        )

        assert result is None
        assert call.call_count == 4

    @pytest.mark.asyncio
    async def test_fulfilled_on_third_poll(
        self, client: RandomnessClient, contract: MagicMock, connection: FakeConnection
    ) -> None:
        """Polling stops as soon as fulfilment is observed."""
        call = contract.functions.getRequest.return_value.call
        call.side_effect = [PENDING, PENDING, FULFILLED]

        result = await client.await_fulfillment(
            "9", connection, max_attempts=10, interval_seconds=0.01
        )

        assert result is not None
        assert result.request_id == "9"
        assert result.revealed is False
        assert len(HexBytes(result.value)) == 32
        assert call.call_count == 3

    @pytest.mark.asyncio
    async def test_failed_poll_counts_as_miss(
        self, client: RandomnessClient, contract: MagicMock, connection: FakeConnection
    ) -> None:
        call = contract.functions.getRequest.return_value.call
        call.side_effect = [ConnectionError("refused"), FULFILLED]

        result = await client.await_fulfillment(
            "9", connection, max_attempts=3, interval_seconds=0.01
        )

        assert result is not None
        assert call.call_count == 2

    @pytest.mark.asyncio
    async def test_cancel_stops_polling(
        self, client: RandomnessClient, contract: MagicMock, connection: FakeConnection
    ) -> None:
        """Setting the cancel event ends polling early."""
        call = contract.functions.getRequest.return_value.call
        call.return_value = PENDING
        cancel = asyncio.Event()

        task = asyncio.create_task(
            client.await_fulfillment(
                "9", connection, max_attempts=100, interval_seconds=5.0, cancel_event=cancel
            )
        )
        await asyncio.sleep(0.05)
        cancel.set()

        assert await asyncio.wait_for(task, timeout=1.0) is None
        assert call.call_count == 1


class TestReveal:
    """Test the reveal exchange."""

    @pytest.mark.asyncio
    async def test_reveal_with_fortuna(self, contract: MagicMock, connection: FakeConnection) -> None:
        """The provider revelation and user value are passed to reveal."""
        revelation = b"\x22" * 32
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"value": {"data": "0x" + revelation.hex()}})

        fortuna = FortunaClient("https://fortuna.test", "blast-sepolia", client=mock_http(handler))
        client = RandomnessClient(ENTROPY_ADDRESS, fortuna=fortuna)

        contract.functions.getRequest.return_value.call.return_value = FULFILLED
        reveal_fn = contract.functions.reveal.return_value
        reveal_fn.call.return_value = b"\x33" * 32
        reveal_fn.build_transaction.return_value = {"from": SIGNER, "data": "0x"}

        result = await client.await_fulfillment(
            "12", connection, interval_seconds=0.01, user_random=USER_RANDOM
        )

        assert seen[0].url.path == "/v1/chains/blast-sepolia/revelations/12"
        contract.functions.reveal.assert_called_once_with(
            DEFAULT_ENTROPY_PROVIDER, 12, bytes(HexBytes(USER_RANDOM)), revelation
        )
        assert result.value == "0x" + "33" * 32
        assert result.revealed is True
        assert connection.sent == [{"from": SIGNER, "data": "0x"}]

    @pytest.mark.asyncio
    async def test_revelation_unavailable(self, connection: FakeConnection) -> None:
        fortuna = FortunaClient(
            "https://fortuna.test",
            "blast-sepolia",
            client=mock_http(lambda r: httpx.Response(404, text="not found")),
        )
        client = RandomnessClient(ENTROPY_ADDRESS, fortuna=fortuna)

        with pytest.raises(UpstreamUnavailable) as exc_info:
            await client.reveal("12", connection, USER_RANDOM)
        assert exc_info.value.status_code == 404
        assert connection.sent == []
