"""Shared test fixtures: fake signing connection and mocked HTTP services."""

from typing import Callable
from unittest.mock import MagicMock

import httpx
import pytest
from hexbytes import HexBytes
from web3 import Web3

from pythdash.src.SigningConnection import SigningConnection

SIGNER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
PYTH_ADDRESS = "0xDd24F84d36BF92C65F92307595335bdFab5Bbd21"
ENTROPY_ADDRESS = "0x549Ebba8036Ab746611B4fFA1423eb0A4Df61440"
BTC_FEED = "e62df6c8b4a85fe1a67db44dc12de5db330f7ac66b72dc658afedf0f4a415b43"
TX_HASH = HexBytes("0x" + "11" * 32)
BLOCK_HASH = HexBytes("0x" + "22" * 32)
REQUESTED_TOPIC = Web3.keccak(
    text="Requested((address,uint64,uint32,bytes32,uint64,address,bool,bool))"
)


class FakeConnection(SigningConnection):
    """In-memory signing connection recording submitted transactions."""

    def __init__(
        self,
        contract: MagicMock | None = None,
        accounts: tuple[str, ...] = (SIGNER,),
        send_error: Exception | None = None,
        receipt: dict | None = None,
        contract_error: Exception | None = None,
    ) -> None:
        self.mock_contract = contract or MagicMock()
        self.accounts = accounts
        self.accounts_error: Exception | None = None
        self.contract_error = contract_error
        self.send_error = send_error
        self.receipt = receipt
        self.sent: list = []

    def request_accounts(self) -> list[str]:
        if self.accounts_error is not None:
            raise self.accounts_error
        return list(self.accounts)

    def contract(self, address: str, abi: list) -> MagicMock:
        if self.contract_error is not None:
            raise self.contract_error
        return self.mock_contract

    def send_transaction(self, tx):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(tx)
        return TX_HASH

    def wait_for_receipt(self, tx_hash):
        if self.receipt is not None:
            return self.receipt
        return {"status": 1, "transactionHash": tx_hash, "blockNumber": 123, "logs": []}


def _word(value: int | bytes) -> bytes:
    if isinstance(value, bytes):
        return value.rjust(32, b"\x00")
    return value.to_bytes(32, "big")


def requested_log(sequence_number: int, address: str = ENTROPY_ADDRESS) -> dict:
    """Build a Requested event log; the request struct is unindexed log data."""
    data = b"".join(
        [
            _word(bytes(HexBytes(SIGNER))),  # provider
            _word(sequence_number),
            _word(1),  # numHashes
            _word(b"\xaa" * 32),  # commitment
            _word(456),  # blockNumber
            _word(bytes(HexBytes(SIGNER))),  # requester
            _word(1),  # useBlockhash
            _word(0),  # isRequestWithCallback
        ]
    )
    return {
        "address": address,
        "topics": [REQUESTED_TOPIC],
        "data": HexBytes(data),
        "logIndex": 0,
        "transactionIndex": 0,
        "transactionHash": TX_HASH,
        "blockHash": BLOCK_HASH,
        "blockNumber": 456,
    }


def request_receipt(*logs: dict) -> dict:
    """Build a successful receipt for a randomness request."""
    return {
        "status": 1,
        "transactionHash": TX_HASH,
        "blockNumber": 456,
        "logs": list(logs),
    }


def mock_http(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """Create an AsyncClient whose requests are answered by handler."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def hermes_parsed(price: str, expo: int, conf: str = "10", publish_time: int = 1700000000) -> dict:
    """Build a Hermes response body in display form."""
    return {
        "parsed": [
            {
                "id": BTC_FEED,
                "price": {
                    "price": price,
                    "conf": conf,
                    "expo": expo,
                    "publish_time": publish_time,
                },
            }
        ]
    }


@pytest.fixture
def contract() -> MagicMock:
    """Mock contract; configure functions.<name>.return_value.call per test."""
    return MagicMock()


@pytest.fixture
def connection(contract: MagicMock) -> FakeConnection:
    return FakeConnection(contract)
