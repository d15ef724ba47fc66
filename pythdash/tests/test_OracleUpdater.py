"""Unit tests for OracleUpdater."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import BTC_FEED, PYTH_ADDRESS, SIGNER, TX_HASH, FakeConnection
from web3.exceptions import ContractLogicError

from pythdash.src.errors import (
    ChainSubmissionFailed,
    DashboardError,
    StaleOrMissingQuote,
    UpstreamUnavailable,
    WalletNotConnected,
)
from pythdash.src.OracleUpdater import OracleUpdater

PAYLOAD = [b"\x50\x4e\x41\x55"]


@pytest.fixture
def price_client() -> MagicMock:
    client = MagicMock()
    client.fetch_update_payload = AsyncMock(return_value=PAYLOAD)
    return client


@pytest.fixture
def updater(price_client: MagicMock) -> OracleUpdater:
    return OracleUpdater(price_client, PYTH_ADDRESS)


class TestOracleUpdaterInit:
    """Test OracleUpdater construction."""

    def test_requires_address(self, price_client: MagicMock) -> None:
        """A missing contract address is a configuration error."""
        with pytest.raises(ValueError, match="No Pyth contract address"):
            OracleUpdater(price_client, None)

    def test_loads_bundled_abi(self, updater: OracleUpdater) -> None:
        names = {entry.get("name") for entry in updater.abi}
        assert {"updatePriceFeeds", "getUpdateFee", "getPriceNoOlderThan"} <= names


class TestPushUpdate:
    """Test pushing an update on-chain."""

    @pytest.mark.asyncio
    async def test_pays_exact_fee(
        self, updater: OracleUpdater, contract: MagicMock, connection: FakeConnection
    ) -> None:
        """The fee returned for the payload is sent as the transaction value."""
        contract.functions.getUpdateFee.return_value.call.return_value = 7
        contract.functions.updatePriceFeeds.return_value.build_transaction.side_effect = (
            lambda params: {**params, "data": "0x"}
        )

        tx_hash = await updater.push_update(BTC_FEED, connection)

        assert tx_hash == TX_HASH.to_0x_hex()
        contract.functions.getUpdateFee.assert_called_once_with(PAYLOAD)
        contract.functions.updatePriceFeeds.assert_called_once_with(PAYLOAD)
        assert connection.sent == [{"from": SIGNER, "value": 7, "data": "0x"}]

    @pytest.mark.asyncio
    async def test_no_connection(self, updater: OracleUpdater, price_client: MagicMock) -> None:
        """Without a connection nothing is fetched or sent."""
        with pytest.raises(WalletNotConnected):
            await updater.push_update(BTC_FEED, None)
        price_client.fetch_update_payload.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_accounts(self, updater: OracleUpdater, contract: MagicMock) -> None:
        connection = FakeConnection(contract, accounts=())
        with pytest.raises(WalletNotConnected):
            await updater.push_update(BTC_FEED, connection)
        assert connection.sent == []

    @pytest.mark.asyncio
    async def test_signer_lookup_fails(
        self, updater: OracleUpdater, price_client: MagicMock, connection: FakeConnection
    ) -> None:
        """An unreachable node while looking up the signer is an upstream failure."""
        connection.accounts_error = ConnectionError("rpc unreachable")
        with pytest.raises(UpstreamUnavailable, match="rpc unreachable"):
            await updater.push_update(BTC_FEED, connection)
        price_client.fetch_update_payload.assert_not_called()
        assert connection.sent == []

    @pytest.mark.asyncio
    async def test_contract_load_fails(self, updater: OracleUpdater) -> None:
        connection = FakeConnection(contract_error=ValueError("bad address"))
        with pytest.raises(DashboardError, match="Cannot load contract"):
            await updater.push_update(BTC_FEED, connection)
        assert connection.sent == []

    @pytest.mark.asyncio
    async def test_rejected_transaction(self, updater: OracleUpdater, contract: MagicMock) -> None:
        """A rejected signature surfaces as ChainSubmissionFailed."""
        contract.functions.getUpdateFee.return_value.call.return_value = 1
        contract.functions.updatePriceFeeds.return_value.build_transaction.return_value = {}
        connection = FakeConnection(contract, send_error=RuntimeError("user rejected"))

        with pytest.raises(ChainSubmissionFailed) as exc_info:
            await updater.push_update(BTC_FEED, connection)
        assert "user rejected" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_reverted_transaction(self, updater: OracleUpdater, contract: MagicMock) -> None:
        """A receipt with status 0 is a failure."""
        contract.functions.getUpdateFee.return_value.call.return_value = 1
        contract.functions.updatePriceFeeds.return_value.build_transaction.return_value = {}
        connection = FakeConnection(
            contract, receipt={"status": 0, "transactionHash": TX_HASH, "logs": []}
        )

        with pytest.raises(ChainSubmissionFailed, match="reverted"):
            await updater.push_update(BTC_FEED, connection)

    @pytest.mark.asyncio
    async def test_fee_query_fails(
        self, updater: OracleUpdater, contract: MagicMock, connection: FakeConnection
    ) -> None:
        contract.functions.getUpdateFee.return_value.call.side_effect = RuntimeError("rpc down")
        with pytest.raises(ChainSubmissionFailed, match="Update fee query failed"):
            await updater.push_update(BTC_FEED, connection)
        assert connection.sent == []

    @pytest.mark.asyncio
    async def test_upstream_failure_sends_nothing(
        self,
        updater: OracleUpdater,
        price_client: MagicMock,
        connection: FakeConnection,
    ) -> None:
        """Hermes failures propagate before any transaction is built."""
        price_client.fetch_update_payload.side_effect = UpstreamUnavailable("down", 503)
        with pytest.raises(UpstreamUnavailable):
            await updater.push_update(BTC_FEED, connection)
        assert connection.sent == []


class TestReadSettledQuote:
    """Test reading the stored price."""

    @pytest.mark.asyncio
    async def test_reads_quote(
        self, updater: OracleUpdater, contract: MagicMock, connection: FakeConnection
    ) -> None:
        contract.functions.getPriceNoOlderThan.return_value.call.return_value = (
            6000012345678, 1500000, -8, 1700000042,
        )

        quote = await updater.read_settled_quote(BTC_FEED, connection, max_age_seconds=30)

        contract.functions.getPriceNoOlderThan.assert_called_once_with("0x" + BTC_FEED, 30)
        assert quote.price == "6000012345678"
        assert quote.expo == -8
        assert quote.publish_time == 1700000042

    @pytest.mark.asyncio
    async def test_stale_price(
        self, updater: OracleUpdater, contract: MagicMock, connection: FakeConnection
    ) -> None:
        """A contract revert means no fresh enough price is stored."""
        contract.functions.getPriceNoOlderThan.return_value.call.side_effect = (
            ContractLogicError("StalePrice")
        )
        with pytest.raises(StaleOrMissingQuote):
            await updater.read_settled_quote(BTC_FEED, connection)

    @pytest.mark.asyncio
    async def test_never_published(
        self, updater: OracleUpdater, contract: MagicMock, connection: FakeConnection
    ) -> None:
        contract.functions.getPriceNoOlderThan.return_value.call.return_value = (0, 0, 0, 0)
        with pytest.raises(StaleOrMissingQuote):
            await updater.read_settled_quote(BTC_FEED, connection)

    @pytest.mark.asyncio
    async def test_rpc_failure(
        self, updater: OracleUpdater, contract: MagicMock, connection: FakeConnection
    ) -> None:
        contract.functions.getPriceNoOlderThan.return_value.call.side_effect = (
            ConnectionError("refused")
        )
        with pytest.raises(UpstreamUnavailable):
            await updater.read_settled_quote(BTC_FEED, connection)

    @pytest.mark.asyncio
    async def test_no_connection(self, updater: OracleUpdater) -> None:
        with pytest.raises(WalletNotConnected):
            await updater.read_settled_quote(BTC_FEED, None)
