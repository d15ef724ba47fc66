"""SigningConnection: Narrow wallet capability used by the on-chain clients.

The core never sees the full provider surface. It asks a connection for
accounts, the signer address, read-only contract handles, and transaction
submission/confirmation.
"""

import logging
from abc import ABC, abstractmethod

from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract
from web3.types import TxParams, TxReceipt

from .ContractUtility import ContractUtility
from .errors import ChainSubmissionFailed, UpstreamUnavailable, WalletNotConnected

logger = logging.getLogger(__name__)


class SigningConnection(ABC):
    """Abstract base class for signing connections."""

    @abstractmethod
    def request_accounts(self) -> list[str]:
        """Return the accounts the connection can sign for.

        :returns: List of checksum addresses, possibly empty.
        """
        pass

    def get_signer(self) -> str:
        """Return the address used to sign transactions.

        :returns: Checksum address.
        :raises WalletNotConnected: If no account is available.
        :raises UpstreamUnavailable: If the accounts cannot be requested.
        """
        try:
            accounts = self.request_accounts()
        except Exception as e:
            raise UpstreamUnavailable(f"Failed to request accounts: {e}") from e
        if not accounts:
            raise WalletNotConnected("Signing connection has no accounts")
        return accounts[0]

    @abstractmethod
    def contract(self, address: str, abi: list) -> Contract:
        """Return a contract handle for calls and transaction building.

        :param address: Contract address.
        :param abi: Contract ABI.
        """
        pass

    @abstractmethod
    def send_transaction(self, tx: TxParams) -> HexBytes:
        """Sign and submit a transaction.

        :param tx: Transaction parameters.
        :returns: Transaction hash.
        """
        pass

    @abstractmethod
    def wait_for_receipt(self, tx_hash: HexBytes) -> TxReceipt:
        """Wait until a transaction is mined.

        :param tx_hash: Transaction hash.
        :returns: Transaction receipt.
        """
        pass

    def submit_tx(self, tx: TxParams, action: str = "Transaction") -> TxReceipt:
        """Submit a transaction and wait for a successful receipt.

        :param tx: Transaction parameters.
        :param action: Description used in error messages.
        :returns: Receipt of the mined transaction.
        :raises ChainSubmissionFailed: If sending fails, confirmation fails or
            the transaction reverted.
        """
        try:
            tx_hash = self.send_transaction(tx)
            tx_receipt = self.wait_for_receipt(tx_hash)
        except Exception as e:
            raise ChainSubmissionFailed(action, e) from e

        # Check if transaction was successful
        if tx_receipt["status"] != 1:
            raise ChainSubmissionFailed(
                action, f"transaction {HexBytes(tx_receipt['transactionHash']).to_0x_hex()} reverted"
            )
        return tx_receipt


class Web3SigningConnection(SigningConnection):
    """Signing connection backed by a Web3 HTTP provider.

    Transactions are signed locally when the ContractUtility was built with a
    private key, otherwise by the node (e.g., a local dev chain with unlocked
    accounts).

    :ivar w3: Web3 instance.
    :ivar receipt_timeout: Seconds to wait for a transaction receipt.
    """

    def __init__(self, contract_utility: ContractUtility, receipt_timeout: float = 120.0) -> None:
        """Initialize the connection.

        :param contract_utility: Configured contract utility.
        :param receipt_timeout: Seconds to wait for receipts (default: 120).
        """
        self.w3: Web3 = contract_utility.w3
        self.account = contract_utility.account
        self.receipt_timeout = receipt_timeout

    def request_accounts(self) -> list[str]:
        """Return the local account, or the node's unlocked accounts.

        :returns: List of checksum addresses.
        """
        if self.account is not None:
            return [self.account.address]
        return list(self.w3.eth.accounts)

    def contract(self, address: str, abi: list) -> Contract:
        """Return a Web3 contract bound to a checksummed address.

        :param address: Contract address.
        :param abi: Contract ABI.
        :returns: Web3 contract.
        """
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def send_transaction(self, tx: TxParams) -> HexBytes:
        """Send a transaction through the provider.

        :param tx: Transaction parameters.
        :returns: Transaction hash.
        """
        tx_hash = self.w3.eth.send_transaction(tx)
        logger.debug(f"Transaction sent: {tx_hash.to_0x_hex()}")
        return tx_hash

    def wait_for_receipt(self, tx_hash: HexBytes) -> TxReceipt:
        """Wait for a receipt, up to receipt_timeout seconds.

        :param tx_hash: Transaction hash.
        :returns: Transaction receipt.
        """
        return self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
