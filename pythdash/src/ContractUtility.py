"""ContractUtility: Web3 initialization and contract ABI loading."""

import json
import os
from pathlib import Path

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.middleware import SignAndSendRawMiddlewareBuilder

# Public RPC endpoints per network. RPC_URL or an explicit URL overrides these.
NETWORKS: dict[str, str] = {
    "sepolia": "https://rpc.sepolia.org",
    "blast-sepolia": "https://sepolia.blast.io",
    "localnet": "http://localhost:8545",
}

# Predeployed Pyth price contract addresses based on the network.
DEFAULT_PYTH_ADDRESS: dict[str, str | None] = {
    "sepolia": "0xDd24F84d36BF92C65F92307595335bdFab5Bbd21",
    "blast-sepolia": None,
    "localnet": None,
}

# Predeployed Pyth Entropy contract addresses based on the network.
DEFAULT_ENTROPY_ADDRESS: dict[str, str | None] = {
    "sepolia": None,
    "blast-sepolia": "0x549Ebba8036Ab746611B4fFA1423eb0A4Df61440",
    "localnet": None,
}

# Default Entropy randomness provider.
DEFAULT_ENTROPY_PROVIDER = "0x6CC14824Ea2918f5De5C2f75A9Da968ad4BD6344"


class ContractUtility:
    """Utility for Web3 connection and contract ABI loading.

    :ivar network: Network RPC URL.
    :ivar w3: Configured Web3 instance.
    :ivar account: Local signing account, or None for a read-only connection.
    """

    def __init__(self, network_name: str, private_key: str | None = None) -> None:
        """Initialize the contract utility.

        :param network_name: Name of the network, or an RPC URL.
        :param private_key: Optional hex private key used to sign transactions.
        """
        # RPC_URL env var overrides the default for the network
        self.network = os.environ.get("RPC_URL") or NETWORKS.get(network_name, network_name)

        self.w3 = Web3(Web3.HTTPProvider(self.network))
        self.account: LocalAccount | None = None
        if private_key:
            self.account = Account.from_key(private_key)
            self.w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(self.account))
            self.w3.eth.default_account = self.account.address

    @staticmethod
    def get_contract(contract_name: str) -> list:
        """Fetch the ABI of a contract from the bundled abi folder.

        :param contract_name: Name of the contract (e.g., "IPyth").
        :returns: Contract ABI.
        """
        output_path = (Path(__file__).parent.parent / "abi" / f"{contract_name}.json").resolve()

        with open(output_path, "r") as file:
            contract_data = json.load(file)

        return contract_data["abi"]
