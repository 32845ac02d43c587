"""
nymethtx/chain/rpc.py

Raw transaction submission to Ethereum JSON-RPC endpoints.

web3.py is synchronous; calls run in worker threads via
trio.to_thread.run_sync so the relay loop stays on trio.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional
import logging

import trio
from web3 import Web3
from web3.exceptions import TimeExhausted

from ..config import RECEIPT_PARAMS, RPC_REQUEST_TIMEOUT
from ..errors import SubmissionError
from ..network import Network, NetworkRegistry

logger = logging.getLogger("nymethtx.chain.rpc")


class PendingTransaction(ABC):
    """Handle to a submitted transaction that may still be unmined."""

    def __init__(self, tx_hash: str):
        self.tx_hash = tx_hash

    @abstractmethod
    async def wait(
        self,
        timeout: float = RECEIPT_PARAMS["timeout"],
        poll_latency: float = RECEIPT_PARAMS["poll_latency"],
    ) -> Optional[Any]:
        """Wait for the receipt. Returns None if none arrived in time."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.tx_hash})"


class ChainRpc(ABC):
    """Capability: submit raw signed bytes to one chain."""

    endpoint: str = ""

    @abstractmethod
    async def submit_raw(self, raw: bytes) -> PendingTransaction:
        """
        Send a raw signed transaction.

        Raises:
            SubmissionError: if the node rejects it or cannot be reached
        """


class Web3PendingTransaction(PendingTransaction):

    def __init__(self, w3: Web3, tx_hash: str):
        super().__init__(tx_hash)
        self.w3 = w3

    def _wait_blocking(self, timeout: float, poll_latency: float) -> Optional[Any]:
        try:
            return self.w3.eth.wait_for_transaction_receipt(
                self.tx_hash, timeout=timeout, poll_latency=poll_latency
            )
        except TimeExhausted:
            return None

    async def wait(
        self,
        timeout: float = RECEIPT_PARAMS["timeout"],
        poll_latency: float = RECEIPT_PARAMS["poll_latency"],
    ) -> Optional[Any]:
        # The worker thread is abandoned on cancellation; it ends on its own
        # once wait_for_transaction_receipt times out.
        return await trio.to_thread.run_sync(
            self._wait_blocking, timeout, poll_latency, abandon_on_cancel=True
        )


class Web3Rpc(ChainRpc):
    """
    ChainRpc backed by a web3.py HTTP provider.

    Example:
        rpc = Web3Rpc("http://localhost:8545")
        pending = await rpc.submit_raw(raw)
        receipt = await pending.wait(timeout=60)
    """

    def __init__(self, endpoint: str, w3: Optional[Web3] = None):
        self.endpoint = endpoint
        self.w3 = w3 or Web3(
            Web3.HTTPProvider(endpoint, request_kwargs={"timeout": RPC_REQUEST_TIMEOUT})
        )

    async def submit_raw(self, raw: bytes) -> PendingTransaction:
        try:
            tx_hash = await trio.to_thread.run_sync(
                self.w3.eth.send_raw_transaction, bytes(raw)
            )
        except Exception as e:
            raise SubmissionError(f"send_raw_transaction to {self.endpoint} failed: {e}") from e

        pending = Web3PendingTransaction(self.w3, "0x" + bytes(tx_hash).hex())
        logger.info(f"submitted transaction: hash {pending.tx_hash}")
        return pending

    def __repr__(self) -> str:
        return f"Web3Rpc({self.endpoint})"


class RpcPool:
    """
    Per-network ChainRpc handles.

    In multi-network mode handles are built lazily the first time a network
    is used. In single-network mode only the default network is served and
    requests for any other network fail with SubmissionError.

    Accessed only from the relay loop task, so no locking.
    """

    def __init__(
        self,
        registry: NetworkRegistry,
        default_network: Network = Network.DEVELOPMENT,
        multi_network: bool = True,
        factory: Callable[[str], ChainRpc] = Web3Rpc,
    ):
        self.registry = registry
        self.default_network = default_network
        self.multi_network = multi_network
        self.factory = factory
        self._clients: Dict[Network, ChainRpc] = {}

    def register(self, network: Network, rpc: ChainRpc) -> None:
        """Use a ready-made handle for a network."""
        self._clients[network] = rpc

    def get(self, network: Network) -> ChainRpc:
        if not self.multi_network and network != self.default_network:
            raise SubmissionError(
                f"Network {network} is not served (single-network mode on "
                f"{self.default_network})",
                network=network,
            )

        rpc = self._clients.get(network)
        if rpc is None:
            endpoint = self.registry.endpoint(network)
            logger.debug(f"creating RPC client for {network}: {endpoint}")
            rpc = self.factory(endpoint)
            self._clients[network] = rpc
        return rpc

    @property
    def networks(self):
        return list(self._clients)

    def __repr__(self) -> str:
        mode = "multi" if self.multi_network else f"single:{self.default_network}"
        return f"RpcPool({mode}, clients={len(self._clients)})"
