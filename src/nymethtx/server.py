"""
nymethtx/server.py

Relay server: receives transactions from the mixnet and submits them to
Ethereum nodes.

The receive loop handles one message at a time, in arrival order. It
suspends only while waiting for the next frame and while a submission
awaits its receipt. A bad message never stops the loop; only closure of the
mixnet connection does.

Usage:
    server = RelayServer(codec, rpc_pool, endpoint="ws://localhost:1977")
    await server.start()
    await server.run()      # returns when the Nym client goes away
    await server.close()
"""

from enum import Enum, auto
from typing import Any, Dict, Mapping, Optional
import logging

from .chain.rpc import RpcPool
from .codec import PayloadCodec, inspect_transaction
from .config import DEFAULT_NYM_CLIENT_ENDPOINT, RECEIPT_PARAMS
from .errors import (
    ConnectionClosed,
    MalformedPayload,
    MixnetError,
    NoReceiptError,
    ParseError,
    ReceiveTimeout,
    SubmissionError,
)
from .mixnet.connection import MixnetConnection
from .mixnet.messages import (
    ErrorResponse,
    ReceivedResponse,
    SelfAddressRequest,
    SelfAddressResponse,
    ServerResponse,
)
from .network import Network

logger = logging.getLogger("nymethtx.server")


class ServerState(Enum):
    CREATED = auto()
    RUNNING = auto()
    STOPPED = auto()


class RelayServer:
    """
    Keeps a connection to a Nym client and relays received transactions.

    Attributes:
        codec: Payload codec (tag mode must match the clients')
        rpc_pool: Per-network RPC handles
        self_address: Our mixnet address once the Nym client reported it
    """

    def __init__(
        self,
        codec: PayloadCodec,
        rpc_pool: RpcPool,
        endpoint: str = DEFAULT_NYM_CLIENT_ENDPOINT,
        connection: Optional[MixnetConnection] = None,
        receipt_timeout: float = RECEIPT_PARAMS["timeout"],
        receipt_poll_latency: float = RECEIPT_PARAMS["poll_latency"],
        receive_timeout: Optional[float] = None,
    ):
        """
        Args:
            codec: Payload codec
            rpc_pool: Per-network RPC handles
            endpoint: Websocket URL of the local Nym client
            connection: Pre-built connection (defaults to one on `endpoint`)
            receipt_timeout: Seconds to wait for each receipt
            receipt_poll_latency: Receipt polling interval
            receive_timeout: Seconds to wait for a frame (None: forever)
        """
        self.codec = codec
        self.rpc_pool = rpc_pool
        self.endpoint = endpoint
        self.connection = connection or MixnetConnection(
            endpoint, receive_timeout=receive_timeout
        )
        self.receipt_timeout = receipt_timeout
        self.receipt_poll_latency = receipt_poll_latency

        self.state = ServerState.CREATED
        self.self_address = None

        # Stats
        self._received = 0
        self._relayed = 0
        self._failed = 0
        self._dropped = 0

    async def start(self) -> None:
        """
        Connect to the Nym client and ask for our own address.

        Raises:
            MixnetConnectionError: if the Nym client is unreachable
            SendError: if the address request cannot be sent
        """
        await self.connection.connect()
        try:
            await self.connection.send(SelfAddressRequest())
        except BaseException:
            await self.close()
            raise
        self.state = ServerState.RUNNING
        logger.info(f"relay started on {self.endpoint} ({self.codec})")

    async def run(self) -> None:
        """
        Process inbound frames until the mixnet connection closes.
        """
        if self.state == ServerState.CREATED:
            await self.start()

        while True:
            try:
                response = await self.connection.receive()
            except ParseError as e:
                self._dropped += 1
                logger.warning(f"received unknown message: error {e}")
                continue
            except ReceiveTimeout as e:
                logger.debug(f"{e}")
                continue
            except ConnectionClosed as e:
                logger.info(f"mixnet connection closed: {e}")
                break
            except MixnetError as e:
                logger.error(f"mixnet transport failed: {e}")
                break

            await self.dispatch(response)

        self.state = ServerState.STOPPED

    async def dispatch(self, response: ServerResponse) -> None:
        """Handle one parsed response. Never raises for per-message errors."""
        if isinstance(response, ReceivedResponse):
            await self.handle_received(response)
        elif isinstance(response, SelfAddressResponse):
            self.self_address = response.address
            logger.info(f"listening on {response.address}")
        elif isinstance(response, ErrorResponse):
            logger.error(f"received error: {response.kind.name}: {response.message}")
        else:
            raise TypeError(f"Unhandled mixnet response {type(response).__name__}")

    async def handle_received(self, response: ReceivedResponse) -> None:
        self._received += 1
        logger.debug(f"received request {response.message.hex()}")

        try:
            raw, network = self.codec.decode(response.message)
        except MalformedPayload as e:
            self._dropped += 1
            logger.warning(f"dropping malformed payload: {e}")
            return

        try:
            summary = inspect_transaction(raw)
            logger.info(
                f"relaying transaction {summary.tx_hash} to {network}: "
                f"from={summary.sender} to={summary.to} value={summary.value}"
            )
        except MalformedPayload as e:
            logger.debug(f"cannot inspect transaction, submitting as is: {e}")

        try:
            receipt = await self.submit(raw, network)
        except (SubmissionError, NoReceiptError) as e:
            self._failed += 1
            logger.warning(f"{type(e).__name__} on {network}: {e}")
            return
        except Exception as e:
            self._failed += 1
            logger.warning(f"unexpected submission failure on {network}: {type(e).__name__}: {e}")
            return

        self._relayed += 1
        details = dict(receipt) if isinstance(receipt, Mapping) else receipt
        logger.info(f"transaction included on {network}: {details!r}")

    async def submit(self, raw: bytes, network: Network) -> Any:
        """
        Submit a raw transaction and wait for its receipt.

        Raises:
            SubmissionError: if the node rejects the transaction or is unreachable
            NoReceiptError: if no receipt arrives
        """
        rpc = self.rpc_pool.get(network)
        pending = await rpc.submit_raw(raw)

        try:
            receipt = await pending.wait(
                timeout=self.receipt_timeout,
                poll_latency=self.receipt_poll_latency,
            )
        except Exception as e:
            raise NoReceiptError(
                f"failed waiting for receipt of {pending.tx_hash}: {e}",
                tx_hash=pending.tx_hash,
                network=network,
            ) from e

        if receipt is None:
            raise NoReceiptError(
                f"did not receive transaction receipt for {pending.tx_hash}",
                tx_hash=pending.tx_hash,
                network=network,
            )
        logger.info(f"received receipt for {pending.tx_hash}")
        return receipt

    async def close(self) -> None:
        """Close the mixnet connection."""
        self.state = ServerState.STOPPED
        await self.connection.close()

    async def __aenter__(self) -> "RelayServer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def get_stats(self) -> Dict[str, Any]:
        """Get relay statistics."""
        return {
            "state": self.state.name,
            "self_address": str(self.self_address) if self.self_address else None,
            "received": self._received,
            "relayed": self._relayed,
            "failed": self._failed,
            "dropped": self._dropped,
            "networks": [str(n) for n in self.rpc_pool.networks],
        }

    def __repr__(self) -> str:
        return f"RelayServer({self.state.name}, {self.endpoint})"
