"""
nymethtx/client.py

Relay client: signs a transaction locally and sends it through the mixnet
to a relay server.

Usage:
    async with RelayClient(recipient, signer, codec, endpoint=endpoint) as client:
        signed = await client.sign(TransactionDraft(to=addr, value=10**8))
        await client.submit(signed, Network.GOERLI)

Lifecycle:
    DISCONNECTED -> CONNECTED -> SIGNED -> SUBMITTED -> CLOSED

A failed sign or send leaves the client FAILED; build a new client to retry.
"""

from enum import Enum, auto
from typing import Any, Dict, Optional, Union
import logging

from .chain.signer import TransactionDraft, TransactionSigner
from .codec import PayloadCodec, SignedTransaction
from .config import DEFAULT_NYM_CLIENT_ENDPOINT
from .errors import RelayError
from .mixnet.connection import MixnetConnection
from .mixnet.messages import SendRequest
from .mixnet.recipient import Recipient
from .network import Network

logger = logging.getLogger("nymethtx.client")


class ClientState(Enum):
    DISCONNECTED = auto()
    CONNECTED = auto()
    SIGNED = auto()
    SUBMITTED = auto()
    CLOSED = auto()
    FAILED = auto()


class RelayClient:
    """
    Sends signed transactions through the Nym mixnet to a relay server.

    Attributes:
        recipient: Mixnet address of the relay server
        endpoint: Websocket URL of the local Nym client
        state: Current ClientState
    """

    def __init__(
        self,
        recipient: Union[Recipient, str],
        signer: TransactionSigner,
        codec: PayloadCodec,
        endpoint: str = DEFAULT_NYM_CLIENT_ENDPOINT,
        connection: Optional[MixnetConnection] = None,
    ):
        """
        Args:
            recipient: Relay server address (Recipient or its string form)
            signer: Signing capability
            codec: Payload codec; its mode must match the server's
            endpoint: Websocket URL of the local Nym client
            connection: Pre-built connection (defaults to one on `endpoint`)
        """
        if isinstance(recipient, str):
            recipient = Recipient.from_string(recipient)
        self.recipient = recipient
        self.signer = signer
        self.codec = codec
        self.endpoint = endpoint
        self.connection = connection or MixnetConnection(endpoint)
        self.state = ClientState.DISCONNECTED

    async def connect(self) -> None:
        """
        Connect to the local Nym client.

        Raises:
            MixnetConnectionError: if the Nym client is unreachable
        """
        if self.state != ClientState.DISCONNECTED:
            raise RuntimeError(f"Cannot connect from state {self.state.name}")
        try:
            await self.connection.connect()
        except RelayError:
            self.state = ClientState.FAILED
            raise
        self.state = ClientState.CONNECTED
        logger.debug(f"connected to nym client at {self.endpoint}")

    async def sign(self, draft: TransactionDraft) -> SignedTransaction:
        """
        Fill and sign a transaction draft.

        Raises:
            SigningError: if the signer fails
        """
        self._require(ClientState.CONNECTED, ClientState.SIGNED)
        try:
            signed = await self.signer.fill_and_sign(draft)
        except RelayError:
            self.state = ClientState.FAILED
            raise
        self.state = ClientState.SIGNED
        return signed

    async def submit(
        self,
        signed: Union[SignedTransaction, bytes],
        network: Optional[Network] = None,
    ) -> None:
        """
        Send a signed transaction to the relay. No reply is requested.

        Raises:
            SendError: if the mixnet client connection fails
            MalformedPayload: if the transaction is empty
            ValueError: if the network cannot be encoded (untagged mode)

        Any failure leaves the client FAILED.
        """
        self._require(ClientState.CONNECTED, ClientState.SIGNED, ClientState.SUBMITTED)
        try:
            payload = self.codec.encode(signed, network)
            request = SendRequest(
                recipient=self.recipient,
                message=payload,
                with_reply_surb=False,
            )
            await self.connection.send(request)
        except (RelayError, ValueError):
            self.state = ClientState.FAILED
            raise

        self.state = ClientState.SUBMITTED
        tx_hash = signed.tx_hash if isinstance(signed, SignedTransaction) else ""
        logger.info(
            f"sent transaction {tx_hash} ({len(payload)} bytes) to {self.recipient}"
        )

    async def relay(
        self,
        draft: TransactionDraft,
        network: Optional[Network] = None,
    ) -> SignedTransaction:
        """Sign a draft and submit it in one step."""
        signed = await self.sign(draft)
        await self.submit(signed, network)
        return signed

    async def shutdown(self) -> None:
        """
        Close the mixnet connection. Safe to call more than once.

        Raises:
            CloseError: on an unexpected transport error
        """
        if self.state == ClientState.CLOSED:
            return
        self.state = ClientState.CLOSED
        await self.connection.close()
        logger.debug("client connection closed")

    close = shutdown

    def _require(self, *states: ClientState) -> None:
        if self.state not in states:
            raise RuntimeError(
                f"Invalid client state {self.state.name}, "
                f"expected one of {[s.name for s in states]}"
            )

    async def __aenter__(self) -> "RelayClient":
        try:
            await self.connect()
        except BaseException:
            await self.shutdown()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "state": self.state.name,
            "recipient": str(self.recipient),
            "connection": self.connection.get_stats(),
        }

    def __repr__(self) -> str:
        return f"RelayClient({self.state.name}, recipient={self.recipient})"
