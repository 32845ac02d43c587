"""
nymethtx - Relay Ethereum transactions through the Nym mixnet

A sender signs a transaction locally and hands the raw bytes to its Nym
client; a relay server on the other side of the mixnet submits them to an
Ethereum node. The node only ever sees the relay as the transaction's
network origin.

Payloads are `[network tag] || raw signed transaction` (tagged mode) or the
bare transaction (untagged mode, single network).

Client Usage:
    from nymethtx import RelayClient, PayloadCodec, NetworkRegistry, Network
    from nymethtx.chain import TransactionDraft, Web3Signer

    registry = NetworkRegistry.default()
    signer = Web3Signer.from_key_file("client.key", registry.endpoint(Network.GOERLI))

    async with RelayClient(relay_address, signer, PayloadCodec(registry)) as client:
        await client.relay(TransactionDraft(to=addr, value=10**8), Network.GOERLI)

Server Usage:
    from nymethtx import RelayServer, PayloadCodec, NetworkRegistry
    from nymethtx.chain import RpcPool

    registry = NetworkRegistry.default()
    async with RelayServer(PayloadCodec(registry), RpcPool(registry)) as server:
        await server.run()
"""

from .client import ClientState, RelayClient
from .codec import PayloadCodec, SignedTransaction, TransactionSummary, inspect_transaction
from .config import (
    DEFAULT_NYM_CLIENT_ENDPOINT,
    DEFAULT_SERVER,
    ClientConfig,
    ServerConfig,
)
from .errors import (
    CloseError,
    ConnectionClosed,
    MalformedPayload,
    MixnetConnectionError,
    MixnetError,
    NoReceiptError,
    ParseError,
    ReceiveTimeout,
    RecvError,
    RelayError,
    SendError,
    SigningError,
    SubmissionError,
    UnknownNetwork,
)
from .network import Network, NetworkRegistry
from .server import RelayServer, ServerState

__version__ = "0.1.0"

__all__ = [
    # Relay
    "RelayClient",
    "RelayServer",
    "ClientState",
    "ServerState",
    # Codec
    "PayloadCodec",
    "SignedTransaction",
    "TransactionSummary",
    "inspect_transaction",
    # Networks
    "Network",
    "NetworkRegistry",
    # Config
    "ClientConfig",
    "ServerConfig",
    "DEFAULT_NYM_CLIENT_ENDPOINT",
    "DEFAULT_SERVER",
    # Errors
    "RelayError",
    "UnknownNetwork",
    "MalformedPayload",
    "SigningError",
    "SubmissionError",
    "NoReceiptError",
    "MixnetError",
    "MixnetConnectionError",
    "SendError",
    "RecvError",
    "ConnectionClosed",
    "ReceiveTimeout",
    "ParseError",
    "CloseError",
]
