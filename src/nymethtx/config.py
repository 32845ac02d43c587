"""
nymethtx/config.py

Configuration constants and data classes for nymethtx.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional
import os


# Local Nym websocket client (nym-client default port)
DEFAULT_NYM_CLIENT_ENDPOINT = "ws://localhost:1977"

# Relay recipient used when the client is not told otherwise
DEFAULT_SERVER = (
    "DXHLCASnJGSesso5hXus1CtgifBpaPqAj7thZphp52xN."
    "7udbVvZ199futJNur71L3vHDNdnbVxxBvFKVzhEifXvE"
    "@5vC8spDvw5VDQ8Zvd9fVvBhbUDv9jABR4cXzd4Kh5vz"
)

DEFAULT_NETWORK = "development"
DEFAULT_KEY_FILE = "client.key"

# Network name -> JSON-RPC endpoint
NETWORK_ENDPOINTS: Dict[str, str] = {
    "mainnet": "https://mainnet.infura.io/v3/c60b0bb42f8a4c6481ecd229eddaca27",
    "goerli": "https://goerli.infura.io/v3/c60b0bb42f8a4c6481ecd229eddaca27",
    "development": "http://localhost:8545",
}

# Network name -> payload wire tag. 0xFF is reserved: unknown tags decode to it.
WIRE_TAGS: Dict[str, int] = {
    "mainnet": 0x01,
    "goerli": 0x05,
    "development": 0xFF,
}

# Shortest raw transaction accepted after the tag byte
MIN_TRANSACTION_LENGTH = 1

# Timeouts
RECEIPT_PARAMS = {
    "timeout": 120.0,               # seconds to wait for a receipt
    "poll_latency": 0.1,            # receipt polling interval
}
RPC_REQUEST_TIMEOUT = 30.0          # per HTTP request to the chain node

ENV_PREFIX = "NYMETHTX_"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(ENV_PREFIX + name, default)


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = _env(name)
    if value is None or value == "":
        return default
    return float(value)


@dataclass
class ClientConfig:
    """Settings for a relay client (transaction sender)."""

    endpoint: str = DEFAULT_NYM_CLIENT_ENDPOINT
    network: str = DEFAULT_NETWORK
    key_file: str = DEFAULT_KEY_FILE
    server: str = DEFAULT_SERVER

    # Prefix payloads with the network wire tag
    tagged: bool = True

    # Overrides the registry endpoint used for filling and signing
    rpc_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build a configuration from NYMETHTX_* environment variables."""
        return cls(
            endpoint=_env("ENDPOINT", DEFAULT_NYM_CLIENT_ENDPOINT),
            network=_env("NETWORK", DEFAULT_NETWORK),
            key_file=_env("KEY_FILE", DEFAULT_KEY_FILE),
            server=_env("SERVER", DEFAULT_SERVER),
            tagged=_env_bool("TAGGED", True),
            rpc_url=_env("RPC_URL"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ServerConfig:
    """
    Settings for a relay server.

    Usage:
        config = ServerConfig.from_env()
        config.receipt_timeout = 30.0
    """

    endpoint: str = DEFAULT_NYM_CLIENT_ENDPOINT

    # Network used for untagged payloads, and the only one served
    # when multi_network is off
    network: str = DEFAULT_NETWORK

    # Overrides the registry endpoint of `network`
    rpc_url: Optional[str] = None

    # Payloads carry a network tag byte
    tagged: bool = True

    # Build RPC clients lazily for any tagged network
    multi_network: bool = True

    receipt_timeout: float = RECEIPT_PARAMS["timeout"]
    receipt_poll_latency: float = RECEIPT_PARAMS["poll_latency"]

    # None waits forever for the next frame
    receive_timeout: Optional[float] = None

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Build a configuration from NYMETHTX_* environment variables."""
        return cls(
            endpoint=_env("ENDPOINT", DEFAULT_NYM_CLIENT_ENDPOINT),
            network=_env("NETWORK", DEFAULT_NETWORK),
            rpc_url=_env("RPC_URL"),
            tagged=_env_bool("TAGGED", True),
            multi_network=_env_bool("MULTI_NETWORK", True),
            receipt_timeout=_env_float("RECEIPT_TIMEOUT", RECEIPT_PARAMS["timeout"]),
            receive_timeout=_env_float("RECEIVE_TIMEOUT", None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
