"""
nymethtx/network.py

Destination networks and the registry mapping them to RPC endpoints and
payload wire tags.

Usage:
    from nymethtx.network import Network, NetworkRegistry

    registry = NetworkRegistry.default()
    network = registry.resolve("goerli")
    url = registry.endpoint(network)
    tag = registry.wire_tag(network)

    # Decoding a tag never fails: unknown tags select DEVELOPMENT
    assert registry.resolve_from_byte(0x42) is Network.DEVELOPMENT
"""

from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Union

from .config import NETWORK_ENDPOINTS, WIRE_TAGS
from .errors import UnknownNetwork


class Network(Enum):
    """
    Ethereum network a relayed transaction is destined for.

    MAINNET: Ethereum mainnet
    GOERLI: Goerli testnet
    DEVELOPMENT: local development node (also the fallback for unknown tags)
    """
    MAINNET = "mainnet"
    GOERLI = "goerli"
    DEVELOPMENT = "development"

    @classmethod
    def from_string(cls, value: str) -> "Network":
        """Convert a network name to a Network. Raises UnknownNetwork."""
        mapping = {
            "mainnet": cls.MAINNET,
            "goerli": cls.GOERLI,
            "testnet": cls.GOERLI,
            "development": cls.DEVELOPMENT,
            "dev": cls.DEVELOPMENT,
            "local": cls.DEVELOPMENT,
        }
        normalized = value.lower().strip() if isinstance(value, str) else ""
        if normalized in mapping:
            return mapping[normalized]
        raise UnknownNetwork(
            f"Invalid network: {value!r}. "
            f"Valid options: mainnet, goerli, development"
        )

    def __str__(self) -> str:
        return self.value


NameOrTag = Union[str, int, bytes, Network]


class NetworkRegistry:
    """
    Immutable lookup table of network endpoints and wire tags.

    Built once at startup and handed to the codec, client and server.
    Endpoint overrides produce a new registry instead of mutating this one.
    """

    def __init__(
        self,
        endpoints: Mapping[Network, str],
        wire_tags: Mapping[Network, int],
        fallback: Network = Network.DEVELOPMENT,
    ):
        missing = [n for n in Network if n not in endpoints or n not in wire_tags]
        if missing:
            raise ValueError(f"Registry is missing networks: {missing}")

        for network, tag in wire_tags.items():
            if not 0 <= tag <= 0xFF:
                raise ValueError(f"Wire tag for {network} is not a byte: {tag}")
        if len(set(wire_tags.values())) != len(wire_tags):
            raise ValueError("Wire tags must be unique")

        self._endpoints = MappingProxyType(dict(endpoints))
        self._wire_tags = MappingProxyType(dict(wire_tags))
        self._by_tag = MappingProxyType({tag: n for n, tag in wire_tags.items()})
        self.fallback = fallback

    @classmethod
    def default(cls) -> "NetworkRegistry":
        """Registry built from the constants in nymethtx.config."""
        return cls(
            endpoints={Network(name): url for name, url in NETWORK_ENDPOINTS.items()},
            wire_tags={Network(name): tag for name, tag in WIRE_TAGS.items()},
        )

    def with_endpoints(self, overrides: Dict[Network, str]) -> "NetworkRegistry":
        """Return a copy of this registry with some endpoints replaced."""
        endpoints = dict(self._endpoints)
        endpoints.update(overrides)
        return NetworkRegistry(endpoints, self._wire_tags, self.fallback)

    @property
    def networks(self):
        return list(self._endpoints)

    def resolve(self, name_or_tag: NameOrTag) -> Network:
        """
        Resolve a network from a name, a wire tag or a Network.

        Names are strict (UnknownNetwork); tags are total.
        """
        if isinstance(name_or_tag, Network):
            return name_or_tag
        if isinstance(name_or_tag, str):
            return Network.from_string(name_or_tag)
        if isinstance(name_or_tag, (bytes, bytearray)):
            if len(name_or_tag) != 1:
                raise ValueError(f"Wire tag must be a single byte, got {len(name_or_tag)}")
            return self.resolve_from_byte(name_or_tag[0])
        if isinstance(name_or_tag, int):
            if not 0 <= name_or_tag <= 0xFF:
                raise ValueError(f"Wire tag must be a byte value, got {name_or_tag}")
            return self.resolve_from_byte(name_or_tag)
        raise TypeError(f"Cannot resolve network from {type(name_or_tag).__name__}")

    def resolve_from_byte(self, tag: int) -> Network:
        """Map a wire tag to its network. Unrecognized tags select the fallback."""
        return self._by_tag.get(tag, self.fallback)

    def endpoint(self, network: Network) -> str:
        return self._endpoints[network]

    def wire_tag(self, network: Network) -> int:
        return self._wire_tags[network]

    def __repr__(self) -> str:
        tags = ", ".join(f"{n.value}=0x{t:02x}" for n, t in self._wire_tags.items())
        return f"NetworkRegistry({tags})"
