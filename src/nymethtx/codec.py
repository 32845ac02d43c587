"""
nymethtx/codec.py

Relay payload codec.

Payload layout (carried inside a mixnet Received message):

    tagged mode:    [network tag: 1 byte] || raw signed transaction
    untagged mode:  raw signed transaction

The mode is fixed per deployment; both ends must agree. There is no
sniffing of the first byte to guess the mode.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union
import logging

import rlp
from rlp.exceptions import RLPException
from eth_account import Account
from eth_utils import big_endian_to_int, keccak, to_checksum_address

from .config import MIN_TRANSACTION_LENGTH
from .errors import MalformedPayload
from .network import Network, NetworkRegistry

logger = logging.getLogger("nymethtx.codec")


@dataclass(frozen=True)
class SignedTransaction:
    """Raw signed transaction bytes as produced by a signer."""
    raw: bytes
    tx_hash: str = ""

    @classmethod
    def from_raw(cls, raw: bytes) -> "SignedTransaction":
        return cls(raw=bytes(raw), tx_hash=transaction_hash(raw))

    def __len__(self) -> int:
        return len(self.raw)


def transaction_hash(raw: bytes) -> str:
    """Keccak-256 hash of a raw signed transaction, 0x-prefixed."""
    return "0x" + keccak(bytes(raw)).hex()


class PayloadCodec:
    """
    Encodes signed transactions into relay payloads and back.

    Example:
        codec = PayloadCodec(NetworkRegistry.default())
        payload = codec.encode(signed, Network.GOERLI)
        raw, network = codec.decode(payload)
    """

    def __init__(
        self,
        registry: NetworkRegistry,
        tagged: bool = True,
        default_network: Network = Network.DEVELOPMENT,
    ):
        """
        Args:
            registry: Network registry used for tag lookups
            tagged: Whether payloads carry a network tag byte
            default_network: Network for untagged payloads, and for
                tagged encodes that do not name one
        """
        self.registry = registry
        self.tagged = tagged
        self.default_network = default_network

    @property
    def min_payload_length(self) -> int:
        return MIN_TRANSACTION_LENGTH + (1 if self.tagged else 0)

    def encode(
        self,
        signed: Union[SignedTransaction, bytes],
        network: Optional[Network] = None,
    ) -> bytes:
        """
        Build the payload for a signed transaction.

        Raises:
            MalformedPayload: if the transaction is empty
            ValueError: if a network other than the default is requested
                in untagged mode
        """
        raw = signed.raw if isinstance(signed, SignedTransaction) else bytes(signed)
        if len(raw) < MIN_TRANSACTION_LENGTH:
            raise MalformedPayload("Cannot encode an empty transaction")

        if not self.tagged:
            if network is not None and network != self.default_network:
                raise ValueError(
                    f"Untagged payloads always target {self.default_network}, "
                    f"cannot select {network}"
                )
            return raw

        target = network if network is not None else self.default_network
        return bytes([self.registry.wire_tag(target)]) + raw

    def decode(self, payload: bytes) -> Tuple[bytes, Network]:
        """
        Split a payload into the raw transaction and its destination network.

        Raises:
            MalformedPayload: if the payload is empty or too short
        """
        if not payload:
            raise MalformedPayload("Empty payload")
        if len(payload) < self.min_payload_length:
            raise MalformedPayload(
                f"Payload too short: {len(payload)} bytes, "
                f"need at least {self.min_payload_length}"
            )

        if not self.tagged:
            return bytes(payload), self.default_network

        network = self.registry.resolve_from_byte(payload[0])
        if self.registry.wire_tag(network) != payload[0]:
            logger.debug(f"Unknown wire tag 0x{payload[0]:02x}, using {network}")
        return bytes(payload[1:]), network

    def __repr__(self) -> str:
        mode = "tagged" if self.tagged else f"untagged->{self.default_network}"
        return f"PayloadCodec({mode})"


# ============================================================================
# TRANSACTION INSPECTION
# ============================================================================

# Field positions (nonce, to, value) in the RLP list of each transaction type
_FIELD_INDEX = {
    0: (0, 3, 4),   # legacy
    1: (1, 4, 5),   # EIP-2930
    2: (1, 5, 6),   # EIP-1559
    3: (1, 5, 6),   # EIP-4844
}


@dataclass
class TransactionSummary:
    """Fields of a raw transaction that are worth logging."""
    tx_hash: str
    tx_type: int
    nonce: int
    to: Optional[str]
    value: int
    sender: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "tx_hash": self.tx_hash,
            "tx_type": self.tx_type,
            "nonce": self.nonce,
            "to": self.to,
            "value": self.value,
            "sender": self.sender,
        }


def inspect_transaction(raw: bytes, recover_sender: bool = True) -> TransactionSummary:
    """
    Decode the interesting fields of a raw signed transaction.

    Supports legacy RLP transactions and EIP-2718 typed envelopes.
    Submission does not depend on this; the server only uses it for logging.

    Raises:
        MalformedPayload: if the bytes are not a signed transaction
    """
    if not raw:
        raise MalformedPayload("Empty transaction")

    first = raw[0]
    if first >= 0xC0:
        tx_type, body = 0, raw
    elif first in _FIELD_INDEX and first != 0:
        tx_type, body = first, raw[1:]
    else:
        raise MalformedPayload(f"Unsupported transaction type 0x{first:02x}")

    try:
        fields = rlp.decode(bytes(body))
        nonce_idx, to_idx, value_idx = _FIELD_INDEX[tx_type]
        nonce = big_endian_to_int(fields[nonce_idx])
        to_raw = fields[to_idx]
        value = big_endian_to_int(fields[value_idx])
    except (RLPException, IndexError, TypeError) as e:
        raise MalformedPayload(f"Invalid transaction encoding: {e}") from e

    if not isinstance(to_raw, bytes) or (to_raw and len(to_raw) != 20):
        raise MalformedPayload("Invalid transaction recipient")

    summary = TransactionSummary(
        tx_hash=transaction_hash(raw),
        tx_type=tx_type,
        nonce=nonce,
        to=to_checksum_address(to_raw) if to_raw else None,
        value=value,
    )

    if recover_sender:
        try:
            summary.sender = Account.recover_transaction(bytes(raw))
        except Exception as e:
            raise MalformedPayload(f"Cannot recover transaction sender: {e}") from e

    return summary
