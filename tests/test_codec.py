"""
Tests for nymethtx/codec.py
"""

import pytest
from eth_account import Account
from eth_utils import keccak, to_checksum_address

from nymethtx.codec import (
    PayloadCodec,
    SignedTransaction,
    inspect_transaction,
    transaction_hash,
)
from nymethtx.errors import MalformedPayload
from nymethtx.network import Network

from conftest import RELAY_TARGET, TEST_PRIVATE_KEY


def sign(tx: dict) -> bytes:
    return bytes(Account.from_key(TEST_PRIVATE_KEY).sign_transaction(tx).raw_transaction)


LEGACY_TX = {
    "to": to_checksum_address(RELAY_TARGET),
    "value": 100_000_000,
    "gas": 21000,
    "gasPrice": 10**9,
    "nonce": 7,
    "chainId": 1337,
    "data": b"",
}

DYNAMIC_FEE_TX = {
    "to": to_checksum_address(RELAY_TARGET),
    "value": 5,
    "gas": 21000,
    "maxFeePerGas": 2 * 10**9,
    "maxPriorityFeePerGas": 10**9,
    "nonce": 3,
    "chainId": 1337,
    "type": 2,
}


class TestPayloadCodecTagged:
    """Tests for tagged payloads."""

    def test_encode_prefixes_tag(self, registry):
        """Test that the tag byte precedes the transaction."""
        codec = PayloadCodec(registry)
        payload = codec.encode(b"\xf8\x01\x02", Network.GOERLI)
        assert payload == b"\x05\xf8\x01\x02"

    def test_encode_default_network(self, registry):
        """Without a network the codec default is tagged."""
        codec = PayloadCodec(registry, default_network=Network.DEVELOPMENT)
        assert codec.encode(b"\xf8")[0] == 0xFF

    def test_round_trip_every_network(self, registry):
        """decode(encode(tx, net)) returns the same bytes and network."""
        codec = PayloadCodec(registry)
        for network in Network:
            for raw in (b"\x00", b"\xf8" * 120, bytes(range(256))):
                assert codec.decode(codec.encode(raw, network)) == (raw, network)

    def test_encode_signed_transaction(self, registry):
        codec = PayloadCodec(registry)
        signed = SignedTransaction.from_raw(b"\xf8\x65")
        assert codec.encode(signed, Network.MAINNET) == b"\x01\xf8\x65"

    def test_decode_unknown_tag(self, registry):
        """Unknown tags decode to DEVELOPMENT."""
        codec = PayloadCodec(registry)
        raw, network = codec.decode(b"\x42\xf8\x01")
        assert raw == b"\xf8\x01"
        assert network is Network.DEVELOPMENT

    def test_decode_empty(self, registry):
        """Empty payloads are malformed."""
        with pytest.raises(MalformedPayload):
            PayloadCodec(registry).decode(b"")

    def test_decode_tag_only(self, registry):
        """A lone tag byte carries no transaction."""
        with pytest.raises(MalformedPayload):
            PayloadCodec(registry).decode(b"\x05")

    def test_encode_empty(self, registry):
        with pytest.raises(MalformedPayload):
            PayloadCodec(registry).encode(b"", Network.GOERLI)


class TestPayloadCodecUntagged:
    """Tests for untagged (single network) payloads."""

    def test_encode_is_raw(self, registry):
        codec = PayloadCodec(registry, tagged=False, default_network=Network.GOERLI)
        assert codec.encode(b"\xf8\x01") == b"\xf8\x01"
        assert codec.encode(b"\xf8\x01", Network.GOERLI) == b"\xf8\x01"

    def test_encode_other_network_rejected(self, registry):
        codec = PayloadCodec(registry, tagged=False, default_network=Network.GOERLI)
        with pytest.raises(ValueError):
            codec.encode(b"\xf8\x01", Network.MAINNET)

    def test_decode_uses_default_network(self, registry):
        """The first byte is never read as a tag."""
        codec = PayloadCodec(registry, tagged=False, default_network=Network.MAINNET)
        assert codec.decode(b"\x05\xf8") == (b"\x05\xf8", Network.MAINNET)

    def test_decode_single_byte(self, registry):
        codec = PayloadCodec(registry, tagged=False)
        assert codec.decode(b"\x01") == (b"\x01", Network.DEVELOPMENT)

    def test_decode_empty(self, registry):
        with pytest.raises(MalformedPayload):
            PayloadCodec(registry, tagged=False).decode(b"")

    def test_repr(self, registry):
        assert "untagged" in repr(PayloadCodec(registry, tagged=False))


class TestInspectTransaction:
    """Tests for raw transaction inspection."""

    def test_legacy_transaction(self):
        raw = sign(LEGACY_TX)
        summary = inspect_transaction(raw)

        assert summary.tx_type == 0
        assert summary.to == to_checksum_address(RELAY_TARGET)
        assert summary.value == 100_000_000
        assert summary.nonce == 7
        assert summary.sender == Account.from_key(TEST_PRIVATE_KEY).address
        assert summary.tx_hash == "0x" + keccak(raw).hex()

    def test_dynamic_fee_transaction(self):
        raw = sign(DYNAMIC_FEE_TX)
        summary = inspect_transaction(raw)

        assert summary.tx_type == 2
        assert summary.to == to_checksum_address(RELAY_TARGET)
        assert summary.value == 5
        assert summary.nonce == 3
        assert summary.sender == Account.from_key(TEST_PRIVATE_KEY).address

    def test_contract_creation(self):
        tx = dict(LEGACY_TX, data=b"\x60\x00")
        del tx["to"]
        summary = inspect_transaction(sign(tx))
        assert summary.to is None

    def test_garbage(self):
        with pytest.raises(MalformedPayload):
            inspect_transaction(b"\xf8\xff\x00")

    def test_unsupported_type(self):
        with pytest.raises(MalformedPayload):
            inspect_transaction(b"\x7f\xc0")

    def test_empty(self):
        with pytest.raises(MalformedPayload):
            inspect_transaction(b"")

    def test_to_dict(self):
        summary = inspect_transaction(sign(LEGACY_TX), recover_sender=False)
        data = summary.to_dict()
        assert data["value"] == 100_000_000
        assert data["sender"] is None

    def test_transaction_hash(self):
        assert transaction_hash(b"abc") == "0x" + keccak(b"abc").hex()
