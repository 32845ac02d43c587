"""
nymethtx/mixnet/recipient.py

Nym client address.

A recipient is three ed25519/x25519 public keys:

    client identity key (32) || client encryption key (32) || gateway identity key (32)

Its string form is `<identity>.<encryption>@<gateway>` with each key base58
encoded, as printed by nym-client.
"""

from dataclasses import dataclass

import base58

KEY_LENGTH = 32
RECIPIENT_LENGTH = 3 * KEY_LENGTH


@dataclass(frozen=True)
class Recipient:
    """Mixnet address of a Nym client."""
    client_identity: bytes
    client_encryption_key: bytes
    gateway: bytes

    def __post_init__(self):
        for name in ("client_identity", "client_encryption_key", "gateway"):
            key = getattr(self, name)
            if len(key) != KEY_LENGTH:
                raise ValueError(f"{name} must be {KEY_LENGTH} bytes, got {len(key)}")

    @classmethod
    def from_bytes(cls, data: bytes) -> "Recipient":
        if len(data) != RECIPIENT_LENGTH:
            raise ValueError(
                f"Recipient must be {RECIPIENT_LENGTH} bytes, got {len(data)}"
            )
        return cls(
            client_identity=bytes(data[:KEY_LENGTH]),
            client_encryption_key=bytes(data[KEY_LENGTH:2 * KEY_LENGTH]),
            gateway=bytes(data[2 * KEY_LENGTH:]),
        )

    @classmethod
    def from_string(cls, address: str) -> "Recipient":
        """
        Parse `<identity>.<encryption>@<gateway>`.

        Raises:
            ValueError: if the address is malformed
        """
        try:
            client, gateway = address.strip().split("@")
            identity, encryption = client.split(".")
            return cls(
                client_identity=base58.b58decode(identity),
                client_encryption_key=base58.b58decode(encryption),
                gateway=base58.b58decode(gateway),
            )
        except ValueError as e:
            raise ValueError(f"Invalid recipient address {address!r}: {e}") from e

    def to_bytes(self) -> bytes:
        return self.client_identity + self.client_encryption_key + self.gateway

    def __str__(self) -> str:
        def enc(key: bytes) -> str:
            return base58.b58encode(key).decode("ascii")

        return (
            f"{enc(self.client_identity)}.{enc(self.client_encryption_key)}"
            f"@{enc(self.gateway)}"
        )
