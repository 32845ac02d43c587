"""
nymethtx/mixnet - Transport adapter for a local Nym websocket client.

Provides the request/response codec for binary and text frames, the
Recipient address type and the MixnetConnection wrapper used by the relay
client and server.
"""

from .connection import MixnetConnection
from .messages import (
    ClientRequest,
    ErrorKind,
    ErrorResponse,
    ReceivedResponse,
    SelfAddressRequest,
    SelfAddressResponse,
    SendRequest,
    ServerResponse,
    deserialize_response,
    parse_frame,
    parse_json_response,
)
from .recipient import Recipient

__all__ = [
    "MixnetConnection",
    "Recipient",
    "ClientRequest",
    "SelfAddressRequest",
    "SendRequest",
    "ServerResponse",
    "SelfAddressResponse",
    "ReceivedResponse",
    "ErrorResponse",
    "ErrorKind",
    "deserialize_response",
    "parse_json_response",
    "parse_frame",
]
