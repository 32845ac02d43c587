"""
nymethtx/mixnet/messages.py

Requests to and responses from a local Nym websocket client.

Binary frames (all lengths are u64 big-endian):

    Requests
        SEND          0x00 || with_reply_surb u8 || recipient[96] || len || message
        SELF_ADDRESS  0x02

    Responses
        ERROR         0x00 || kind u8 || len || utf-8 message
        RECEIVED      0x01 || has_reply_surb u8 || [len || reply_surb] || len || message
        SELF_ADDRESS  0x02 || recipient[96]

Text frames carry the same messages as JSON objects with a "type" field
("send", "selfAddress", "received", "error"). Binary message bodies inside
JSON are hex encoded with a 0x prefix.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union
import json
import struct

from ..errors import ParseError
from .recipient import RECIPIENT_LENGTH, Recipient

# Request tags
SEND_REQUEST_TAG = 0x00
SELF_ADDRESS_REQUEST_TAG = 0x02

# Response tags
ERROR_RESPONSE_TAG = 0x00
RECEIVED_RESPONSE_TAG = 0x01
SELF_ADDRESS_RESPONSE_TAG = 0x02

_LEN = struct.Struct(">Q")


class ErrorKind(IntEnum):
    """Error categories reported by the Nym client."""
    EMPTY_REQUEST = 0x01
    TOO_SHORT_REQUEST = 0x02
    UNKNOWN_REQUEST = 0x03
    MALFORMED_REQUEST = 0x04
    EMPTY_RESPONSE = 0x10
    TOO_SHORT_RESPONSE = 0x11
    UNKNOWN_RESPONSE = 0x12
    MALFORMED_RESPONSE = 0x13
    OTHER = 0xFF

    @classmethod
    def from_byte(cls, value: int) -> "ErrorKind":
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


def _encode_text_body(message: bytes) -> str:
    try:
        text = message.decode("utf-8")
    except UnicodeDecodeError:
        return "0x" + message.hex()
    if text.startswith("0x") or not text.isprintable():
        return "0x" + message.hex()
    return text


def _decode_text_body(text: str) -> bytes:
    if text.startswith("0x"):
        try:
            return bytes.fromhex(text[2:])
        except ValueError as e:
            raise ParseError(f"Invalid hex message body: {e}") from e
    return text.encode("utf-8")


# ============================================================================
# REQUESTS
# ============================================================================

@dataclass(frozen=True)
class SelfAddressRequest:
    """Ask the Nym client for its own mixnet address."""

    def serialize(self) -> bytes:
        return bytes([SELF_ADDRESS_REQUEST_TAG])

    def to_json(self) -> str:
        return json.dumps({"type": "selfAddress"})


@dataclass(frozen=True)
class SendRequest:
    """Send a message to another mixnet client."""
    recipient: Recipient
    message: bytes
    with_reply_surb: bool = False

    def serialize(self) -> bytes:
        return (
            bytes([SEND_REQUEST_TAG, int(self.with_reply_surb)])
            + self.recipient.to_bytes()
            + _LEN.pack(len(self.message))
            + self.message
        )

    def to_json(self) -> str:
        return json.dumps({
            "type": "send",
            "recipient": str(self.recipient),
            "message": _encode_text_body(self.message),
            "withReplySurb": self.with_reply_surb,
        })


ClientRequest = Union[SelfAddressRequest, SendRequest]


# ============================================================================
# RESPONSES
# ============================================================================

@dataclass(frozen=True)
class SelfAddressResponse:
    """Our own mixnet address."""
    address: Recipient

    def serialize(self) -> bytes:
        return bytes([SELF_ADDRESS_RESPONSE_TAG]) + self.address.to_bytes()

    def to_json(self) -> str:
        return json.dumps({"type": "selfAddress", "address": str(self.address)})


@dataclass(frozen=True)
class ReceivedResponse:
    """A message that arrived over the mixnet."""
    message: bytes
    reply_surb: Optional[bytes] = None

    def serialize(self) -> bytes:
        out = bytes([RECEIVED_RESPONSE_TAG, int(self.reply_surb is not None)])
        if self.reply_surb is not None:
            out += _LEN.pack(len(self.reply_surb)) + self.reply_surb
        return out + _LEN.pack(len(self.message)) + self.message

    def to_json(self) -> str:
        data = {"type": "received", "message": _encode_text_body(self.message)}
        if self.reply_surb is not None:
            data["replySurb"] = self.reply_surb.decode("utf-8", "replace")
        return json.dumps(data)


@dataclass(frozen=True)
class ErrorResponse:
    """An error reported by the Nym client."""
    kind: ErrorKind
    message: str

    def serialize(self) -> bytes:
        body = self.message.encode("utf-8")
        return bytes([ERROR_RESPONSE_TAG, int(self.kind)]) + _LEN.pack(len(body)) + body

    def to_json(self) -> str:
        return json.dumps({"type": "error", "message": self.message})


ServerResponse = Union[SelfAddressResponse, ReceivedResponse, ErrorResponse]


class _Reader:
    """Cursor over a binary frame that raises ParseError on truncation."""

    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            raise ParseError(
                f"Frame truncated: need {n} bytes at offset {self.pos}, "
                f"have {len(self.data) - self.pos}"
            )
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return bytes(chunk)

    def byte(self) -> int:
        return self.take(1)[0]

    def length_prefixed(self) -> bytes:
        (length,) = _LEN.unpack(self.take(_LEN.size))
        return self.take(length)

    def finish(self) -> None:
        if self.pos != len(self.data):
            raise ParseError(f"{len(self.data) - self.pos} trailing bytes in frame")


def deserialize_response(data: bytes) -> ServerResponse:
    """
    Parse a binary response frame.

    Raises:
        ParseError: on empty, truncated, unknown or trailing-garbage frames
    """
    if not data:
        raise ParseError("Empty response frame")

    reader = _Reader(data)
    tag = reader.byte()

    if tag == RECEIVED_RESPONSE_TAG:
        has_surb = reader.byte()
        if has_surb not in (0, 1):
            raise ParseError(f"Invalid reply SURB flag: {has_surb}")
        reply_surb = reader.length_prefixed() if has_surb else None
        message = reader.length_prefixed()
        response = ReceivedResponse(message=message, reply_surb=reply_surb)

    elif tag == SELF_ADDRESS_RESPONSE_TAG:
        try:
            address = Recipient.from_bytes(reader.take(RECIPIENT_LENGTH))
        except ValueError as e:
            raise ParseError(f"Invalid self address: {e}") from e
        response = SelfAddressResponse(address=address)

    elif tag == ERROR_RESPONSE_TAG:
        kind = ErrorKind.from_byte(reader.byte())
        try:
            message = reader.length_prefixed().decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"Error message is not utf-8: {e}") from e
        response = ErrorResponse(kind=kind, message=message)

    else:
        raise ParseError(f"Unknown response tag 0x{tag:02x}")

    reader.finish()
    return response


def parse_json_response(text: str) -> ServerResponse:
    """
    Parse a text (JSON) response frame.

    Raises:
        ParseError: on invalid JSON, missing fields or unknown types
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON frame: {e}") from e

    if not isinstance(data, dict):
        raise ParseError("JSON frame is not an object")

    kind = data.get("type")
    try:
        if kind == "received":
            surb = data.get("replySurb")
            return ReceivedResponse(
                message=_decode_text_body(data["message"]),
                reply_surb=surb.encode("utf-8") if surb else None,
            )
        if kind == "selfAddress":
            return SelfAddressResponse(address=Recipient.from_string(data["address"]))
        if kind == "error":
            return ErrorResponse(kind=ErrorKind.OTHER, message=str(data["message"]))
    except (KeyError, AttributeError, ValueError) as e:
        raise ParseError(f"Invalid {kind} frame: {e!r}") from e

    raise ParseError(f"Unknown response type {kind!r}")


def parse_frame(frame: Union[bytes, bytearray, str]) -> ServerResponse:
    """Parse a websocket frame of either kind into a ServerResponse."""
    if isinstance(frame, (bytes, bytearray)):
        return deserialize_response(bytes(frame))
    if isinstance(frame, str):
        return parse_json_response(frame)
    raise ParseError(f"Unsupported frame type {type(frame).__name__}")
