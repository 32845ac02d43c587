"""
nymethtx/errors.py

Exception hierarchy shared by the relay client and server.

Fatal vs non-fatal is decided by the caller:
- RelayClient propagates everything to its caller.
- RelayServer only stops on ConnectionClosed (or another transport error
  that is not a ReceiveTimeout); every other error is logged and skipped.
"""


class RelayError(Exception):
    """Base class for all nymethtx errors."""
    pass


class UnknownNetwork(RelayError, ValueError):
    """Raised when a network name cannot be resolved."""
    pass


class MalformedPayload(RelayError):
    """Raised when a relay payload or raw transaction cannot be decoded."""
    pass


class SigningError(RelayError):
    """Raised when a transaction draft cannot be filled or signed."""
    pass


class SubmissionError(RelayError):
    """Raised when the chain node rejects or fails a raw transaction submission."""

    def __init__(self, message: str, network=None):
        super().__init__(message)
        self.network = network


class NoReceiptError(RelayError):
    """Raised when a submitted transaction yields no receipt."""

    def __init__(self, message: str, tx_hash: str = "", network=None):
        super().__init__(message)
        self.tx_hash = tx_hash
        self.network = network


# ============================================================================
# MIXNET TRANSPORT
# ============================================================================

class MixnetError(RelayError):
    """Base class for errors of the mixnet websocket transport."""
    pass


class MixnetConnectionError(MixnetError):
    """Raised when the local mixnet client cannot be reached."""
    pass


class SendError(MixnetError):
    """Raised when a request cannot be written to the mixnet client."""
    pass


class RecvError(MixnetError):
    """Raised when reading from the mixnet client fails."""
    pass


class ConnectionClosed(RecvError):
    """Raised when the mixnet client closed the websocket."""
    pass


class ReceiveTimeout(RecvError):
    """Raised when no frame arrived within the configured receive timeout."""
    pass


class ParseError(MixnetError):
    """Raised when a transport frame cannot be deserialized."""
    pass


class CloseError(MixnetError):
    """Raised when closing the websocket fails unexpectedly."""
    pass
