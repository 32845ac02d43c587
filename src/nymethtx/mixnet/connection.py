"""
nymethtx/mixnet/connection.py

Websocket connection to a local Nym client.
"""

from contextlib import AsyncExitStack
from typing import Any, Dict, Optional
import logging

import trio
from trio_websocket import (
    ConnectionClosed as WebSocketClosed,
    HandshakeError,
    open_websocket_url,
)

from ..config import DEFAULT_NYM_CLIENT_ENDPOINT
from ..errors import (
    CloseError,
    ConnectionClosed,
    MixnetConnectionError,
    ParseError,
    ReceiveTimeout,
    SendError,
)
from .messages import ClientRequest, ServerResponse, parse_frame

logger = logging.getLogger("nymethtx.mixnet.connection")


class MixnetConnection:
    """
    Duplex channel to a Nym websocket client.

    No reconnection is attempted; a closed connection stays closed and the
    owner has to build a new one.

    Example:
        async with MixnetConnection("ws://localhost:1977") as conn:
            await conn.send(SelfAddressRequest())
            response = await conn.receive()
    """

    DEFAULT_CONNECT_TIMEOUT = 60.0  # seconds
    DEFAULT_DISCONNECT_TIMEOUT = 5.0

    def __init__(
        self,
        url: str = DEFAULT_NYM_CLIENT_ENDPOINT,
        receive_timeout: Optional[float] = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        disconnect_timeout: float = DEFAULT_DISCONNECT_TIMEOUT,
    ):
        """
        Args:
            url: Websocket URL of the Nym client
            receive_timeout: Seconds to wait for a frame (None: forever)
            connect_timeout: Seconds allowed for the websocket handshake
            disconnect_timeout: Seconds allowed for the closing handshake
        """
        self.url = url
        self.receive_timeout = receive_timeout
        self.connect_timeout = connect_timeout
        self.disconnect_timeout = disconnect_timeout

        self._ws = None
        self._stack: Optional[AsyncExitStack] = None
        self._closed = False

        # Stats
        self._frames_sent = 0
        self._frames_received = 0
        self._frames_dropped = 0

    @classmethod
    def from_websocket(cls, ws, url: str = "", **kwargs) -> "MixnetConnection":
        """
        Wrap an already open websocket.

        Useful when the websocket lives in a caller-owned nursery
        (trio_websocket.connect_websocket_url). The caller stays responsible
        for the nursery; close() only closes the websocket.
        """
        conn = cls(url=url, **kwargs)
        conn._ws = ws
        return conn

    @property
    def connected(self) -> bool:
        """Whether the websocket is open."""
        return self._ws is not None and not self._closed

    async def connect(self) -> "MixnetConnection":
        """
        Open the websocket.

        Raises:
            MixnetConnectionError: if the Nym client is unreachable or the
                handshake fails
        """
        if self._closed:
            raise MixnetConnectionError("Connection already closed")
        if self._ws is not None:
            return self

        stack = AsyncExitStack()
        try:
            self._ws = await stack.enter_async_context(
                open_websocket_url(
                    self.url,
                    connect_timeout=self.connect_timeout,
                    disconnect_timeout=self.disconnect_timeout,
                )
            )
        except Exception as e:
            await stack.aclose()
            logger.error(f"Connection failed to {self.url}: {e}")
            raise MixnetConnectionError(f"Cannot connect to {self.url}: {e}") from e

        self._stack = stack
        logger.debug(f"Websocket connection established to {self.url}")
        return self

    async def send(self, request: ClientRequest, binary: bool = True) -> None:
        """
        Send a request as a binary (default) or text frame.

        Raises:
            SendError: if the connection is closed or the write fails
        """
        if not self.connected:
            raise SendError("Cannot send: not connected")

        frame = request.serialize() if binary else request.to_json()
        try:
            await self._ws.send_message(frame)
        except (WebSocketClosed, OSError) as e:
            self._closed = True
            raise SendError(f"Failed to send {type(request).__name__}: {e}") from e

        self._frames_sent += 1

    async def receive(self) -> ServerResponse:
        """
        Wait for the next frame and parse it.

        Raises:
            ConnectionClosed: when the websocket was closed
            ReceiveTimeout: when receive_timeout elapsed without a frame
            ParseError: when the frame is not a valid response
        """
        if not self.connected:
            raise ConnectionClosed("Cannot receive: not connected")

        try:
            if self.receive_timeout is None:
                frame = await self._ws.get_message()
            else:
                with trio.fail_after(self.receive_timeout):
                    frame = await self._ws.get_message()
        except trio.TooSlowError as e:
            raise ReceiveTimeout(
                f"No frame received within {self.receive_timeout}s"
            ) from e
        except WebSocketClosed as e:
            self._closed = True
            raise ConnectionClosed(f"Websocket closed: {e.reason}") from e

        self._frames_received += 1
        try:
            return parse_frame(frame)
        except ParseError:
            self._frames_dropped += 1
            raise

    async def close(self) -> None:
        """
        Close the websocket. Safe to call more than once.

        Raises:
            CloseError: on an unexpected transport error while closing
        """
        ws, stack = self._ws, self._stack
        self._closed = True
        self._ws = None
        self._stack = None
        if ws is None:
            return

        try:
            await ws.aclose()
            if stack is not None:
                await stack.aclose()
        except (WebSocketClosed, OSError, HandshakeError) as e:
            raise CloseError(f"Failed to close {self.url}: {e}") from e
        logger.debug(f"Websocket connection to {self.url} closed")

    async def __aenter__(self) -> "MixnetConnection":
        return await self.connect()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def get_stats(self) -> Dict[str, Any]:
        """Get connection statistics."""
        return {
            "url": self.url,
            "connected": self.connected,
            "frames_sent": self._frames_sent,
            "frames_received": self._frames_received,
            "frames_dropped": self._frames_dropped,
        }

    def __repr__(self) -> str:
        status = "connected" if self.connected else "disconnected"
        return f"MixnetConnection({self.url}, {status})"
