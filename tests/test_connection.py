"""
Tests for nymethtx/mixnet/connection.py

Uses an in-process trio-websocket server standing in for nym-client.
"""

import pytest
import trio
from trio_websocket import serve_websocket

from nymethtx.errors import (
    ConnectionClosed,
    MixnetConnectionError,
    ParseError,
    ReceiveTimeout,
    SendError,
)
from nymethtx.mixnet import (
    ErrorResponse,
    MixnetConnection,
    ReceivedResponse,
    SelfAddressRequest,
    SelfAddressResponse,
)

from conftest import FakeWebSocket, TEST_RECIPIENT


async def start_nym_stub(nursery, handler):
    """Serve `handler` on a random local port, return its ws:// URL."""
    server = await nursery.start(serve_websocket, handler, "127.0.0.1", 0, None)
    return f"ws://127.0.0.1:{server.port}"


class TestMixnetConnection:
    """Tests against a websocket server."""

    @pytest.mark.trio
    async def test_request_and_responses(self, nursery):
        """Test a request goes out and binary and text responses come back."""
        requests = []

        async def handler(request):
            ws = await request.accept()
            requests.append(await ws.get_message())
            await ws.send_message(SelfAddressResponse(address=TEST_RECIPIENT).serialize())
            await ws.send_message('{"type": "error", "message": "boom"}')
            await ws.aclose()

        url = await start_nym_stub(nursery, handler)

        async with MixnetConnection(url) as conn:
            assert conn.connected is True
            await conn.send(SelfAddressRequest())

            first = await conn.receive()
            second = await conn.receive()
            with pytest.raises(ConnectionClosed):
                await conn.receive()

        assert requests == [b"\x02"]
        assert first == SelfAddressResponse(address=TEST_RECIPIENT)
        assert isinstance(second, ErrorResponse)
        assert second.message == "boom"
        assert conn.connected is False

    @pytest.mark.trio
    async def test_text_request(self, nursery):
        requests = []

        async def handler(request):
            ws = await request.accept()
            requests.append(await ws.get_message())
            await ws.aclose()

        url = await start_nym_stub(nursery, handler)

        async with MixnetConnection(url) as conn:
            await conn.send(SelfAddressRequest(), binary=False)
            with pytest.raises(ConnectionClosed):
                await conn.receive()

        assert requests == ['{"type": "selfAddress"}']

    @pytest.mark.trio
    async def test_connection_refused(self):
        """Unreachable Nym client raises MixnetConnectionError."""
        conn = MixnetConnection("ws://127.0.0.1:1", connect_timeout=2.0)
        with pytest.raises(MixnetConnectionError):
            await conn.connect()
        assert conn.connected is False

    @pytest.mark.trio
    async def test_receive_timeout(self, nursery):
        """A silent Nym client produces ReceiveTimeout, connection stays usable."""
        async def handler(request):
            ws = await request.accept()
            await trio.sleep(0.5)
            await ws.send_message(ReceivedResponse(message=b"\xff\x01").serialize())
            await trio.sleep_forever()

        url = await start_nym_stub(nursery, handler)

        async with MixnetConnection(url, receive_timeout=0.05) as conn:
            with pytest.raises(ReceiveTimeout):
                await conn.receive()
            assert conn.connected is True

            conn.receive_timeout = 5.0
            response = await conn.receive()

        assert response.message == b"\xff\x01"


class TestMixnetConnectionWrapped:
    """Tests using an in-memory websocket."""

    @pytest.mark.trio
    async def test_parse_error_counts_dropped(self):
        ws = FakeWebSocket([b"\x09garbage", b"\x02" + TEST_RECIPIENT.to_bytes()])
        conn = MixnetConnection.from_websocket(ws)

        with pytest.raises(ParseError):
            await conn.receive()
        assert (await conn.receive()).address == TEST_RECIPIENT

        stats = conn.get_stats()
        assert stats["frames_received"] == 2
        assert stats["frames_dropped"] == 1

    @pytest.mark.trio
    async def test_send_after_close(self):
        conn = MixnetConnection.from_websocket(FakeWebSocket())
        await conn.close()

        with pytest.raises(SendError):
            await conn.send(SelfAddressRequest())

    @pytest.mark.trio
    async def test_send_on_closed_socket(self):
        ws = FakeWebSocket()
        ws.closed = True
        conn = MixnetConnection.from_websocket(ws)

        with pytest.raises(SendError):
            await conn.send(SelfAddressRequest())

    @pytest.mark.trio
    async def test_close_after_failed_send(self):
        """A failed write still lets close() release the websocket."""
        ws = FakeWebSocket()

        async def broken_send(message):
            raise OSError("broken pipe")

        ws.send_message = broken_send
        conn = MixnetConnection.from_websocket(ws)

        with pytest.raises(SendError):
            await conn.send(SelfAddressRequest())
        await conn.close()

        assert ws.closed is True
        assert conn.connected is False

    @pytest.mark.trio
    async def test_close_is_idempotent(self):
        ws = FakeWebSocket()
        conn = MixnetConnection.from_websocket(ws)

        await conn.close()
        await conn.close()
        assert ws.closed is True

    @pytest.mark.trio
    async def test_close_unused_connection(self):
        """Closing a never-opened connection is a no-op."""
        conn = MixnetConnection("ws://127.0.0.1:1")
        await conn.close()
        assert conn.connected is False

    @pytest.mark.trio
    async def test_receive_when_not_connected(self):
        with pytest.raises(ConnectionClosed):
            await MixnetConnection().receive()

    def test_repr(self):
        assert "disconnected" in repr(MixnetConnection("ws://x"))
