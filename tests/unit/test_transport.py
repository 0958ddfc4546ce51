"""
Unit Tests for WebSocketTransport
=================================

Test Coverage:
- Text frames delivered as UTF-8 bytes, binary frames unchanged
- Stream failures surface as ReceiveError
- Close happens once; a second close raises CloseError
- Forced close aborts the socket instead of waiting for the handshake
- Probe acknowledgments reach the pong handler
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from websockets.exceptions import ConnectionClosedError, ProtocolError

from wsstream.core.exceptions import CloseError, ReceiveError
from wsstream.infrastructure.stream.transport import WebSocketTransport


@pytest.fixture
def websocket():
    ws = AsyncMock()
    ws.close_code = None
    ws.transport = MagicMock()
    return ws


class TestReceive:

    @pytest.mark.asyncio
    async def test_text_frame_returned_as_utf8_bytes(self, websocket):
        websocket.recv.return_value = '{"e":"trade","p":"42.5"}'
        transport = WebSocketTransport(websocket, connection_id=3)

        assert await transport.recv() == b'{"e":"trade","p":"42.5"}'

    @pytest.mark.asyncio
    async def test_binary_frame_returned_unchanged(self, websocket):
        websocket.recv.return_value = b"\x00\x01\x02"
        transport = WebSocketTransport(websocket, connection_id=3)

        assert await transport.recv() == b"\x00\x01\x02"

    @pytest.mark.asyncio
    async def test_connection_closed_raises_receive_error(self, websocket):
        websocket.recv.side_effect = ConnectionClosedError(None, None)
        transport = WebSocketTransport(websocket, connection_id=3)

        with pytest.raises(ReceiveError) as exc_info:
            await transport.recv()

        assert exc_info.value.connection_id == 3
        assert isinstance(exc_info.value.__cause__, ConnectionClosedError)

    @pytest.mark.asyncio
    async def test_protocol_error_raises_receive_error(self, websocket):
        websocket.recv.side_effect = ProtocolError("bad frame")
        transport = WebSocketTransport(websocket, connection_id=3)

        with pytest.raises(ReceiveError):
            await transport.recv()


class TestClose:

    @pytest.mark.asyncio
    async def test_second_close_raises_close_error(self, websocket):
        transport = WebSocketTransport(websocket, connection_id=7)

        await transport.close()
        with pytest.raises(CloseError) as exc_info:
            await transport.close()

        assert transport.closed
        assert exc_info.value.connection_id == 7
        websocket.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_force_close_aborts_socket(self, websocket):
        transport = WebSocketTransport(websocket, connection_id=7)

        await transport.close(force=True)

        websocket.transport.abort.assert_called_once()
        websocket.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close_failure_raises_close_error(self, websocket):
        websocket.close.side_effect = OSError("socket gone")
        transport = WebSocketTransport(websocket, connection_id=7)

        with pytest.raises(CloseError):
            await transport.close()
        assert transport.closed

    @pytest.mark.asyncio
    async def test_wait_closed_returns_after_close(self, websocket):
        transport = WebSocketTransport(websocket, connection_id=7)
        waiter = asyncio.create_task(transport.wait_closed())
        await asyncio.sleep(0)
        assert not waiter.done()

        await transport.close()
        await asyncio.wait_for(waiter, timeout=0.5)


class TestProbe:

    @pytest.mark.asyncio
    async def test_acknowledgment_calls_pong_handler(self, websocket):
        loop = asyncio.get_running_loop()
        pong_waiter = loop.create_future()
        websocket.ping.return_value = pong_waiter
        transport = WebSocketTransport(websocket, connection_id=1)
        handler = MagicMock()
        transport.set_pong_handler(handler)

        await transport.ping(deadline=1.0)
        handler.assert_not_called()

        pong_waiter.set_result(0.004)
        await asyncio.sleep(0)
        handler.assert_called_once()

    @pytest.mark.asyncio
    async def test_failed_waiter_does_not_call_pong_handler(self, websocket):
        loop = asyncio.get_running_loop()
        pong_waiter = loop.create_future()
        websocket.ping.return_value = pong_waiter
        transport = WebSocketTransport(websocket, connection_id=1)
        handler = MagicMock()
        transport.set_pong_handler(handler)

        await transport.ping(deadline=1.0)
        pong_waiter.set_exception(ConnectionClosedError(None, None))
        await asyncio.sleep(0)

        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_probe_past_deadline_times_out(self, websocket):
        async def slow_ping():
            await asyncio.sleep(1.0)

        websocket.ping.side_effect = slow_ping
        transport = WebSocketTransport(websocket, connection_id=1)

        with pytest.raises(asyncio.TimeoutError):
            await transport.ping(deadline=0.01)
