"""
Loopback Tests against a real websockets server
===============================================

Test Coverage:
- Text frames reach recv() as bytes through a real Dialer
- Ping acknowledgments resolve and reach the pong handler
- Frames above max_message_size surface as ReceiveError
- Forced close aborts the socket even when the peer stopped reading
- Stop against a silent peer terminates without waiting for close_timeout
"""

import asyncio
import contextlib
import time
from unittest.mock import MagicMock

import pytest
from websockets.asyncio.server import serve as websocket_serve

from wsstream.core.exceptions import ReceiveError
from wsstream.infrastructure.config.settings import StreamSettings
from wsstream.infrastructure.stream.dialer import Dialer
from wsstream.infrastructure.stream.lifecycle import serve
from tests.fixtures.stream import wait_until

pytestmark = pytest.mark.integration


@contextlib.asynccontextmanager
async def loopback_server(handler):
    """Serve handler on an ephemeral 127.0.0.1 port and yield its ws:// URI."""
    async with websocket_serve(handler, "127.0.0.1", 0, ping_interval=None, close_timeout=0.2) as server:
        port = server.sockets[0].getsockname()[1]
        yield f"ws://127.0.0.1:{port}"


async def send_greeting(websocket):
    await websocket.send('{"e":"hello"}')
    await websocket.wait_closed()


async def send_oversize(websocket):
    await websocket.send("x" * 2048)
    await websocket.wait_closed()


async def stop_reading(websocket):
    # Peer goes silent: no pongs, no close frame
    websocket.transport.pause_reading()
    await websocket.wait_closed()


def loopback_settings(endpoint: str, **overrides) -> StreamSettings:
    values = {
        "endpoint": endpoint,
        "keepalive_enabled": False,
        "close_timeout_seconds": 3.0,
        "metrics_enabled": False,
    }
    values.update(overrides)
    return StreamSettings(**values)


class TestWebSocketTransportLoopback:

    @pytest.mark.asyncio
    async def test_text_frame_received_as_bytes(self, logger):
        async with loopback_server(send_greeting) as endpoint:
            transport = await Dialer(loopback_settings(endpoint), logger=logger).dial()

            assert await asyncio.wait_for(transport.recv(), timeout=2.0) == b'{"e":"hello"}'

            await transport.close()

    @pytest.mark.asyncio
    async def test_ping_acknowledgment_reaches_pong_handler(self, logger):
        async with loopback_server(send_greeting) as endpoint:
            transport = await Dialer(loopback_settings(endpoint), logger=logger).dial()
            on_pong = MagicMock()
            transport.set_pong_handler(on_pong)

            await transport.ping(deadline=1.0)
            await wait_until(lambda: on_pong.called, timeout=2.0)

            await transport.close()

    @pytest.mark.asyncio
    async def test_oversize_frame_raises_receive_error(self, logger):
        async with loopback_server(send_oversize) as endpoint:
            settings = loopback_settings(endpoint, max_message_size=1024)
            transport = await Dialer(settings, logger=logger).dial()

            with pytest.raises(ReceiveError):
                await asyncio.wait_for(transport.recv(), timeout=2.0)

            await transport.close(force=True)

    @pytest.mark.asyncio
    async def test_force_close_aborts_silent_peer(self, logger):
        async with loopback_server(stop_reading) as endpoint:
            transport = await Dialer(loopback_settings(endpoint), logger=logger).dial()

            started = time.monotonic()
            await transport.close(force=True)

            assert time.monotonic() - started < 0.5
            assert transport.websocket.transport.is_closing()
            with pytest.raises(ReceiveError):
                await asyncio.wait_for(transport.recv(), timeout=2.0)


class TestSessionLoopback:

    @pytest.mark.asyncio
    async def test_stop_with_silent_peer_is_prompt(self, logger):
        async with loopback_server(stop_reading) as endpoint:
            on_error = MagicMock()
            done, stop = await serve(loopback_settings(endpoint), MagicMock(), on_error, logger=logger)
            await asyncio.sleep(0.05)

            started = time.monotonic()
            stop.set()
            assert await done.wait_for(2.0)

            assert time.monotonic() - started < 0.5
            on_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_silent_peer_detected_by_liveness(self, logger):
        async with loopback_server(stop_reading) as endpoint:
            settings = loopback_settings(
                endpoint,
                keepalive_enabled=True,
                keepalive_interval_seconds=0.05,
                keepalive_timeout_seconds=0.15,
                reconnect_delay_seconds=0.05,
            )
            errors = []
            done, stop = await serve(settings, MagicMock(), errors.append, logger=logger)

            await wait_until(lambda: len(errors) >= 1, timeout=2.0)
            stop.set()
            assert await done.wait_for(2.0)

            assert isinstance(errors[0], ReceiveError)
