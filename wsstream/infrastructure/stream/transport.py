"""
Stream Transport - One live duplex message stream
=================================================

Transport is the port the session loop and the liveness monitor talk to.
WebSocketTransport adapts a `websockets` client connection to it.

Close bookkeeping lives in the base class: an instance is marked closed
before any await, so a second closer (liveness monitor, stop observer,
session loop) sees it immediately and gets CloseError instead of a second
close handshake.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Optional, TYPE_CHECKING

from websockets.exceptions import ConnectionClosed, WebSocketException

from ...core.exceptions import CloseError, ReceiveError

if TYPE_CHECKING:
    from .liveness import LivenessMonitor


class Transport(ABC):
    """Interface for a single full-duplex message stream."""

    def __init__(self, connection_id: int):
        self.connection_id = connection_id
        self.monitor: Optional['LivenessMonitor'] = None
        self._closed = False
        self._closed_event = asyncio.Event()
        self._pong_handler: Optional[Callable[[], None]] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @abstractmethod
    async def recv(self) -> bytes:
        """
        Block until the next message arrives.

        Raises:
            ReceiveError: the stream failed or was closed
        """
        pass

    @abstractmethod
    async def _send_probe(self) -> None:
        """Send one liveness probe frame. Acknowledgments go to _notify_pong()."""
        pass

    @abstractmethod
    async def _close_impl(self, force: bool) -> None:
        """Release the underlying connection."""
        pass

    def set_pong_handler(self, handler: Optional[Callable[[], None]]) -> None:
        self._pong_handler = handler

    def _notify_pong(self) -> None:
        if self._pong_handler is not None and not self._closed:
            self._pong_handler()

    async def ping(self, deadline: float) -> None:
        """Send a liveness probe, failing if it cannot be written within deadline."""
        await asyncio.wait_for(self._send_probe(), timeout=deadline)

    async def close(self, force: bool = False) -> None:
        """
        Close the transport. Only the first call does anything.

        Args:
            force: drop the connection without waiting for the close handshake

        Raises:
            CloseError: already closed, or the close itself failed
        """
        if self._closed:
            raise CloseError(self.connection_id)
        self._closed = True
        self._closed_event.set()
        await self._close_impl(force)

    async def wait_closed(self) -> None:
        await self._closed_event.wait()


class WebSocketTransport(Transport):
    """Transport over a `websockets` ClientConnection."""

    def __init__(self, websocket, connection_id: int):
        super().__init__(connection_id)
        self.websocket = websocket

    async def recv(self) -> bytes:
        try:
            message = await self.websocket.recv()
        except ConnectionClosed as e:
            code = e.rcvd.code if e.rcvd is not None else None
            raise ReceiveError(self.connection_id, f"connection closed (code={code})") from e
        except (WebSocketException, OSError) as e:
            raise ReceiveError(self.connection_id, f"{type(e).__name__}: {e}") from e

        if isinstance(message, str):
            return message.encode('utf-8')
        return bytes(message)

    async def _send_probe(self) -> None:
        pong_waiter = await self.websocket.ping()
        if isinstance(pong_waiter, asyncio.Future):
            pong_waiter.add_done_callback(self._on_pong_waiter_done)

    def _on_pong_waiter_done(self, waiter: asyncio.Future) -> None:
        # Waiters fail with ConnectionClosed when the connection drops first
        if waiter.cancelled() or waiter.exception() is not None:
            return
        self._notify_pong()

    async def _close_impl(self, force: bool) -> None:
        if force:
            # A silent peer will never answer the close handshake
            raw_transport = getattr(self.websocket, 'transport', None)
            if raw_transport is not None:
                raw_transport.abort()
                return
        try:
            await self.websocket.close()
        except (WebSocketException, OSError) as e:
            raise CloseError(self.connection_id, f"{type(e).__name__}: {e}") from e
