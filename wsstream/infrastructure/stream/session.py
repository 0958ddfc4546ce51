"""
Stream Session - Read loop, failure classification and reconnect
================================================================

States:
    READING       blocked in transport.recv(), dispatching each message
    RECONNECTING  stale transport closed, waiting/redialing until success
    STOPPING      stop signal observed at the failure decision point
    TERMINATED    completion signal set, every transport closed

Stop is delivered by force-closing the active transport: recv() cannot be
interrupted any other way, and a silent peer never answers a close
handshake. The stop observer sets nothing itself; the caller's stop signal
is already set when it closes the transport, so the resulting receive
failure is classified as stop-driven.
"""

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from ...core.exceptions import CloseError, DialError
from ...core.logger import StructuredLogger, get_logger
from ...core.signals import OneShotSignal
from ..monitoring.prometheus_metrics import StreamMetrics, disabled_metrics
from .dialer import Dialer
from .transport import Transport

MessageHandler = Callable[[bytes], Union[None, Awaitable[None]]]
ErrorHandler = Callable[[Exception], Union[None, Awaitable[None]]]
ReconnectHandler = Callable[[int, Optional[Exception]], Union[None, Awaitable[None]]]


class SessionState(str, Enum):
    """Session loop states"""
    READING = "reading"
    RECONNECTING = "reconnecting"
    STOPPING = "stopping"
    TERMINATED = "terminated"


class StreamSession:
    """
    Owns the active transport for one logical session.

    Only this class replaces the active transport. Liveness monitors close
    the transport they were bound to and nothing else.
    """

    def __init__(
        self,
        dialer: Dialer,
        transport: Transport,
        message_handler: MessageHandler,
        error_handler: ErrorHandler,
        stop_signal: OneShotSignal,
        done_signal: OneShotSignal,
        reconnect_delay: float = 1.0,
        use_proxy: bool = True,
        logger: Optional[StructuredLogger] = None,
        metrics: Optional[StreamMetrics] = None,
        reconnect_handler: Optional[ReconnectHandler] = None,
    ):
        self.dialer = dialer
        self.message_handler = message_handler
        self.error_handler = error_handler
        self.reconnect_handler = reconnect_handler
        self.stop_signal = stop_signal
        self.done_signal = done_signal
        self.reconnect_delay = reconnect_delay
        self.use_proxy = use_proxy
        self.logger = logger or get_logger(__name__)
        self.metrics = metrics or disabled_metrics()

        self.state = SessionState.READING
        self.reconnect_count = 0
        self._transport: Optional[Transport] = transport

    @property
    def transport(self) -> Optional[Transport]:
        return self._transport

    async def run(self) -> None:
        """Read until a stop is requested. Sets the done signal exactly once on exit."""
        observer = asyncio.create_task(self._observe_stop(), name="stream_session_stop_observer")
        self.metrics.set_connected(True)
        self.logger.info("stream_session.started", {
            "connection_id": self._transport.connection_id
        })

        try:
            while True:
                try:
                    payload = await self._transport.recv()
                except Exception as e:
                    if self.stop_signal.is_set():
                        self.state = SessionState.STOPPING
                        self.logger.info("stream_session.stopping", {
                            "connection_id": self._transport.connection_id
                        })
                        return

                    self.metrics.receive_error()
                    self.metrics.set_connected(False)
                    self.logger.warning("stream_session.receive_failed", {
                        "connection_id": self._transport.connection_id,
                        "error": str(e),
                        "error_type": type(e).__name__
                    })
                    await self._invoke("error_handler", self.error_handler, e)

                    if not await self._reconnect():
                        self.state = SessionState.STOPPING
                        return
                    continue

                self.metrics.message_received()
                await self._invoke("message_handler", self.message_handler, payload)
        finally:
            observer.cancel()
            await asyncio.gather(observer, return_exceptions=True)
            await self._release_transport()
            self.metrics.set_connected(False)
            self.state = SessionState.TERMINATED
            self.logger.info("stream_session.terminated", {
                "reconnect_count": self.reconnect_count
            })
            self.done_signal.set()

    async def _observe_stop(self) -> None:
        """Wait for the stop signal, then unblock recv() by force-closing the active transport."""
        await self.stop_signal.wait()
        self.logger.info("stream_session.stop_requested", {
            "state": self.state.value
        })
        transport = self._transport
        if transport is not None and not transport.closed:
            await self._close_quietly(transport, "stop_requested", force=True)

    async def _reconnect(self) -> bool:
        """
        Close the stale transport, then wait-and-redial until a dial succeeds.

        Returns:
            True with a new active transport, False if a stop was requested
        """
        self.state = SessionState.RECONNECTING
        stale = self._transport
        await self._close_quietly(stale, "reconnect")

        attempt = 0
        while True:
            # Interruptible backoff: a stop ends the wait immediately
            if await self.stop_signal.wait_for(self.reconnect_delay):
                return False

            attempt += 1
            self.logger.info("stream_session.redial_attempt", {
                "old_connection_id": stale.connection_id,
                "attempt": attempt
            })

            try:
                transport = await self._dial_unless_stopped()
            except DialError as e:
                self.logger.warning("stream_session.redial_failed", {
                    "old_connection_id": stale.connection_id,
                    "attempt": attempt,
                    "error": str(e),
                    "next_attempt_in": self.reconnect_delay
                })
                await self._invoke("reconnect_handler", self.reconnect_handler, attempt, e)
                continue

            if transport is None:
                return False

            self._transport = transport
            self.state = SessionState.READING
            self.reconnect_count += 1
            self.metrics.reconnected()
            self.metrics.set_connected(True)
            self.logger.info("stream_session.redial_succeeded", {
                "old_connection_id": stale.connection_id,
                "new_connection_id": transport.connection_id,
                "attempt": attempt
            })
            await self._invoke("reconnect_handler", self.reconnect_handler, attempt, None)

            if self.stop_signal.is_set():
                # Stop arrived while the handler ran; the observer already passed
                return False
            return True

    async def _dial_unless_stopped(self) -> Optional[Transport]:
        """
        Dial, abandoning the attempt if the stop signal fires first.

        Returns:
            New transport, or None if stopped

        Raises:
            DialError: the dial failed before any stop
        """
        dial_task = asyncio.create_task(self.dialer.dial(use_proxy=self.use_proxy), name="stream_session_redial")
        stop_task = asyncio.create_task(self.stop_signal.wait(), name="stream_session_redial_stop")
        try:
            await asyncio.wait({dial_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_task.cancel()
            if not dial_task.done():
                dial_task.cancel()
            await asyncio.wait({dial_task, stop_task})

        if dial_task.cancelled():
            return None

        error = dial_task.exception()
        if error is not None:
            if self.stop_signal.is_set():
                return None
            raise error

        transport = dial_task.result()
        if self.stop_signal.is_set():
            await self._close_quietly(transport, "stopped_during_dial", force=True)
            await self._join_monitor(transport)
            return None
        return transport

    async def _release_transport(self) -> None:
        transport = self._transport
        if transport is None:
            return
        if not transport.closed:
            await self._close_quietly(transport, "terminated", force=True)
        await self._join_monitor(transport)

    async def _join_monitor(self, transport: Transport) -> None:
        if transport.monitor is not None:
            await transport.monitor.join()

    async def _close_quietly(self, transport: Transport, reason: str, force: bool = False) -> None:
        try:
            await transport.close(force=force)
        except CloseError as e:
            self.logger.debug("stream_session.close_failed", {
                "connection_id": transport.connection_id,
                "reason": reason,
                "error": str(e)
            })
        except Exception as e:
            self.logger.warning("stream_session.close_unexpected_error", {
                "connection_id": transport.connection_id,
                "reason": reason,
                "error": str(e),
                "error_type": type(e).__name__
            })

    async def _invoke(self, name: str, handler: Optional[Callable[..., Any]], *args: Any) -> None:
        """Run a caller callback. Its exceptions are logged and never reach the loop."""
        if handler is None:
            return
        try:
            result = handler(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.metrics.handler_error(name)
            self.logger.error("stream_session.handler_error", {
                "handler": name,
                "error": str(e),
                "error_type": type(e).__name__
            }, exc_info=True)
