"""
Stream Lifecycle - Public start/stop surface
============================================

    done, stop = await serve(settings, on_message, on_error)
    ...
    stop.set()
    await done.wait()

The first dial happens before anything is started, so a bad endpoint fails
fast with DialError. After that, transport failures never surface as
exceptions: they go to the error handler and the session reconnects until
stopped.
"""

import asyncio
from typing import Optional, Set, Tuple

from ...core.logger import StructuredLogger, get_logger
from ...core.signals import OneShotSignal
from ..config.settings import StreamSettings
from ..monitoring.prometheus_metrics import StreamMetrics
from .dialer import Dialer
from .session import (
    ErrorHandler,
    MessageHandler,
    ReconnectHandler,
    SessionState,
    StreamSession,
)

# Sessions started through serve() must stay referenced until they finish:
# the event loop only keeps weak references to tasks.
_active_tasks: Set[asyncio.Task] = set()


class StreamClient:
    """Starts one StreamSession and exposes its stop/done signals."""

    def __init__(
        self,
        settings: StreamSettings,
        message_handler: MessageHandler,
        error_handler: ErrorHandler,
        logger: Optional[StructuredLogger] = None,
        dialer: Optional[Dialer] = None,
        metrics: Optional[StreamMetrics] = None,
        reconnect_handler: Optional[ReconnectHandler] = None,
    ):
        self.settings = settings
        self.message_handler = message_handler
        self.error_handler = error_handler
        self.reconnect_handler = reconnect_handler
        self.logger = logger or get_logger(__name__)
        self.metrics = metrics or StreamMetrics(settings.endpoint, enabled=settings.metrics_enabled)
        self.dialer = dialer or Dialer(settings, logger=self.logger, metrics=self.metrics)

        self.done: Optional[OneShotSignal] = None
        self.stop_signal: Optional[OneShotSignal] = None
        self.session: Optional[StreamSession] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> Optional[SessionState]:
        return self.session.state if self.session else None

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    async def start(self) -> Tuple[OneShotSignal, OneShotSignal]:
        """
        Dial once and launch the session loop.

        Returns:
            (done, stop): set stop to request shutdown, wait on done for it

        Raises:
            DialError: the initial dial failed; nothing was started
            RuntimeError: start() was already called
        """
        if self._task is not None:
            raise RuntimeError("StreamClient already started")

        self.logger.info("stream_client.starting", {
            "url": self.settings.endpoint,
            "via_proxy": self.settings.effective_proxy is not None
        })

        transport = await self.dialer.dial(use_proxy=self.settings.use_proxy)

        self.done = OneShotSignal("done")
        self.stop_signal = OneShotSignal("stop")
        self.session = StreamSession(
            dialer=self.dialer,
            transport=transport,
            message_handler=self.message_handler,
            error_handler=self.error_handler,
            stop_signal=self.stop_signal,
            done_signal=self.done,
            reconnect_delay=self.settings.reconnect_delay_seconds,
            use_proxy=self.settings.use_proxy,
            logger=self.logger,
            metrics=self.metrics,
            reconnect_handler=self.reconnect_handler,
        )
        self._task = asyncio.create_task(self.session.run(), name="stream_session")
        _active_tasks.add(self._task)
        self._task.add_done_callback(_active_tasks.discard)

        self.logger.info("stream_client.started", {
            "connection_id": transport.connection_id
        })
        return self.done, self.stop_signal

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Request shutdown and wait until the session has terminated."""
        if self._task is None:
            return
        self.stop_signal.set()
        await asyncio.wait_for(self.done.wait(), timeout=timeout)
        await asyncio.gather(self._task, return_exceptions=True)

    async def __aenter__(self) -> 'StreamClient':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()


async def serve(
    settings: StreamSettings,
    message_handler: MessageHandler,
    error_handler: ErrorHandler,
    logger: Optional[StructuredLogger] = None,
    dialer: Optional[Dialer] = None,
    metrics: Optional[StreamMetrics] = None,
    reconnect_handler: Optional[ReconnectHandler] = None,
) -> Tuple[OneShotSignal, OneShotSignal]:
    """
    Start a resilient streaming session.

    Returns:
        (done, stop) one-shot signals

    Raises:
        DialError: the initial dial failed
    """
    client = StreamClient(
        settings,
        message_handler,
        error_handler,
        logger=logger,
        dialer=dialer,
        metrics=metrics,
        reconnect_handler=reconnect_handler,
    )
    return await client.start()
