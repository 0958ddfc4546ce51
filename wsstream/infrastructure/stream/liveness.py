"""
Liveness Monitor - Detect silently dead peers
=============================================

The transport can look healthy while the peer has stopped responding. The
monitor probes on a fixed interval and force-closes the transport when no
acknowledgment has arrived within the timeout; the session loop then sees a
receive failure and reconnects.

A monitor is bound to one transport for its whole life. It only ever closes
that transport and stops as soon as anyone closes it.
"""

import asyncio
import time
from typing import Optional

from ...core.exceptions import CloseError
from ...core.logger import StructuredLogger, get_logger
from ..monitoring.prometheus_metrics import StreamMetrics, disabled_metrics
from .transport import Transport


class LivenessState:
    """Time of the last confirmed peer response (monotonic clock)."""

    def __init__(self):
        self.last_response = time.monotonic()

    def touch(self) -> None:
        self.last_response = time.monotonic()

    def age(self) -> float:
        return time.monotonic() - self.last_response


class LivenessMonitor:
    """Probe/acknowledge watchdog for a single transport."""

    def __init__(
        self,
        transport: Transport,
        interval: float,
        timeout: float,
        probe_deadline: float = 10.0,
        logger: Optional[StructuredLogger] = None,
        metrics: Optional[StreamMetrics] = None,
    ):
        self.transport = transport
        self.interval = interval
        self.timeout = timeout
        self.probe_deadline = probe_deadline
        self.logger = logger or get_logger(__name__)
        self.metrics = metrics or disabled_metrics()
        self.state = LivenessState()
        self.timed_out = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Bind the pong handler and start the probe loop."""
        if self._task is not None:
            return self._task
        self.transport.set_pong_handler(self.state.touch)
        self.transport.monitor = self
        self._task = asyncio.create_task(
            self._run(), name=f"liveness_{self.transport.connection_id}"
        )
        return self._task

    async def join(self) -> None:
        """Wait for the probe loop to finish."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self) -> None:
        connection_id = self.transport.connection_id
        self.logger.debug("liveness_monitor.started", {
            "connection_id": connection_id,
            "interval_seconds": self.interval,
            "timeout_seconds": self.timeout
        })

        try:
            while not self.transport.closed:
                try:
                    await self.transport.ping(self.probe_deadline)
                except Exception as e:
                    # The session loop observes the broken transport through recv()
                    self.logger.debug("liveness_monitor.probe_failed", {
                        "connection_id": connection_id,
                        "error": str(e),
                        "error_type": type(e).__name__
                    })
                    return

                if await self._wait_interval_or_close():
                    return

                response_age = self.state.age()
                if response_age > self.timeout:
                    await self._force_close(response_age)
                    return
        finally:
            self.logger.debug("liveness_monitor.stopped", {
                "connection_id": connection_id,
                "timed_out": self.timed_out
            })

    async def _wait_interval_or_close(self) -> bool:
        """Sleep one interval. Returns True if the transport closed meanwhile."""
        try:
            await asyncio.wait_for(self.transport.wait_closed(), timeout=self.interval)
        except asyncio.TimeoutError:
            return self.transport.closed
        return True

    async def _force_close(self, response_age: float) -> None:
        self.timed_out = True
        self.metrics.liveness_timeout()
        self.logger.warning("liveness_monitor.peer_unresponsive", {
            "connection_id": self.transport.connection_id,
            "last_response_age_seconds": round(response_age, 3),
            "timeout_seconds": self.timeout,
            "action": "closing_connection"
        })
        try:
            await self.transport.close(force=True)
        except CloseError as e:
            self.logger.debug("liveness_monitor.close_failed", {
                "connection_id": self.transport.connection_id,
                "error": str(e)
            })
