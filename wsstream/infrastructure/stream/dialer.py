"""
Stream Dialer - Open one transport against the configured endpoint
==================================================================
Single attempt per call; retry policy belongs to the session loop.
"""

import asyncio
import time
from typing import Optional

import websockets

from ...core.exceptions import DialError
from ...core.logger import StructuredLogger, get_logger
from ..config.settings import StreamSettings
from ..monitoring.prometheus_metrics import StreamMetrics, disabled_metrics
from .liveness import LivenessMonitor
from .transport import Transport, WebSocketTransport


class Dialer:
    """Creates WebSocketTransports and binds a LivenessMonitor to each one."""

    def __init__(
        self,
        settings: StreamSettings,
        logger: Optional[StructuredLogger] = None,
        metrics: Optional[StreamMetrics] = None,
    ):
        self.settings = settings
        self.logger = logger or get_logger(__name__)
        self.metrics = metrics or disabled_metrics(settings.endpoint)
        self._connection_counter = 0

        if settings.endpoint.startswith("ws://"):
            self.logger.warning("stream_dialer.unencrypted_connection", {
                "url": settings.endpoint,
                "recommendation": "Use wss:// for production"
            })

    async def dial(self, use_proxy: bool = True) -> Transport:
        """
        Open a new transport.

        Args:
            use_proxy: route through settings.proxy_url when one is configured

        Returns:
            Open transport, with liveness monitoring running if enabled

        Raises:
            DialError: connection, proxy or handshake failure, or open timeout
        """
        proxy = self.settings.effective_proxy if use_proxy else None
        connection_id = self._connection_counter
        self._connection_counter += 1
        start_time = time.time()

        try:
            # Built-in websockets keepalive is off: LivenessMonitor owns liveness
            websocket = await websockets.connect(
                self.settings.endpoint,
                proxy=proxy,
                max_size=self.settings.max_message_size,
                ping_interval=None,
                ping_timeout=None,
                open_timeout=self.settings.open_timeout_seconds,
                close_timeout=self.settings.close_timeout_seconds,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.metrics.dial_attempt(success=False)
            self.logger.warning("stream_dialer.dial_failed", {
                "connection_id": connection_id,
                "url": self.settings.endpoint,
                "via_proxy": proxy is not None,
                "error": str(e),
                "error_type": type(e).__name__,
                "elapsed_ms": round((time.time() - start_time) * 1000, 2)
            })
            raise DialError(self.settings.endpoint, f"{type(e).__name__}: {e}", via_proxy=proxy is not None) from e

        transport = WebSocketTransport(websocket, connection_id)
        self.metrics.dial_attempt(success=True)

        if self.settings.keepalive_enabled:
            LivenessMonitor(
                transport,
                interval=self.settings.keepalive_interval_seconds,
                timeout=self.settings.keepalive_timeout_seconds,
                probe_deadline=self.settings.probe_deadline_seconds,
                logger=self.logger,
                metrics=self.metrics,
            ).start()

        self.logger.info("stream_dialer.connection_created", {
            "connection_id": connection_id,
            "url": self.settings.endpoint,
            "via_proxy": proxy is not None,
            "max_message_size": self.settings.max_message_size,
            "keepalive_enabled": self.settings.keepalive_enabled,
            "elapsed_ms": round((time.time() - start_time) * 1000, 2)
        })
        return transport
