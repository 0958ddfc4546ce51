"""
Prometheus Metrics for Streaming Sessions
=========================================

Metrics are created once at module level to avoid duplicate registration in
the default Prometheus registry. StreamMetrics binds them to one endpoint.

Redial attempts are counted here because the session loop retries them
silently (no caller notification other than the optional reconnect handler).
"""

import logging
from typing import Optional

from prometheus_client import Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)


# ==================== MODULE-LEVEL METRICS ====================

messages_received_total = Counter(
    'wsstream_messages_received_total',
    'Messages received and delivered to the message handler',
    ['endpoint']
)

receive_errors_total = Counter(
    'wsstream_receive_errors_total',
    'Unexpected receive failures (not caused by a stop request)',
    ['endpoint']
)

handler_errors_total = Counter(
    'wsstream_handler_errors_total',
    'Exceptions raised by caller-supplied handlers',
    ['endpoint', 'handler']
)

dial_attempts_total = Counter(
    'wsstream_dial_attempts_total',
    'Dial attempts by outcome',
    ['endpoint', 'outcome']
)

reconnects_total = Counter(
    'wsstream_reconnects_total',
    'Successful reconnections after a receive failure',
    ['endpoint']
)

liveness_timeouts_total = Counter(
    'wsstream_liveness_timeouts_total',
    'Transports force-closed because the peer stopped acknowledging probes',
    ['endpoint']
)

connected = Gauge(
    'wsstream_connected',
    'Whether a transport is currently open (1) or not (0)',
    ['endpoint']
)


class StreamMetrics:
    """
    Metric recorder bound to a single endpoint.

    A disabled instance accepts every call and records nothing, so callers
    never need to branch on whether metrics are on.
    """

    def __init__(self, endpoint: str, enabled: bool = True):
        self.endpoint = endpoint
        self.enabled = enabled

    def message_received(self) -> None:
        if self.enabled:
            messages_received_total.labels(endpoint=self.endpoint).inc()

    def receive_error(self) -> None:
        if self.enabled:
            receive_errors_total.labels(endpoint=self.endpoint).inc()

    def handler_error(self, handler: str) -> None:
        if self.enabled:
            handler_errors_total.labels(endpoint=self.endpoint, handler=handler).inc()

    def dial_attempt(self, success: bool) -> None:
        if self.enabled:
            outcome = "success" if success else "failure"
            dial_attempts_total.labels(endpoint=self.endpoint, outcome=outcome).inc()

    def reconnected(self) -> None:
        if self.enabled:
            reconnects_total.labels(endpoint=self.endpoint).inc()

    def liveness_timeout(self) -> None:
        if self.enabled:
            liveness_timeouts_total.labels(endpoint=self.endpoint).inc()

    def set_connected(self, is_connected: bool) -> None:
        if self.enabled:
            connected.labels(endpoint=self.endpoint).set(1 if is_connected else 0)


def start_metrics_server(port: int, addr: str = "0.0.0.0") -> None:
    """Expose the default registry over HTTP on the given port."""
    start_http_server(port, addr=addr)
    logger.info("Prometheus metrics server listening on %s:%d", addr, port)


def disabled_metrics(endpoint: Optional[str] = None) -> StreamMetrics:
    return StreamMetrics(endpoint or "", enabled=False)
