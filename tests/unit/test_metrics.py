"""
Unit Tests for StreamMetrics
============================
"""

from prometheus_client import REGISTRY

from wsstream.infrastructure.monitoring.prometheus_metrics import StreamMetrics, disabled_metrics


def sample(name: str, **labels) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestStreamMetrics:

    def test_counters_recorded_per_endpoint(self):
        endpoint = "wss://metrics-counters.example.com/ws"
        metrics = StreamMetrics(endpoint)

        metrics.message_received()
        metrics.message_received()
        metrics.dial_attempt(success=False)
        metrics.reconnected()
        metrics.handler_error("message_handler")

        assert sample('wsstream_messages_received_total', endpoint=endpoint) == 2.0
        assert sample('wsstream_dial_attempts_total', endpoint=endpoint, outcome="failure") == 1.0
        assert sample('wsstream_dial_attempts_total', endpoint=endpoint, outcome="success") == 0.0
        assert sample('wsstream_reconnects_total', endpoint=endpoint) == 1.0
        assert sample('wsstream_handler_errors_total', endpoint=endpoint, handler="message_handler") == 1.0

    def test_connected_gauge(self):
        endpoint = "wss://metrics-gauge.example.com/ws"
        metrics = StreamMetrics(endpoint)

        metrics.set_connected(True)
        assert sample('wsstream_connected', endpoint=endpoint) == 1.0

        metrics.set_connected(False)
        assert sample('wsstream_connected', endpoint=endpoint) == 0.0

    def test_disabled_records_nothing(self):
        endpoint = "wss://metrics-disabled.example.com/ws"
        metrics = StreamMetrics(endpoint, enabled=False)

        metrics.message_received()
        metrics.liveness_timeout()

        assert REGISTRY.get_sample_value('wsstream_messages_received_total', {'endpoint': endpoint}) is None
        assert disabled_metrics().enabled is False
