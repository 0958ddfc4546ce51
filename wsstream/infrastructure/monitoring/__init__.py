from .prometheus_metrics import StreamMetrics, disabled_metrics, start_metrics_server

__all__ = ['StreamMetrics', 'disabled_metrics', 'start_metrics_server']
