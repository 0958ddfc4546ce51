"""
Shared pytest fixtures for wsstream tests
=========================================
"""

from unittest.mock import MagicMock

import pytest

from wsstream.core.logger import StructuredLogger
from wsstream.infrastructure.config.settings import StreamSettings


@pytest.fixture
def logger():
    """Mock StructuredLogger"""
    logger = MagicMock(spec=StructuredLogger)
    logger.info = MagicMock()
    logger.warning = MagicMock()
    logger.error = MagicMock()
    logger.debug = MagicMock()
    logger.logger = MagicMock()
    logger.logger.isEnabledFor = MagicMock(return_value=False)
    return logger


@pytest.fixture
def stream_settings():
    """StreamSettings with test-friendly timing"""
    return StreamSettings(
        endpoint="wss://stream.example.com/ws",
        keepalive_interval_seconds=30.0,
        keepalive_timeout_seconds=90.0,
        reconnect_delay_seconds=0.01,
        metrics_enabled=False,
    )
