"""
wsstream - resilient WebSocket streaming client
===============================================
Persistent message stream with liveness monitoring and transparent reconnect.
"""

from .core.exceptions import CloseError, DialError, ReceiveError, StreamError
from .core.signals import OneShotSignal
from .infrastructure.config.settings import ClientSettings, LoggingSettings, StreamSettings
from .infrastructure.stream import (
    Dialer,
    LivenessMonitor,
    SessionState,
    StreamClient,
    StreamSession,
    Transport,
    WebSocketTransport,
    serve,
)

__version__ = "1.0.0"

__all__ = [
    'ClientSettings',
    'CloseError',
    'DialError',
    'Dialer',
    'LivenessMonitor',
    'LoggingSettings',
    'OneShotSignal',
    'ReceiveError',
    'SessionState',
    'StreamClient',
    'StreamError',
    'StreamSession',
    'StreamSettings',
    'Transport',
    'WebSocketTransport',
    'serve',
]
