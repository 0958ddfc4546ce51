from .dialer import Dialer
from .lifecycle import StreamClient, serve
from .liveness import LivenessMonitor, LivenessState
from .session import SessionState, StreamSession
from .transport import Transport, WebSocketTransport

__all__ = [
    'Dialer',
    'LivenessMonitor',
    'LivenessState',
    'SessionState',
    'StreamClient',
    'StreamSession',
    'Transport',
    'WebSocketTransport',
    'serve',
]
