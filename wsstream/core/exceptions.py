"""
Core Exceptions - wsstream
==========================
Centralized exception definitions for the streaming client.
"""

from typing import Optional


class StreamError(Exception):
    """Base exception for streaming client operations."""
    pass


class DialError(StreamError):
    """
    Raised when opening a new transport fails.

    Covers DNS/TCP failures, proxy failures, handshake rejections and open
    timeouts. Only the very first dial surfaces this to the caller; redial
    failures are retried by the session loop.
    """
    def __init__(self, endpoint: str, reason: str, via_proxy: bool = False):
        self.endpoint = endpoint
        self.reason = reason
        self.via_proxy = via_proxy
        route = " via proxy" if via_proxy else ""
        self.message = f"Failed to dial {endpoint}{route}: {reason}"
        super().__init__(self.message)


class ReceiveError(StreamError):
    """
    Raised when reading from an open transport fails.

    The transport is unusable afterwards.
    """
    def __init__(self, connection_id: int, reason: str):
        self.connection_id = connection_id
        self.reason = reason
        self.message = f"Receive failed on connection {connection_id}: {reason}"
        super().__init__(self.message)


class CloseError(StreamError):
    """
    Raised when closing a transport fails or the transport is already closed.
    """
    def __init__(self, connection_id: int, reason: Optional[str] = None):
        self.connection_id = connection_id
        self.reason = reason or "already closed"
        self.message = f"Close failed on connection {connection_id}: {self.reason}"
        super().__init__(self.message)
