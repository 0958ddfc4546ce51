"""
Client Configuration Settings
=============================
All streaming client configuration using Pydantic Settings.
Values are fixed when the client starts; nothing is read from module globals.
"""

from enum import Enum
from typing import Optional
from urllib.parse import urlparse

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Logging levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


# === STREAM CONFIGURATION ===

class StreamSettings(BaseSettings):
    """Endpoint configuration for one streaming session (immutable)"""

    model_config = SettingsConfigDict(env_prefix="STREAM_", frozen=True, extra="ignore")

    endpoint: str = Field(..., description="WebSocket endpoint URI (ws:// or wss://)")
    proxy_url: Optional[str] = Field(default=None, description="HTTP(S) or SOCKS proxy URI")
    use_proxy: bool = Field(default=True, description="Route dials through proxy_url when it is set")

    max_message_size: int = Field(default=655350, description="Maximum inbound message size in bytes")

    # Liveness monitoring
    keepalive_enabled: bool = Field(default=True, description="Probe the peer and force-close silent connections")
    keepalive_interval_seconds: float = Field(default=20.0, description="Interval between liveness probes")
    keepalive_timeout_seconds: float = Field(default=60.0, description="Max age of the last probe acknowledgment")
    probe_deadline_seconds: float = Field(default=10.0, description="Deadline for sending a single probe")

    # Reconnection and socket timing
    reconnect_delay_seconds: float = Field(default=1.0, description="Fixed wait before each redial")
    open_timeout_seconds: float = Field(default=10.0, description="Dial (connect + handshake) timeout")
    close_timeout_seconds: float = Field(default=5.0, description="Close handshake timeout")

    metrics_enabled: bool = Field(default=True, description="Record Prometheus metrics")

    @field_validator('endpoint')
    @classmethod
    def validate_endpoint(cls, v):
        scheme = urlparse(v).scheme
        if scheme not in ("ws", "wss"):
            raise ValueError(f"Invalid endpoint '{v}'. Expected a ws:// or wss:// URI")
        return v

    @field_validator('proxy_url')
    @classmethod
    def validate_proxy_url(cls, v):
        if not v:
            return None
        if urlparse(v).scheme not in ("http", "https", "socks5", "socks5h", "socks4", "socks4a"):
            raise ValueError(f"Invalid proxy_url '{v}'. Expected http(s):// or socks:// URI")
        return v

    @field_validator(
        'max_message_size',
        'keepalive_interval_seconds',
        'keepalive_timeout_seconds',
        'probe_deadline_seconds',
        'reconnect_delay_seconds',
        'open_timeout_seconds',
        'close_timeout_seconds',
    )
    @classmethod
    def validate_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return v

    @model_validator(mode='after')
    def validate_keepalive_window(self):
        if self.keepalive_enabled and self.keepalive_timeout_seconds < self.keepalive_interval_seconds:
            raise ValueError("keepalive_timeout_seconds must be >= keepalive_interval_seconds")
        return self

    @property
    def effective_proxy(self) -> Optional[str]:
        """Proxy the dialer should use, or None for a direct connection."""
        return self.proxy_url if self.use_proxy else None


# === LOGGING CONFIGURATION ===

class LoggingSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")

    level: LogLevel = Field(default=LogLevel.INFO)
    file_enabled: bool = Field(default=False)
    console_enabled: bool = Field(default=True)
    structured_logging: bool = Field(default=True)
    log_dir: str = Field(default="logs")
    max_file_size_mb: int = Field(default=100)
    backup_count: int = Field(default=5)


# === ROOT SETTINGS ===

class ClientSettings(BaseSettings):
    """Root settings for the streaming client"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",  # Allows STREAM__ENDPOINT=wss://...
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="wsstream")
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    stream: Optional[StreamSettings] = Field(default=None)
