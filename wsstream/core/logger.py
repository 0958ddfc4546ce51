import json
import logging
import os
import sys
import threading
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone
from typing import Dict, Any, Optional, TYPE_CHECKING
from pathlib import Path

if TYPE_CHECKING:
    from ..infrastructure.config.settings import LoggingSettings

# One StructuredLogger per name, otherwise handlers pile up on the
# underlying logging.Logger singleton.
_logger_cache: Dict[str, 'StructuredLogger'] = {}
_cache_lock = threading.RLock()
_active_config: Optional[Any] = None


class CustomJsonEncoder(json.JSONEncoder):
    """JSON encoder for values that show up in stream log payloads."""
    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, (bytes, bytearray)):
            return obj.decode('utf-8', errors='replace')
        if isinstance(obj, BaseException):
            return f"{type(obj).__name__}: {obj}"
        if hasattr(obj, 'name') and hasattr(obj, 'value'):  # Enum-like
            return obj.name
        if isinstance(obj, type):
            return obj.__name__
        return super().default(obj)


class JsonFormatter(logging.Formatter):
    """Formats log records into a single-line JSON object."""

    def _sanitize_dict(self, d: dict) -> dict:
        sanitized = {}
        for k, v in d.items():
            str_key = str(k)
            if isinstance(v, dict):
                sanitized[str_key] = self._sanitize_dict(v)
            elif isinstance(v, (list, tuple)):
                sanitized[str_key] = [self._sanitize_dict(item) if isinstance(item, dict) else item for item in v]
            else:
                sanitized[str_key] = v
        return sanitized

    def format(self, record: logging.LogRecord) -> str:
        if isinstance(record.msg, dict):
            message_dict = self._sanitize_dict(record.msg)
        else:
            message_dict = {"message": record.getMessage()}

        log_object = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.module,
            "funcName": record.funcName,
            "lineno": record.lineno,
            **message_dict,
        }
        if record.exc_info:
            log_object["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_object, cls=CustomJsonEncoder)


class StructuredLogger:
    """
    Event-style logger: every entry is an event name plus a data dict.

        logger.info("stream_session.redial_succeeded", {"attempt": 3})
    """

    def __init__(self, name: str, config: Any, filename: Optional[str] = None):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, getattr(config, 'level', 'INFO').upper(), logging.INFO))
        self.logger.propagate = False

        console_enabled = getattr(config, 'console_enabled', True)
        file_enabled = getattr(config, 'file_enabled', False)
        structured_logging = getattr(config, 'structured_logging', True)
        max_file_size_mb = getattr(config, 'max_file_size_mb', 100)
        backup_count = getattr(config, 'backup_count', 5)
        log_dir = getattr(config, 'log_dir', 'logs')

        if filename:
            log_file = str(Path(log_dir) / filename)
        elif file_enabled:
            log_file = str(Path(log_dir) / f"{name}.jsonl")
        else:
            log_file = None

        self._setup_console_handler(console_enabled, structured_logging)
        self._setup_file_handler(bool(log_file), log_file, max_file_size_mb, backup_count, structured_logging)

    @staticmethod
    def _make_formatter(structured: bool) -> logging.Formatter:
        if structured:
            return JsonFormatter()
        return logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    def _setup_console_handler(self, enabled: bool, structured: bool):
        """Attach a stdout handler unless one is already attached."""
        if not enabled:
            return

        for existing_handler in self.logger.handlers:
            if isinstance(existing_handler, logging.StreamHandler) and getattr(existing_handler, 'stream', None) is sys.stdout:
                return

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(self._make_formatter(structured))
        self.logger.addHandler(handler)

    def _setup_file_handler(self, enabled: bool, log_file: Optional[str], max_size_mb: int, backup_count: int, structured: bool):
        """Attach a rotating file handler unless one for the same file exists."""
        if not enabled or not log_file:
            return

        log_file_normalized = os.path.abspath(log_file)
        for existing_handler in self.logger.handlers:
            if isinstance(existing_handler, RotatingFileHandler):
                if os.path.abspath(existing_handler.baseFilename) == log_file_normalized:
                    return

        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        try:
            handler = RotatingFileHandler(
                log_file,
                maxBytes=max_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding='utf-8'
            )
        except OSError as e:
            # Never fail silently: we'd think we're logging but wouldn't be
            print(f"ERROR: Failed to create file handler for {log_file}: {e}", file=sys.stderr)
            return

        handler.setFormatter(self._make_formatter(structured))
        self.logger.addHandler(handler)

    def _log(self, level: int, event_type: str, data: Dict[str, Any]):
        payload = {"event_type": event_type, "data": data}
        self.logger.log(level, payload)

    def info(self, event_type: str, data: Dict[str, Any] = None):
        self._log(logging.INFO, event_type, data or {})

    def warning(self, event_type: str, data: Dict[str, Any] = None):
        self._log(logging.WARNING, event_type, data or {})

    def error(self, event_type: str, data: Dict[str, Any] = None, exc_info=False):
        payload = {"event_type": event_type, "data": data or {}}
        self.logger.error(payload, exc_info=exc_info)

    def debug(self, event_type: str, data: Dict[str, Any] = None):
        self._log(logging.DEBUG, event_type, data or {})


def configure_logging(config: 'LoggingSettings') -> None:
    """
    Rebuild every cached logger from explicit settings.

    Called by the CLI once the configuration file has been read, so loggers
    created at import time pick up the requested level and handlers.
    """
    global _active_config
    with _cache_lock:
        _active_config = config
        for name in list(_logger_cache):
            underlying = logging.getLogger(name)
            for handler in list(underlying.handlers):
                underlying.removeHandler(handler)
                handler.close()
            _logger_cache[name] = StructuredLogger(name, config)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a cached structured logger for the given name.

    Settings come from the working-directory configuration file when one
    exists, otherwise from LoggingSettings defaults and LOG_* variables.
    """
    if name in _logger_cache:
        return _logger_cache[name]

    with _cache_lock:
        if name in _logger_cache:
            return _logger_cache[name]

        from ..infrastructure.config.config_loader import get_settings_from_working_directory
        try:
            if _active_config is not None:
                logger = StructuredLogger(name, _active_config)
            else:
                settings = get_settings_from_working_directory()
                logger = StructuredLogger(name, settings.logging)
        except Exception as e:
            # Fallback must still be a StructuredLogger, callers use .info(event, data)
            print(f"WARNING: Failed to load config for logger '{name}': {e}", file=sys.stderr)
            print("WARNING: Using basic StructuredLogger with defaults", file=sys.stderr)

            class FallbackConfig:
                level = "INFO"
                console_enabled = True
                file_enabled = False
                structured_logging = True
                log_dir = "logs"
                max_file_size_mb = 100
                backup_count = 5

            logger = StructuredLogger(name, FallbackConfig())

        _logger_cache[name] = logger
        return logger
