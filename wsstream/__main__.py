"""
Stream an endpoint to stdout.

Usage:
    python -m wsstream wss://example.com/ws
    python -m wsstream wss://example.com/ws --proxy http://127.0.0.1:3128
    python -m wsstream --config config/wsstream.json --metrics-port 9108
    STREAM_ENDPOINT=wss://example.com/ws python -m wsstream

Command-line options override the config file, which overrides STREAM_*
environment variables. Each received message is written to stdout on its
own line. Ctrl+C (or SIGTERM) stops the session gracefully.
"""

import argparse
import asyncio
import sys
from typing import Any, Dict, Optional, Sequence, Tuple

from pydantic import ValidationError

from .core.exceptions import DialError
from .core.logger import configure_logging, get_logger
from .core.signals import install_signal_handlers
from .infrastructure.config.config_loader import find_config_file, load_config_data
from .infrastructure.config.settings import ClientSettings, LogLevel, StreamSettings
from .infrastructure.monitoring.prometheus_metrics import start_metrics_server
from .infrastructure.stream.lifecycle import StreamClient


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wsstream",
        description="Resilient WebSocket stream reader",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('endpoint', nargs='?', help='ws:// or wss:// endpoint (overrides config)')
    parser.add_argument('--config', type=str, help='Path to JSON config file')
    parser.add_argument('--proxy', type=str, help='Proxy URL (http://, https:// or socks5://)')
    parser.add_argument('--max-message-size', type=int, help='Max inbound message size in bytes')
    parser.add_argument('--no-keepalive', action='store_true', help='Disable liveness monitoring')
    parser.add_argument('--keepalive-interval', type=float, help='Seconds between liveness probes')
    parser.add_argument('--keepalive-timeout', type=float, help='Seconds without acknowledgment before reconnect')
    parser.add_argument('--metrics-port', type=int, help='Expose Prometheus metrics on this port')
    parser.add_argument(
        '--log-level',
        choices=[level.value for level in LogLevel],
        help='Log level (default from config, INFO otherwise)'
    )
    return parser


def build_stream_settings(args: argparse.Namespace, configured: Optional[Dict[str, Any]] = None) -> StreamSettings:
    """
    Merge command-line overrides on top of the config file's stream section.

    Anything still unset is read from STREAM_* environment variables.
    """
    values = dict(configured or {})
    overrides = {
        'endpoint': args.endpoint,
        'proxy_url': args.proxy,
        'max_message_size': args.max_message_size,
        'keepalive_interval_seconds': args.keepalive_interval,
        'keepalive_timeout_seconds': args.keepalive_timeout,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    if args.no_keepalive:
        values['keepalive_enabled'] = False

    try:
        return StreamSettings(**values)
    except ValidationError as e:
        if any(error['loc'] == ('endpoint',) and error['type'] == 'missing' for error in e.errors()):
            raise SystemExit(
                "error: no endpoint given on the command line, in STREAM_ENDPOINT or in the config file"
            )
        raise SystemExit(f"error: invalid stream settings: {e}")


def load_client_settings(args: argparse.Namespace) -> Tuple[ClientSettings, Dict[str, Any]]:
    """
    Load the config file, keeping its stream section unvalidated.

    Returns:
        (client settings without the stream section, raw stream section)
    """
    config_path = args.config or find_config_file()
    data = load_config_data(config_path) if config_path else {}
    stream_section = data.pop('stream', None) or {}
    try:
        settings = ClientSettings(**data)
    except ValidationError as e:
        raise SystemExit(f"error: invalid configuration in {config_path}: {e}")
    if not stream_section and settings.stream is not None:
        # Nested STREAM__* environment variables
        stream_section = settings.stream.model_dump(exclude_unset=True)
    return settings, stream_section


async def run(args: argparse.Namespace) -> int:
    settings, stream_section = load_client_settings(args)
    if args.log_level:
        settings.logging.level = LogLevel(args.log_level)
    configure_logging(settings.logging)
    logger = get_logger("wsstream")

    stream_settings = build_stream_settings(args, stream_section)
    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    def on_message(payload: bytes) -> None:
        sys.stdout.write(payload.decode('utf-8', errors='replace') + "\n")
        sys.stdout.flush()

    def on_error(error: Exception) -> None:
        logger.warning("wsstream.stream_error", {"error": str(error)})

    def on_reconnect(attempt: int, error: Optional[Exception]) -> None:
        if error is None:
            logger.info("wsstream.reconnected", {"attempt": attempt})

    client = StreamClient(
        stream_settings,
        on_message,
        on_error,
        logger=logger,
        reconnect_handler=on_reconnect,
    )
    try:
        done, stop = await client.start()
    except DialError as e:
        logger.error("wsstream.start_failed", {"error": str(e)})
        return 1

    install_signal_handlers(stop)
    await done.wait()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\n[SHUTDOWN] Keyboard interrupt")
        return 130


if __name__ == "__main__":
    sys.exit(main())
