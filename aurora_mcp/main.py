from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import Any, Dict, List, Optional

import anyio
from pydantic import ValidationError

from . import SERVER_NAME, __version__
from .config import Settings, configure_logging
from .runtime import build_runtime

logger = logging.getLogger(__name__)

# argparse destination -> Settings field
_OVERRIDES = {
    "transport": "transport",
    "host": "server_host",
    "port": "server_port",
    "cors": "cors",
    "request_timeout": "request_timeout",
    "idle_timeout": "idle_timeout",
    "log_level": "log_level",
}


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="aurora-mcp",
        description="Aurora OS MCP Server - demo implementation with greeting and status tools",
    )
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = ap.add_subparsers(dest="cmd", required=True)

    serve = sub.add_parser("serve", help="Serve tools over stdio, HTTP or SSE.")
    serve.add_argument(
        "-t", "--transport",
        choices=("stdio", "http", "sse"),
        default=None,
        help="Transport mode to use (default: stdio, or AURORA_TRANSPORT)",
    )
    serve.add_argument("-H", "--host", default=None, help="Host address to bind HTTP/SSE server to")
    serve.add_argument("-p", "--port", type=int, default=None, help="Port to bind HTTP/SSE server to")
    serve.add_argument(
        "--cors",
        action="store_true",
        default=None,
        help="Enable Cross-Origin Resource Sharing for HTTP/SSE modes",
    )
    serve.add_argument(
        "--request-timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Per-call handler deadline (default: 30)",
    )
    serve.add_argument(
        "--idle-timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Idle time after which a session is reaped (default: 300)",
    )
    serve.add_argument(
        "-l", "--log-level",
        choices=("trace", "debug", "info", "warn", "error"),
        default=None,
        help="Set the logging level (default: info)",
    )
    serve.set_defaults(func=cmd_serve)
    return ap


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Environment values, overridden by any flag given on the command line."""
    overrides: Dict[str, Any] = {}
    for dest, field_name in _OVERRIDES.items():
        value = getattr(args, dest, None)
        if value is not None:
            overrides[field_name] = value
    return Settings(**overrides)


def _interrupt(signum, frame) -> None:
    raise KeyboardInterrupt


def cmd_serve(args: argparse.Namespace) -> int:
    try:
        settings = settings_from_args(args)
    except ValidationError as e:
        print(f"ERROR: invalid configuration:\n{e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level)
    logger.info("Starting %s v%s", SERVER_NAME, __version__)
    logger.info("Transport mode: %s", settings.transport)

    runtime = build_runtime(settings)

    # uvicorn re-raises the signal it shut down on; treat SIGTERM like Ctrl+C.
    previous_handler = signal.signal(signal.SIGTERM, _interrupt)
    try:
        if settings.transport == "stdio":
            from .transports import run_stdio_server

            anyio.run(run_stdio_server, runtime)
            exit_code = 0
        else:
            from .http_server import run_http_server

            exit_code = anyio.run(run_http_server, runtime, settings.transport)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
        exit_code = 0
    finally:
        signal.signal(signal.SIGTERM, previous_handler)

    if exit_code == 0:
        logger.info("Aurora MCP Server shutdown complete")
    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    """Entrypoint for the `aurora-mcp` command."""
    args = build_parser().parse_args(argv)
    return args.func(args)


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
