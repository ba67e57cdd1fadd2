from __future__ import annotations

import logging
import sys
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

TRACE = 5

LogLevel = Literal["trace", "debug", "info", "warn", "error"]
TransportName = Literal["stdio", "http", "sse"]

_LOG_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# uvicorn spells these slightly differently
_UVICORN_LEVELS = {
    "trace": "trace",
    "debug": "debug",
    "info": "info",
    "warn": "warning",
    "error": "error",
}


class Settings(BaseSettings):
    """
    Central configuration for the Aurora MCP server.

    All values are loaded from environment variables with `AURORA_` prefix.
    You can also use a `.env` file in the working directory during development.
    Command line flags passed to `aurora-mcp serve` take precedence.
    """

    model_config = SettingsConfigDict(
        env_prefix="AURORA_",
        env_file=".env",
        extra="ignore",
    )

    # Transport
    transport: TransportName = "stdio"
    server_host: str = "127.0.0.1"
    server_port: int = Field(3000, ge=0, le=65535)
    cors: bool = False

    # Timeouts, in seconds
    request_timeout: float = Field(30.0, gt=0)
    idle_timeout: float = Field(300.0, gt=0)
    reap_interval: float = Field(60.0, gt=0)
    shutdown_grace: float = Field(10.0, ge=0)
    sse_keepalive: float = Field(15.0, gt=0)

    log_level: LogLevel = "info"

    @property
    def uvicorn_log_level(self) -> str:
        return _UVICORN_LEVELS[self.log_level]


def configure_logging(level: str) -> None:
    """
    Route all log output to stderr.

    stdout is reserved for protocol frames when serving over stdio.
    """
    logging.addLevelName(TRACE, "TRACE")
    logging.basicConfig(
        level=_LOG_LEVELS[level],
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
