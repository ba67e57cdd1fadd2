from __future__ import annotations

import datetime as dt
import logging
import time
from typing import Any, Dict

from mcp import types

from .. import PROTOCOL_VERSION, SERVER_NAME, __version__
from ..config import Settings
from . import ToolRegistry

logger = logging.getLogger(__name__)


def status_tools(registry: ToolRegistry, settings: Settings, started_at: float) -> Dict[str, Any]:
    """
    Factory to produce status handlers bound to the running server.

    `started_at` is a `time.monotonic()` reading taken at startup.
    """

    async def get_server_info(arguments: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("Server info requested")
        return {
            "server": SERVER_NAME,
            "version": __version__,
            "description": "A demonstration MCP server for Aurora OS integration",
            "platform": "Aurora OS",
            "protocol_version": PROTOCOL_VERSION,
            "transports": ["stdio", "http", "sse"],
            "tools": [
                f"{spec.name}() - {spec.description}" for spec in registry.list_all()
            ],
            "capabilities": ["tools", "stdio transport", "http transport", "sse transport"],
        }

    async def health_check(arguments: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("Health check requested")
        return {
            "status": "healthy",
            "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
            "server": SERVER_NAME,
            "version": __version__,
            "uptime_seconds": int(time.monotonic() - started_at),
            "transport_mode": settings.transport,
            "tools_available": len(registry),
        }

    empty_schema: Dict[str, Any] = {"type": "object", "properties": {}, "required": []}

    return {
        "get_server_info": {
            "schema": empty_schema,
            "handler": get_server_info,
            "description": "Get detailed information about the Aurora OS MCP server",
        },
        "health_check": {
            "schema": empty_schema,
            "handler": health_check,
            "description": "Check the health status of the Aurora OS MCP server",
        },
    }


def register_tools(registry: ToolRegistry, settings: Settings, started_at: float) -> None:
    tool_defs = status_tools(registry, settings, started_at)
    for name, meta in tool_defs.items():
        registry.add_tool(
            types.Tool(
                name=name,
                description=meta["description"],
                inputSchema=meta["schema"],
            ),
            meta["handler"],
        )
