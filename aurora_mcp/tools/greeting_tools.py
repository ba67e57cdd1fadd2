from __future__ import annotations

import logging
from typing import Any, Dict

from mcp import types

from . import ToolRegistry

logger = logging.getLogger(__name__)

HELLO_GREETING = "Hello, World! from Aurora OS MCP Server 🌟"


async def _handle_hello_world(arguments: Dict[str, Any]) -> str:
    logger.info("Hello world tool called, returning: %s", HELLO_GREETING)
    return HELLO_GREETING


async def _handle_echo(arguments: Dict[str, Any]) -> str:
    return arguments["text"]


async def _handle_batch_greeting(arguments: Dict[str, Any]) -> Any:
    """
    Generate personalized greetings for multiple names.

    Output is newline-joined text, or a structured object when `as_json` is set.
    """
    names = arguments["names"]
    logger.info("Batch greeting tool called with %d names", len(names))

    if not names:
        raise ValueError("At least one name must be provided")

    prefix = arguments.get("prefix") or "Hello"
    include_numbers = bool(arguments.get("include_numbers", False))
    as_json = bool(arguments.get("as_json", False))

    greetings = []
    for i, name in enumerate(names, start=1):
        lead = f"{i}. {prefix}" if include_numbers else prefix
        greetings.append(f"{lead}, {name}!")

    logger.info("Generated %d greetings successfully", len(greetings))

    if as_json:
        return {
            "greetings": greetings,
            "count": len(greetings),
            "prefix": prefix,
            "include_numbers": include_numbers,
        }
    return "\n".join(greetings)


def greeting_tools() -> Dict[str, Any]:
    # JSON Schemas for tool inputs
    empty_schema: Dict[str, Any] = {"type": "object", "properties": {}, "required": []}

    echo_schema: Dict[str, Any] = {
        "type": "object",
        "properties": {
            "text": {"type": "string", "description": "Text to send back unchanged."},
        },
        "required": ["text"],
    }

    batch_schema: Dict[str, Any] = {
        "type": "object",
        "properties": {
            "names": {
                "type": "array",
                "items": {"type": "string"},
                "description": "List of names to generate greetings for",
            },
            "prefix": {
                "type": ["string", "null"],
                "description": "Optional prefix to add before each greeting",
            },
            "include_numbers": {
                "type": ["boolean", "null"],
                "description": "Whether to include line numbers before each greeting",
            },
            "as_json": {
                "type": ["boolean", "null"],
                "description": "Whether to format the output as JSON",
            },
        },
        "required": ["names"],
    }

    return {
        "hello_world": {
            "schema": empty_schema,
            "handler": _handle_hello_world,
            "description": "Returns a hello world greeting from Aurora OS MCP Server",
        },
        "echo": {
            "schema": echo_schema,
            "handler": _handle_echo,
            "description": "Echo the given text back to the caller.",
        },
        "batch_greeting": {
            "schema": batch_schema,
            "handler": _handle_batch_greeting,
            "description": "Generate personalized greetings for multiple names with customizable formatting",
        },
    }


def register_tools(registry: ToolRegistry) -> None:
    for name, meta in greeting_tools().items():
        registry.add_tool(
            types.Tool(
                name=name,
                description=meta["description"],
                inputSchema=meta["schema"],
            ),
            meta["handler"],
        )
