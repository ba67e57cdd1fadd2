import pytest
from mcp import types

from aurora_mcp.config import Settings
from aurora_mcp.errors import DuplicateNameError
from aurora_mcp.runtime import build_registry
from aurora_mcp.tools import ToolRegistry, ToolSpec

ECHO_SCHEMA = {"type": "object", "properties": {"text": {"type": "string"}}, "required": ["text"]}


async def _echo(arguments):
    return arguments["text"]


def test_lookup_returns_registered_spec() -> None:
    registry = ToolRegistry()
    spec = ToolSpec(name="echo", input_schema=ECHO_SCHEMA, handler=_echo, description="Echo")
    registry.register(spec)

    assert registry.lookup("echo") is spec
    assert registry.lookup("missing") is None
    assert "echo" in registry
    assert len(registry) == 1


def test_duplicate_registration_fails() -> None:
    registry = ToolRegistry()
    registry.register(ToolSpec(name="echo", input_schema=ECHO_SCHEMA, handler=_echo))

    with pytest.raises(DuplicateNameError):
        registry.register(ToolSpec(name="echo", input_schema={}, handler=_echo))

    # The original registration is untouched.
    assert registry.lookup("echo").input_schema["required"] == ["text"]


def test_list_all_keeps_insertion_order() -> None:
    registry = ToolRegistry()
    for name in ("zeta", "alpha", "mid"):
        registry.register(ToolSpec(name=name, input_schema={}, handler=_echo))

    assert [spec.name for spec in registry.list_all()] == ["zeta", "alpha", "mid"]


def test_list_tools_renders_mcp_tools() -> None:
    registry = ToolRegistry()
    registry.add_tool(
        types.Tool(name="echo", description="Echo text", inputSchema=ECHO_SCHEMA),
        _echo,
    )

    tools = registry.list_tools()

    assert len(tools) == 1
    assert isinstance(tools[0], types.Tool)
    assert tools[0].name == "echo"
    assert tools[0].description == "Echo text"
    assert tools[0].inputSchema == ECHO_SCHEMA


def test_frozen_registry_rejects_registration() -> None:
    registry = ToolRegistry()
    registry.freeze()

    with pytest.raises(RuntimeError):
        registry.register(ToolSpec(name="late", input_schema={}, handler=_echo))
    assert registry.frozen


def test_invalid_schema_fails_at_registration() -> None:
    with pytest.raises(ValueError, match="invalid input schema"):
        ToolSpec(name="bad", input_schema={"type": "object", "properties": {"x": {"type": "strnig"}}}, handler=_echo)


def test_spec_schema_is_read_only() -> None:
    spec = ToolSpec(name="echo", input_schema=ECHO_SCHEMA, handler=_echo)

    with pytest.raises(TypeError):
        spec.input_schema["required"] = []


def test_build_registry_registers_demo_tools() -> None:
    registry = build_registry(Settings(_env_file=None), started_at=0.0)

    assert [spec.name for spec in registry.list_all()] == [
        "hello_world",
        "echo",
        "batch_greeting",
        "get_server_info",
        "health_check",
    ]
    assert registry.frozen
