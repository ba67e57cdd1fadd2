"""
Tool registration utilities.

Each module in this package exposes a `register_tools(registry, ...)` function
that adds its tools to the registry built once at startup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

import jsonschema
from jsonschema.protocols import Validator
from mcp import types

from ..errors import DuplicateNameError
from ..validation import compile_schema

ToolHandler = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True, eq=False)
class ToolSpec:
    name: str
    input_schema: Mapping[str, Any]
    handler: ToolHandler
    description: str = ""
    validator: Validator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Tool name must not be empty")
        try:
            validator = compile_schema(self.input_schema)
        except jsonschema.SchemaError as e:
            raise ValueError(f"Tool '{self.name}' has an invalid input schema: {e.message}") from e
        object.__setattr__(self, "input_schema", MappingProxyType(dict(self.input_schema)))
        object.__setattr__(self, "validator", validator)

    def to_tool(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=dict(self.input_schema),
        )


class ToolRegistry:
    """
    In-memory registry mapping tool names to their specifications.

    Registration happens at startup; `freeze()` is called before the server
    accepts requests, after which the registry is read-only.
    """

    def __init__(self) -> None:
        self._tools: Dict[str, ToolSpec] = {}
        self._frozen = False

    def register(self, spec: ToolSpec) -> None:
        if self._frozen:
            raise RuntimeError(f"Cannot register '{spec.name}': registry is frozen")
        if spec.name in self._tools:
            raise DuplicateNameError(f"Tool '{spec.name}' already registered")
        self._tools[spec.name] = spec

    def add_tool(self, tool: types.Tool, handler: ToolHandler) -> None:
        self.register(
            ToolSpec(
                name=tool.name,
                description=tool.description or "",
                input_schema=tool.inputSchema,
                handler=handler,
            )
        )

    def lookup(self, name: str) -> Optional[ToolSpec]:
        return self._tools.get(name)

    def list_all(self) -> List[ToolSpec]:
        return list(self._tools.values())

    def list_tools(self) -> List[types.Tool]:
        return [spec.to_tool() for spec in self._tools.values()]

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
