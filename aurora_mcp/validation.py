"""
Argument validation against a tool's JSON Schema.

Unknown fields are rejected unless the schema sets `additionalProperties`
itself. Every violation is collected so callers get the complete list of
offending fields in one round trip.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping

import jsonschema
from jsonschema.protocols import Validator

from .errors import ArgumentValidationError

if TYPE_CHECKING:
    from .tools import ToolSpec


def compile_schema(schema: Mapping[str, Any]) -> Validator:
    """
    Build a validator for a tool input schema.

    Raises jsonschema.SchemaError when the schema itself is malformed, so a bad
    tool definition fails at registration instead of on the first call.
    """
    effective: Dict[str, Any] = dict(schema)
    effective.setdefault("type", "object")
    effective.setdefault("properties", {})
    effective.setdefault("additionalProperties", False)

    validator_cls = jsonschema.validators.validator_for(effective, default=jsonschema.Draft202012Validator)
    validator_cls.check_schema(effective)
    return validator_cls(effective)


def _offending_fields(error: jsonschema.ValidationError, arguments: Mapping[str, Any]) -> List[str]:
    if error.validator == "required" and not error.absolute_path:
        return [name for name in error.validator_value if name not in arguments]
    if error.validator == "additionalProperties" and not error.absolute_path:
        allowed = error.schema.get("properties", {})
        return [name for name in arguments if name not in allowed]

    path = list(error.absolute_path)
    if not path:
        return ["arguments"]
    return ["/".join(str(part) for part in path)]


def validate(spec: "ToolSpec", arguments: Any) -> Dict[str, Any]:
    """Check `arguments` against `spec` and return them unchanged on success."""
    if not isinstance(arguments, Mapping):
        raise ArgumentValidationError(
            f"Invalid arguments for tool '{spec.name}': arguments must be an object",
            fields=["arguments"],
        )

    fields: List[str] = []
    reasons: List[str] = []
    for error in sorted(spec.validator.iter_errors(arguments), key=lambda e: list(map(str, e.absolute_path))):
        for name in _offending_fields(error, arguments):
            if name not in fields:
                fields.append(name)
        reasons.append(error.message)

    if fields:
        raise ArgumentValidationError(
            f"Invalid arguments for tool '{spec.name}': {', '.join(fields)} ({'; '.join(reasons)})",
            fields=fields,
        )
    return dict(arguments)
