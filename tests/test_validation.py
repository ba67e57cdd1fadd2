import pytest

from aurora_mcp.errors import ArgumentValidationError
from aurora_mcp.tools import ToolSpec
from aurora_mcp.validation import validate


async def _noop(arguments):
    return None


BATCH = ToolSpec(
    name="batch_greeting",
    handler=_noop,
    input_schema={
        "type": "object",
        "properties": {
            "names": {"type": "array", "items": {"type": "string"}},
            "prefix": {"type": ["string", "null"]},
            "include_numbers": {"type": "boolean"},
            "ratio": {"type": "number"},
            "options": {"type": "object"},
        },
        "required": ["names"],
    },
)

ECHO = ToolSpec(
    name="echo",
    handler=_noop,
    input_schema={"type": "object", "properties": {"text": {"type": "string"}}, "required": ["text"]},
)


def test_valid_arguments_round_trip_unchanged() -> None:
    arguments = {
        "names": ["Ada", "Linus"],
        "prefix": None,
        "include_numbers": True,
        "ratio": 2,
        "options": {"nested": [1, 2]},
    }

    assert validate(BATCH, arguments) == arguments


def test_missing_required_field_is_named() -> None:
    with pytest.raises(ArgumentValidationError) as exc_info:
        validate(ECHO, {})

    assert exc_info.value.fields == ["text"]
    assert "text" in exc_info.value.message
    assert exc_info.value.kind == "ValidationError"


def test_wrong_type_is_named() -> None:
    with pytest.raises(ArgumentValidationError) as exc_info:
        validate(ECHO, {"text": 42})

    assert exc_info.value.fields == ["text"]


def test_array_item_path_is_reported() -> None:
    with pytest.raises(ArgumentValidationError) as exc_info:
        validate(BATCH, {"names": ["ok", 7]})

    assert exc_info.value.fields == ["names/1"]


def test_every_violation_is_reported() -> None:
    with pytest.raises(ArgumentValidationError) as exc_info:
        validate(BATCH, {"include_numbers": "yes", "ratio": "high", "surprise": 1})

    assert set(exc_info.value.fields) == {"names", "include_numbers", "ratio", "surprise"}


def test_booleans_are_not_numbers() -> None:
    with pytest.raises(ArgumentValidationError) as exc_info:
        validate(BATCH, {"names": [], "ratio": True})

    assert exc_info.value.fields == ["ratio"]


def test_unknown_fields_allowed_when_schema_says_so() -> None:
    open_spec = ToolSpec(
        name="open",
        handler=_noop,
        input_schema={"type": "object", "properties": {}, "additionalProperties": True},
    )

    assert validate(open_spec, {"anything": [1, "two"]}) == {"anything": [1, "two"]}


def test_non_object_arguments_rejected() -> None:
    with pytest.raises(ArgumentValidationError) as exc_info:
        validate(ECHO, ["text"])

    assert exc_info.value.fields == ["arguments"]
