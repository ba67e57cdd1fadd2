from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from ..errors import ArgumentValidationError, ToolServerError, TransportError

RequestId = Union[StrictStr, StrictInt]


class ToolRequest(BaseModel):
    """
    Canonical, transport-independent tool call.

    Wire form: {"id": "...", "tool": "...", "arguments": {...}}.
    `session_id` is attached by the transport adapter, never read from the wire.
    """

    model_config = ConfigDict(frozen=True)

    id: RequestId
    tool: StrictStr = Field(..., min_length=1)
    # Shape is checked against the tool schema, not here.
    arguments: Any = Field(default_factory=dict)
    session_id: Optional[str] = Field(default=None, exclude=True)

    def for_session(self, session_id: Optional[str]) -> "ToolRequest":
        return self.model_copy(update={"session_id": session_id})


class ErrorInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str
    message: str
    fields: Optional[List[str]] = None


class ToolResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[RequestId] = None
    ok: bool
    result: Any = None
    error: Optional[ErrorInfo] = None

    @classmethod
    def success(cls, request_id: Optional[RequestId], result: Any) -> "ToolResponse":
        return cls(id=request_id, ok=True, result=result)

    @classmethod
    def failure(cls, request_id: Optional[RequestId], exc: ToolServerError) -> "ToolResponse":
        fields = exc.fields if isinstance(exc, ArgumentValidationError) else None
        return cls(
            id=request_id,
            ok=False,
            error=ErrorInfo(kind=exc.kind, message=exc.message, fields=fields),
        )

    def to_wire(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id, "ok": self.ok}
        if self.ok:
            payload["result"] = self.result
        else:
            if self.error is None:
                raise ValueError("A failed response must carry an error")
            payload["error"] = self.error.model_dump(exclude_none=True)
        return payload


def decode_request(raw: Union[str, bytes]) -> ToolRequest:
    """
    Decode one canonical request frame.

    Raises TransportError for anything that is not a well-formed request
    envelope; the error keeps the request id when one could be read.
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise TransportError(f"Malformed JSON: {e}") from e

    if not isinstance(payload, dict):
        raise TransportError("Request must be a JSON object")

    # session binding comes from the transport, never from the client
    payload.pop("session_id", None)
    try:
        return ToolRequest.model_validate(payload)
    except PydanticValidationError as e:
        problems = ", ".join(
            ".".join(str(part) for part in err["loc"]) or "request" for err in e.errors()
        )
        request_id = payload.get("id")
        if not isinstance(request_id, (str, int)) or isinstance(request_id, bool):
            request_id = None
        raise TransportError(f"Invalid request envelope: {problems}", request_id=request_id) from e


def encode_response(response: ToolResponse) -> str:
    return json.dumps(response.to_wire(), ensure_ascii=False)
