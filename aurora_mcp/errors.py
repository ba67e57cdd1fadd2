"""
Error taxonomy shared by the dispatcher and the transport adapters.

Every error carries a `kind` string that is exposed verbatim in the
`error.kind` field of a failed response.
"""

from __future__ import annotations

from typing import Any, List, Optional


class ToolServerError(Exception):
    kind = "ServerError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DuplicateNameError(ToolServerError):
    kind = "DuplicateName"


class UnknownTool(ToolServerError):
    kind = "UnknownTool"


class ArgumentValidationError(ToolServerError):
    """Arguments did not match the tool's input schema."""

    kind = "ValidationError"

    def __init__(self, message: str, fields: List[str]) -> None:
        super().__init__(message)
        self.fields = fields


class ToolTimeout(ToolServerError):
    kind = "Timeout"


class HandlerError(ToolServerError):
    kind = "HandlerError"


class UnknownSession(ToolServerError):
    kind = "UnknownSession"


class TransportError(ToolServerError):
    """Framing or decoding failure at the adapter boundary."""

    kind = "TransportError"

    def __init__(self, message: str, request_id: Optional[Any] = None) -> None:
        super().__init__(message)
        self.request_id = request_id
