from .messages import (
    ErrorInfo,
    RequestId,
    ToolRequest,
    ToolResponse,
    decode_request,
    encode_response,
)

__all__ = [
    "ErrorInfo",
    "RequestId",
    "ToolRequest",
    "ToolResponse",
    "decode_request",
    "encode_response",
]
