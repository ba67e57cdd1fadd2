"""
Transport adapters.

Every adapter implements `Transport` (receive a request, send a response,
signal connection loss) and is driven by the shared `serve_transport` loop.
"""

from .base import Transport, serve_transport
from .http import HttpExchange
from .sse import SseChannel, SseHub, build_sse_router
from .stdio import StdioTransport, run_stdio_server

__all__ = [
    "HttpExchange",
    "SseChannel",
    "SseHub",
    "StdioTransport",
    "Transport",
    "build_sse_router",
    "run_stdio_server",
    "serve_transport",
]
