"""
Aurora OS MCP demo server package.

This package exposes a small set of tools over three transports:
- stdio: newline-delimited JSON on stdin/stdout
- http: one POST per call, plus an MCP-compatible JSON-RPC endpoint
- sse: requests POSTed per session, responses pushed on an event stream

The core is transport-agnostic:
- Tool registry and JSON Schema validation
- Dispatcher with per-call deadlines
- Session manager with idle reaping
"""

__version__ = "0.1.0"

SERVER_NAME = "Aurora OS MCP Demo Server"
PROTOCOL_VERSION = "2024-11-05"
