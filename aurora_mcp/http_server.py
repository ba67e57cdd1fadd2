from __future__ import annotations

import json
import logging
import socket
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import anyio
from fastapi import FastAPI, Header, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mcp import types
from pydantic import ValidationError

from . import PROTOCOL_VERSION, SERVER_NAME, __version__
from .errors import UnknownSession
from .models import ToolRequest, ToolResponse
from .runtime import RuntimeContext
from .sessions import TransportKind
from .transports import HttpExchange, SseHub, build_sse_router, serve_transport

logger = logging.getLogger(__name__)

INSTRUCTIONS = (
    "Aurora OS MCP Demo Server\n\n"
    "This is a demonstration MCP (Model Context Protocol) server designed "
    "specifically for Aurora OS integration.\n\n"
    "Available Tools:\n"
    "• hello_world: Returns a greeting message from Aurora OS\n"
    "• echo: Echoes text back to the caller\n"
    "• get_server_info: Returns detailed server information\n"
    "• health_check: Returns server health status\n"
    "• batch_greeting: Generate personalized greetings for multiple names\n\n"
    "Available Transports:\n"
    "• stdio: Newline-delimited JSON on stdin/stdout\n"
    "• http: Request/response over POST /rpc and JSON-RPC over POST /mcp\n"
    "• sse: Server-Sent Events stream with per-session POST endpoint"
)

# Failure kinds that mean the exchange itself was rejected.
_HTTP_STATUS_BY_KIND = {
    "TransportError": 400,
    "UnknownSession": 404,
}

SESSION_HEADER = "Mcp-Session-Id"


def _status_for(response: ToolResponse) -> int:
    if response.ok or response.error is None:
        return 200
    return _HTTP_STATUS_BY_KIND.get(response.error.kind, 200)


def _endpoints(transport: str) -> Dict[str, str]:
    endpoints = {"health": "/health", "tools": "/tools"}
    if transport == "sse":
        endpoints.update({"events": "/events", "message": "/events/{session}"})
    else:
        endpoints.update({"rpc": "/rpc", "mcp": "/mcp", "sessions": "/sessions"})
    return endpoints


def create_http_app(runtime: RuntimeContext, transport: Optional[str] = None) -> FastAPI:
    """
    Create the FastAPI app serving the HTTP or SSE transport.

    HTTP:
    - POST /rpc: canonical request in, canonical response out
    - POST /mcp: MCP JSON-RPC 2.0 (initialize, tools/list, tools/call)
    - POST /sessions, DELETE /sessions/{id}: explicit HTTP sessions

    SSE:
    - GET /events: persistent stream of "data: <response json>\\n\\n" events
    - POST /events/{session}: enqueue a request, answered with 202

    Both expose GET /health, GET / and GET /tools.
    """
    settings = runtime.settings
    transport = transport or settings.transport
    hub = SseHub(runtime.sessions, runtime.dispatcher)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with anyio.create_task_group() as tg:
            hub.bind(tg)
            tg.start_soon(runtime.sessions.run_reaper, settings.reap_interval, settings.idle_timeout)
            logger.info("Session reaper started (idle timeout %gs)", settings.idle_timeout)
            yield
            runtime.sessions.begin_shutdown()
            closed = runtime.sessions.close_all()
            logger.info("Closed %d remaining sessions", closed)
            tg.cancel_scope.cancel()

    app = FastAPI(
        title=SERVER_NAME,
        version=__version__,
        description="Aurora OS MCP demo server",
        lifespan=lifespan,
    )
    app.state.runtime = runtime
    app.state.sse_hub = hub

    if settings.cors:
        logger.info("CORS enabled for %s mode", transport.upper())
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/health")
    async def health():
        """Liveness only; always healthy while the process serves requests."""
        return {"status": "healthy"}

    @app.get("/")
    async def root():
        """Root endpoint with service info."""
        return {
            "service": SERVER_NAME,
            "version": __version__,
            "protocol": "mcp",
            "protocol_version": PROTOCOL_VERSION,
            "transport": transport,
            "endpoints": _endpoints(transport),
        }

    @app.get("/tools")
    async def list_tools():
        return {"tools": [tool.model_dump(exclude_none=True) for tool in runtime.registry.list_tools()]}

    if transport == "sse":
        app.include_router(build_sse_router(runtime, hub))
        return app

    @app.post("/rpc")
    async def rpc(request: Request, x_session_id: Optional[str] = Header(default=None)):
        """One canonical request per POST; the session header is optional."""
        exchange = HttpExchange(await request.body())
        await serve_transport(exchange, runtime.dispatcher, runtime.sessions, x_session_id)

        response = exchange.response
        if response is None:
            response = ToolResponse.failure(
                None, UnknownSession(f"Session '{x_session_id}' closed before the response was ready")
            )
        return JSONResponse(response.to_wire(), status_code=_status_for(response))

    @app.post("/sessions", status_code=201)
    async def create_session():
        return {"session": runtime.sessions.create(TransportKind.HTTP)}

    @app.delete("/sessions/{session_id}", status_code=204)
    async def delete_session(session_id: str):
        if not runtime.sessions.destroy(session_id):
            error = UnknownSession(f"Unknown or expired session '{session_id}'")
            return JSONResponse(ToolResponse.failure(None, error).to_wire(), status_code=404)
        return Response(status_code=204)

    @app.post("/mcp")
    async def mcp_endpoint(request: Request):
        """
        MCP JSON-RPC endpoint.

        `initialize` opens an HTTP session returned in the Mcp-Session-Id
        header; later calls may send it back to keep the session alive.
        """
        try:
            message = json.loads(await request.body())
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return JSONResponse(_jsonrpc_error(None, types.PARSE_ERROR, f"Parse error: {e}"), status_code=400)

        if not isinstance(message, dict) or message.get("jsonrpc") != "2.0":
            message_id = message.get("id") if isinstance(message, dict) else None
            return JSONResponse(
                _jsonrpc_error(message_id, types.INVALID_REQUEST, "Invalid Request: jsonrpc must be '2.0'"),
                status_code=400,
            )

        method = message.get("method")
        message_id = message.get("id")
        params = message.get("params") or {}
        if not method:
            return JSONResponse(
                _jsonrpc_error(message_id, types.INVALID_REQUEST, "Invalid Request: method is required"),
                status_code=400,
            )

        headers: Dict[str, str] = {}
        session_id = request.headers.get(SESSION_HEADER)
        if method == "initialize":
            session_id = runtime.sessions.create(TransportKind.HTTP)
            headers[SESSION_HEADER] = session_id
        elif session_id is not None:
            try:
                runtime.sessions.touch(session_id)
            except UnknownSession as e:
                return JSONResponse(_jsonrpc_error(message_id, types.INVALID_REQUEST, e.message), status_code=404)

        if "id" not in message:
            # Notifications get no response body.
            logger.debug("Received notification %s", method)
            return Response(status_code=202, headers=headers)

        response = await handle_mcp_request(runtime, method, params, message_id)
        return JSONResponse(response, headers=headers)

    @app.delete("/mcp")
    async def mcp_terminate(request: Request):
        session_id = request.headers.get(SESSION_HEADER)
        if session_id is None or not runtime.sessions.destroy(session_id):
            return Response(status_code=404)
        return Response(status_code=204)

    return app


def _jsonrpc_error(message_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": message_id,
        "error": {"code": code, "message": message},
    }


def _jsonrpc_result(message_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": message_id, "result": result}


async def handle_mcp_request(
    runtime: RuntimeContext,
    method: str,
    params: Any,
    message_id: Any,
) -> Dict[str, Any]:
    """
    Handle an MCP protocol request.

    Tool calls go through the same dispatcher as every other transport, so
    validation, deadlines and error mapping are identical.
    """
    if not isinstance(params, dict):
        return _jsonrpc_error(message_id, types.INVALID_PARAMS, "Invalid params: params must be an object")

    if method == "initialize":
        result = types.InitializeResult(
            protocolVersion=PROTOCOL_VERSION,
            capabilities=types.ServerCapabilities(tools=types.ToolsCapability(listChanged=False)),
            serverInfo=types.Implementation(name="aurora-mcp", version=__version__),
            instructions=INSTRUCTIONS,
        )
        logger.info("Aurora OS MCP Server initialized by client")
        return _jsonrpc_result(message_id, result.model_dump(exclude_none=True))

    if method == "ping":
        return _jsonrpc_result(message_id, {})

    if method == "tools/list":
        tools = runtime.registry.list_tools()
        return _jsonrpc_result(message_id, {"tools": [tool.model_dump(exclude_none=True) for tool in tools]})

    if method == "tools/call":
        tool_name = params.get("name")
        if not tool_name:
            return _jsonrpc_error(message_id, types.INVALID_PARAMS, "Invalid params: 'name' is required")

        try:
            tool_request = ToolRequest(
                id=message_id if message_id is not None else "",
                tool=tool_name,
                arguments=params.get("arguments") or {},
            )
        except ValidationError as e:
            return _jsonrpc_error(message_id, types.INVALID_PARAMS, f"Invalid params: {e.error_count()} error(s)")

        response = await runtime.dispatcher.invoke(tool_request)
        if response.ok:
            text = response.result if isinstance(response.result, str) else json.dumps(response.result)
            call_result = types.CallToolResult(content=[types.TextContent(type="text", text=text)], isError=False)
        else:
            if response.error is None:
                raise RuntimeError(f"Failed call {message_id!r} carries no error")
            text = f"{response.error.kind}: {response.error.message}"
            call_result = types.CallToolResult(content=[types.TextContent(type="text", text=text)], isError=True)
        return _jsonrpc_result(message_id, call_result.model_dump(exclude_none=True))

    return _jsonrpc_error(message_id, types.METHOD_NOT_FOUND, f"Method not found: {method}")


def _bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    sock.set_inheritable(True)
    return sock


async def run_http_server(runtime: RuntimeContext, transport: Optional[str] = None) -> int:
    """
    Run the HTTP or SSE server using uvicorn.

    Returns the process exit code: 0 after a graceful shutdown, 1 when the
    listening socket cannot be bound.
    """
    import uvicorn

    settings = runtime.settings
    transport = transport or settings.transport
    host, port = settings.server_host, settings.server_port

    try:
        sock = _bind_socket(host, port)
    except OSError as e:
        logger.error("Failed to bind to %s:%s: %s", host, port, e)
        return 1

    app = create_http_app(runtime, transport)
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=settings.uvicorn_log_level,
        access_log=True,
        timeout_graceful_shutdown=int(settings.shutdown_grace),
    )
    server = uvicorn.Server(config)

    logger.info("Aurora MCP Server is running in %s mode on http://%s:%s", transport.upper(), host, port)
    logger.info("Available endpoints: %s", ", ".join(sorted(_endpoints(transport).values())))
    logger.info("Press Ctrl+C to stop the server")

    try:
        await server.serve(sockets=[sock])
    finally:
        sock.close()
    return 0
