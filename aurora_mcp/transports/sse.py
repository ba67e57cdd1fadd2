from __future__ import annotations

import functools
import logging
import uuid
from typing import TYPE_CHECKING, AsyncIterator, Dict, Optional

import anyio
from anyio.abc import TaskGroup
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from ..dispatcher import Dispatcher
from ..errors import TransportError, UnknownSession
from ..models import ToolRequest, ToolResponse, decode_request, encode_response
from ..sessions import SessionManager, TransportKind
from .base import Transport, serve_transport

if TYPE_CHECKING:
    from ..runtime import RuntimeContext

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


class SseChannel(Transport):
    """
    Two-sided channel for one SSE session.

    Requests arrive through `submit` (the POST endpoint); responses are read
    back out by `frames` (the GET stream).
    """

    kind = TransportKind.SSE

    def __init__(self, session_id: str, buffer_size: int = 64) -> None:
        self.session_id = session_id
        self._inbound_send, self._inbound_recv = anyio.create_memory_object_stream(buffer_size)
        self._outbound_send, self._outbound_recv = anyio.create_memory_object_stream(buffer_size)

    async def submit(self, request: ToolRequest) -> None:
        try:
            await self._inbound_send.send(request)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as e:
            raise UnknownSession(f"Session '{self.session_id}' has no open stream") from e

    async def receive(self) -> Optional[ToolRequest]:
        try:
            return await self._inbound_recv.receive()
        except (anyio.EndOfStream, anyio.ClosedResourceError):
            return None

    async def send(self, response: ToolResponse) -> None:
        await self._outbound_send.send(response)

    def connection_lost(self) -> None:
        self._inbound_send.close()
        self._outbound_send.close()

    async def next_response(self, timeout: float) -> Optional[ToolResponse]:
        """
        Wait up to `timeout` seconds for the next response.

        Returns None on timeout; raises anyio.EndOfStream once the channel is
        closed and drained.
        """
        with anyio.move_on_after(timeout):
            try:
                return await self._outbound_recv.receive()
            except anyio.ClosedResourceError as e:
                raise anyio.EndOfStream from e
        return None

    async def frames(self, keepalive: float) -> AsyncIterator[str]:
        yield f"event: endpoint\ndata: /events/{self.session_id}\n\n"
        while True:
            try:
                response = await self.next_response(keepalive)
            except anyio.EndOfStream:
                return
            if response is None:
                yield ": keep-alive\n\n"
            else:
                yield f"data: {encode_response(response)}\n\n"


class SseHub:
    """
    Owns the SSE channels and their dispatch workers.

    Each channel is registered as a session whose close callback tears the
    channel down, so idle reaping and client disconnects end the stream.
    """

    def __init__(self, sessions: SessionManager, dispatcher: Dispatcher) -> None:
        self._sessions = sessions
        self._dispatcher = dispatcher
        self._channels: Dict[str, SseChannel] = {}
        self._task_group: Optional[TaskGroup] = None

    def bind(self, task_group: TaskGroup) -> None:
        self._task_group = task_group

    def open(self, session_id: Optional[str] = None) -> SseChannel:
        if self._task_group is None:
            raise RuntimeError("SseHub is not running; bind() it to a task group first")

        channel = SseChannel(session_id or uuid.uuid4().hex)
        self._sessions.create(
            TransportKind.SSE,
            on_close=functools.partial(self._close, channel.session_id),
            session_id=channel.session_id,
        )
        self._channels[channel.session_id] = channel
        self._task_group.start_soon(self._serve, channel)
        logger.info("SSE session %s opened", channel.session_id)
        return channel

    def _close(self, session_id: str) -> None:
        channel = self._channels.pop(session_id, None)
        if channel is not None:
            channel.connection_lost()

    async def _serve(self, channel: SseChannel) -> None:
        await serve_transport(
            channel,
            self._dispatcher,
            self._sessions,
            channel.session_id,
            sequential=False,
        )
        logger.debug("SSE worker for session %s finished", channel.session_id)

    def channel(self, session_id: str) -> SseChannel:
        channel = self._channels.get(session_id)
        if channel is None or not self._sessions.is_open(session_id):
            raise UnknownSession(f"Unknown or expired session '{session_id}'")
        return channel

    async def submit(self, session_id: str, request: ToolRequest) -> None:
        channel = self.channel(session_id)
        await channel.submit(request)

    def __len__(self) -> int:
        return len(self._channels)


def build_sse_router(runtime: "RuntimeContext", hub: SseHub) -> APIRouter:
    router = APIRouter()
    keepalive = runtime.settings.sse_keepalive

    @router.get("/events")
    async def events(session: Optional[str] = Query(default=None)):
        """Open the server-to-client event stream for a session."""
        if session is not None and runtime.sessions.is_open(session):
            return JSONResponse(
                {"error": {"kind": "SessionConflict", "message": f"Session '{session}' already has a stream"}},
                status_code=409,
            )
        try:
            channel = hub.open(session)
        except TransportError as e:
            return JSONResponse({"error": {"kind": e.kind, "message": e.message}}, status_code=503)

        async def stream() -> AsyncIterator[str]:
            try:
                async for frame in channel.frames(keepalive):
                    yield frame
            finally:
                runtime.sessions.destroy(channel.session_id)

        return StreamingResponse(stream(), media_type="text/event-stream", headers=SSE_HEADERS)

    @router.post("/events/{session_id}", status_code=202)
    async def post_event(session_id: str, request: Request):
        """Accept a request for an open session; the response arrives on its stream."""
        try:
            tool_request = decode_request(await request.body())
        except TransportError as e:
            logger.warning("Rejected SSE message for session %s: %s", session_id, e.message)
            return JSONResponse(ToolResponse.failure(e.request_id, e).to_wire(), status_code=400)

        try:
            await hub.submit(session_id, tool_request)
        except UnknownSession as e:
            return JSONResponse(ToolResponse.failure(tool_request.id, e).to_wire(), status_code=404)

        return JSONResponse({"id": tool_request.id, "accepted": True}, status_code=202)

    return router
