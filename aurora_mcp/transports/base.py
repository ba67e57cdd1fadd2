from __future__ import annotations

import abc
import logging
from typing import Optional

import anyio

from ..dispatcher import Dispatcher
from ..errors import TransportError, UnknownSession
from ..models import ToolRequest, ToolResponse
from ..sessions import SessionManager, TransportKind

logger = logging.getLogger(__name__)


class Transport(abc.ABC):
    """
    One client channel: receive requests, send responses, signal loss.

    `receive` returns None once the channel is exhausted or closed and raises
    TransportError for frames that cannot be decoded.
    """

    kind: TransportKind

    @abc.abstractmethod
    async def receive(self) -> Optional[ToolRequest]:
        ...

    @abc.abstractmethod
    async def send(self, response: ToolResponse) -> None:
        ...

    @abc.abstractmethod
    def connection_lost(self) -> None:
        ...


async def serve_transport(
    transport: Transport,
    dispatcher: Dispatcher,
    sessions: SessionManager,
    session_id: Optional[str] = None,
    *,
    sequential: bool = True,
) -> None:
    """
    Pump requests from `transport` through `dispatcher` until it is exhausted.

    In sequential mode each request completes before the next one is read, so
    responses leave in arrival order. Otherwise requests run concurrently and
    responses leave in completion order. Returns once every in-flight request
    has finished.
    """
    async with anyio.create_task_group() as tg:
        while True:
            try:
                request = await transport.receive()
            except TransportError as e:
                logger.warning("Transport error on %s channel: %s", transport.kind.value, e.message)
                await _deliver(transport, sessions, session_id, ToolResponse.failure(e.request_id, e))
                continue

            if request is None:
                break

            request = request.for_session(session_id)
            if sequential:
                await _handle(transport, dispatcher, sessions, request)
            else:
                tg.start_soon(_handle, transport, dispatcher, sessions, request)


async def _handle(
    transport: Transport,
    dispatcher: Dispatcher,
    sessions: SessionManager,
    request: ToolRequest,
) -> None:
    session_id = request.session_id
    if session_id is not None:
        try:
            sessions.touch(session_id)
        except UnknownSession as e:
            await _send(transport, ToolResponse.failure(request.id, e))
            return

    response = await dispatcher.invoke(request)
    await _deliver(transport, sessions, session_id, response)


async def _deliver(
    transport: Transport,
    sessions: SessionManager,
    session_id: Optional[str],
    response: ToolResponse,
) -> None:
    if session_id is not None and not sessions.is_open(session_id):
        logger.info("Dropping response %s: session %s is closed", response.id, session_id)
        return
    await _send(transport, response)


async def _send(transport: Transport, response: ToolResponse) -> None:
    try:
        await transport.send(response)
    except (anyio.ClosedResourceError, anyio.BrokenResourceError, OSError) as e:
        logger.warning("Dropping response %s: channel closed (%s)", response.id, type(e).__name__)
