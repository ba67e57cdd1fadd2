from __future__ import annotations

import io
import logging
import signal
import sys
from typing import IO, TYPE_CHECKING, Optional, TextIO

import anyio
import anyio.to_thread

from ..errors import TransportError
from ..models import ToolRequest, ToolResponse, decode_request, encode_response
from ..sessions import TransportKind
from .base import Transport, serve_transport

if TYPE_CHECKING:
    from ..runtime import RuntimeContext

logger = logging.getLogger(__name__)


class StdioTransport(Transport):
    """
    Newline-delimited JSON read from `stdin` and written to the text stream `stdout`.

    `stdin` may be binary, in which case each line is decoded as strict UTF-8
    on its own. Blank lines are ignored. End of input, or `connection_lost()`,
    ends the channel.
    """

    kind = TransportKind.STDIO

    def __init__(self, stdin: IO, stdout: TextIO) -> None:
        self._stdin = stdin
        self._stdout = stdout
        self._closing = False
        self._read_scope: Optional[anyio.CancelScope] = None

    async def receive(self) -> Optional[ToolRequest]:
        while not self._closing:
            with anyio.CancelScope() as scope:
                self._read_scope = scope
                try:
                    line = await anyio.to_thread.run_sync(self._stdin.readline, abandon_on_cancel=True)
                except UnicodeDecodeError as e:
                    self._read_scope = None
                    raise TransportError(f"Malformed input: {e}") from e
            self._read_scope = None
            if scope.cancel_called or not line:
                return None
            if line.strip():
                return decode_request(line)
        return None

    async def send(self, response: ToolResponse) -> None:
        self._stdout.write(encode_response(response) + "\n")
        self._stdout.flush()

    def connection_lost(self) -> None:
        self._closing = True
        if self._read_scope is not None:
            self._read_scope.cancel()


async def _shutdown_on_signal(
    runtime: "RuntimeContext",
    transport: StdioTransport,
    cancel_scope: anyio.CancelScope,
) -> None:
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            logger.info("Received %s, shutting down", signal.Signals(signum).name)
            runtime.sessions.begin_shutdown()
            transport.connection_lost()
            await anyio.sleep(runtime.settings.shutdown_grace)
            logger.warning("Grace period expired; abandoning in-flight request")
            cancel_scope.cancel()
            return


async def run_stdio_server(
    runtime: "RuntimeContext",
    stdin: Optional[IO] = None,
    stdout: Optional[TextIO] = None,
    handle_signals: bool = True,
) -> None:
    """Serve one client over stdin/stdout until end of input or a shutdown signal."""
    transport = StdioTransport(
        stdin or sys.stdin.buffer,
        stdout or io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8"),
    )
    session_id = runtime.sessions.create(TransportKind.STDIO, on_close=transport.connection_lost)
    logger.info("Aurora MCP Server is running in STDIO mode and waiting for requests")

    try:
        async with anyio.create_task_group() as tg:
            if handle_signals:
                tg.start_soon(_shutdown_on_signal, runtime, transport, tg.cancel_scope)
            await serve_transport(
                transport,
                runtime.dispatcher,
                runtime.sessions,
                session_id,
                sequential=True,
            )
            tg.cancel_scope.cancel()
    finally:
        runtime.sessions.destroy(session_id)
        logger.info("STDIO session %s ended", session_id)
