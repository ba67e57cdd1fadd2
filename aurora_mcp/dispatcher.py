from __future__ import annotations

import functools
import inspect
import logging
import time
from typing import Any

import anyio
import anyio.to_thread
from pydantic_core import PydanticSerializationError, to_jsonable_python

from .errors import HandlerError, ToolServerError, ToolTimeout, UnknownTool
from .models import ToolRequest, ToolResponse
from .tools import ToolRegistry, ToolSpec
from .validation import validate

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Resolve a tool call, validate it and run the handler under a deadline.

    Safe for concurrent use: the only shared state is the frozen registry.
    Calls are never retried.
    """

    def __init__(self, registry: ToolRegistry, request_timeout: float = 30.0) -> None:
        self._registry = registry
        self._timeout = request_timeout

    async def invoke(self, request: ToolRequest) -> ToolResponse:
        try:
            result = await self._call(request)
        except ToolServerError as e:
            logger.info("Tool call %s (%s) failed: %s: %s", request.id, request.tool, e.kind, e.message)
            return ToolResponse.failure(request.id, e)
        return ToolResponse.success(request.id, result)

    async def _call(self, request: ToolRequest) -> Any:
        spec = self._registry.lookup(request.tool)
        if spec is None:
            raise UnknownTool(f"Unknown tool '{request.tool}'")

        arguments = validate(spec, request.arguments)

        started = time.perf_counter()
        with anyio.move_on_after(self._timeout) as scope:
            result = await self._run_handler(spec, arguments)
        if scope.cancelled_caught:
            raise ToolTimeout(f"Tool '{spec.name}' did not finish within {self._timeout:g}s")

        logger.debug(
            "Tool call %s (%s) completed in %.1fms",
            request.id,
            spec.name,
            (time.perf_counter() - started) * 1000,
        )
        try:
            return to_jsonable_python(result)
        except PydanticSerializationError as e:
            raise HandlerError(f"Tool '{spec.name}' returned a value that is not JSON serialisable") from e

    async def _run_handler(self, spec: ToolSpec, arguments: dict) -> Any:
        try:
            if inspect.iscoroutinefunction(spec.handler):
                return await spec.handler(arguments)
            # Blocking handlers run in a worker thread that is abandoned on timeout.
            result = await anyio.to_thread.run_sync(
                functools.partial(spec.handler, arguments),
                abandon_on_cancel=True,
            )
            if inspect.isawaitable(result):
                result = await result
            return result
        except ToolServerError:
            raise
        except ValueError as e:
            raise HandlerError(str(e)) from e
        except Exception as e:
            logger.exception("Error executing tool %s", spec.name)
            raise HandlerError(f"Tool '{spec.name}' failed: internal error") from e
