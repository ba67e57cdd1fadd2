from __future__ import annotations

import logging
import time

from pydantic import BaseModel, ConfigDict, Field

from .config import Settings
from .dispatcher import Dispatcher
from .sessions import SessionManager
from .tools import ToolRegistry
from .tools import greeting_tools, status_tools

logger = logging.getLogger(__name__)


class RuntimeContext(BaseModel):
    """
    Process-wide runtime context for the server.

    This is created once in `main.py` and passed down to the transports.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    settings: Settings
    registry: ToolRegistry
    dispatcher: Dispatcher
    sessions: SessionManager
    started_at: float = Field(default_factory=time.monotonic)


def build_registry(settings: Settings, started_at: float) -> ToolRegistry:
    """Register every tool group and freeze the registry."""
    registry = ToolRegistry()

    greeting_tools.register_tools(registry)
    status_tools.register_tools(registry, settings=settings, started_at=started_at)

    registry.freeze()
    logger.debug("Registered tools: %s", ", ".join(spec.name for spec in registry.list_all()))
    return registry


def build_runtime(settings: Settings) -> RuntimeContext:
    started_at = time.monotonic()
    registry = build_registry(settings, started_at)
    return RuntimeContext(
        settings=settings,
        registry=registry,
        dispatcher=Dispatcher(registry, request_timeout=settings.request_timeout),
        sessions=SessionManager(),
        started_at=started_at,
    )
