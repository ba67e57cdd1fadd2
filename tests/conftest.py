from __future__ import annotations

import time
from typing import Callable, Optional

import pytest

from aurora_mcp.config import Settings
from aurora_mcp.dispatcher import Dispatcher
from aurora_mcp.runtime import RuntimeContext
from aurora_mcp.sessions import SessionManager
from aurora_mcp.tools import ToolRegistry, ToolSpec, greeting_tools, status_tools


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_runtime(
    *extra_specs: ToolSpec,
    clock: Optional[Callable[[], float]] = None,
    **overrides,
) -> RuntimeContext:
    settings = Settings(_env_file=None, **overrides)
    started_at = time.monotonic()
    registry = ToolRegistry()
    greeting_tools.register_tools(registry)
    status_tools.register_tools(registry, settings=settings, started_at=started_at)
    for spec in extra_specs:
        registry.register(spec)
    registry.freeze()
    return RuntimeContext(
        settings=settings,
        registry=registry,
        dispatcher=Dispatcher(registry, request_timeout=settings.request_timeout),
        sessions=SessionManager(clock=clock) if clock else SessionManager(),
        started_at=started_at,
    )


@pytest.fixture
def make_runtime():
    return _make_runtime


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _clear_aurora_env(monkeypatch):
    import os

    for key in list(os.environ):
        if key.startswith("AURORA_"):
            monkeypatch.delenv(key, raising=False)
