from __future__ import annotations

import enum
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import anyio

from .errors import TransportError, UnknownSession

logger = logging.getLogger(__name__)

CloseCallback = Callable[[], None]


class TransportKind(str, enum.Enum):
    STDIO = "stdio"
    HTTP = "http"
    SSE = "sse"


@dataclass
class Session:
    id: str
    transport_kind: TransportKind
    created_at: float
    last_activity: float
    on_close: Optional[CloseCallback] = field(default=None, repr=False)


class SessionManager:
    """
    Keyed table of live sessions.

    The lock guards single insert/lookup/pop operations only; close callbacks
    run outside it and `reap` sweeps over a snapshot of ids, so one session's
    teardown never blocks traffic on another.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._accepting = True

    def create(
        self,
        transport_kind: TransportKind,
        on_close: Optional[CloseCallback] = None,
        session_id: Optional[str] = None,
    ) -> str:
        if not self._accepting:
            raise TransportError("Server is shutting down; no new sessions accepted")

        now = self._clock()
        session = Session(
            id=session_id or uuid.uuid4().hex,
            transport_kind=TransportKind(transport_kind),
            created_at=now,
            last_activity=now,
            on_close=on_close,
        )
        with self._lock:
            if session.id in self._sessions:
                raise ValueError(f"Session '{session.id}' already exists")
            self._sessions[session.id] = session
        logger.debug("Session %s opened (%s)", session.id, session.transport_kind.value)
        return session.id

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def is_open(self, session_id: str) -> bool:
        return self.get(session_id) is not None

    def touch(self, session_id: str) -> None:
        session = self.get(session_id)
        if session is None:
            raise UnknownSession(f"Unknown or expired session '{session_id}'")
        session.last_activity = self._clock()

    def destroy(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False

        logger.debug("Session %s closed", session_id)
        if session.on_close is not None:
            try:
                session.on_close()
            except Exception:
                logger.exception("Close callback for session %s failed", session_id)
        return True

    def reap(self, idle_threshold: float) -> int:
        """Destroy sessions idle for longer than `idle_threshold` seconds."""
        with self._lock:
            snapshot = list(self._sessions.keys())

        now = self._clock()
        reaped = 0
        for session_id in snapshot:
            session = self.get(session_id)
            if session is None or now - session.last_activity <= idle_threshold:
                continue
            if self.destroy(session_id):
                logger.info("Reaped idle session %s", session_id)
                reaped += 1
        return reaped

    async def run_reaper(self, interval: float, idle_threshold: float) -> None:
        while True:
            await anyio.sleep(interval)
            self.reap(idle_threshold)

    def begin_shutdown(self) -> None:
        self._accepting = False

    def close_all(self) -> int:
        with self._lock:
            snapshot = list(self._sessions.keys())
        return sum(1 for session_id in snapshot if self.destroy(session_id))

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
