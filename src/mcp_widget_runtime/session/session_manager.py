# mcp_widget_runtime/session/session_manager.py
"""
Session lifecycle management.

``SessionManager`` owns the map of session id → ``Session``.  It is the only
structure mutated by many in-flight requests at once, so every access goes
through one lock and scans work on a snapshot.  A ``SessionSweeper`` evicts
sessions older than ``max_age`` on a fixed interval.
"""
from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from mcp_widget_runtime.common.errors import SessionError
from mcp_widget_runtime.server.logging_config import get_logger

if TYPE_CHECKING:  # pragma: no cover
    from mcp_widget_runtime.server.server import WidgetMCPServer
    from mcp_widget_runtime.transport.streamable_http import StreamableHTTPTransport

logger = get_logger("mcp_widget_runtime.session")


@dataclass(frozen=True)
class Session:
    session_id: str
    server: "WidgetMCPServer"
    transport: "StreamableHTTPTransport"
    created_at: float


class SessionManager:
    """Thread-safe registry of live sessions."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def create(self, session_id: str, server: "WidgetMCPServer", transport: "StreamableHTTPTransport") -> Session:
        session = Session(session_id, server, transport, self._clock())
        with self._lock:
            if session_id in self._sessions:
                raise SessionError(f"Session already exists: {session_id}")
            self._sessions[session_id] = session
            count = len(self._sessions)
        logger.info("Session created: %s (sessions=%d)", session_id, count)
        return session

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(session_id, None)
            count = len(self._sessions)
        if removed is None:
            return False
        logger.info("Session deleted: %s (sessions=%d)", session_id, count)
        return True

    def cleanup(self, max_age: float) -> int:
        """
        Evict every session older than *max_age* seconds.

        Evicted transports are terminated, which discards their event
        streams.  Returns the number of sessions removed.
        """
        now = self._clock()
        evicted: List[Session] = []
        with self._lock:
            for session_id, session in list(self._sessions.items()):
                if now - session.created_at > max_age:
                    del self._sessions[session_id]
                    evicted.append(session)
            remaining = len(self._sessions)

        for session in evicted:
            logger.info("Cleaned up stale session %s (age=%.1fs)", session.session_id, now - session.created_at)
            try:
                session.transport.terminate()
            except Exception as e:
                logger.error("Error terminating transport for %s: %s", session.session_id, e, exc_info=True)

        if evicted:
            logger.info("Session cleanup complete: cleaned=%d remaining=%d", len(evicted), remaining)
        return len(evicted)

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions.keys())

    async def close_all(self) -> None:
        """Close every transport (best effort), then forget all sessions."""
        with self._lock:
            sessions = list(self._sessions.values())
        logger.info("Closing all sessions (count=%d)", len(sessions))

        for session in sessions:
            try:
                await session.transport.close()
                logger.debug("Transport closed for %s", session.session_id)
            except Exception as e:
                logger.error("Error closing transport for %s: %s", session.session_id, e, exc_info=True)

        with self._lock:
            self._sessions.clear()
        logger.info("All sessions closed")


class SessionSweeper:
    """Runs ``SessionManager.cleanup`` every *interval* seconds."""

    def __init__(self, manager: SessionManager, max_age: float, interval: float = 60.0):
        self.manager = manager
        self.max_age = max_age
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="session-sweeper")
        logger.debug("Session sweeper started (interval=%ss, max_age=%ss)", self.interval, self.max_age)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("Session sweeper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.manager.cleanup(self.max_age)
            except Exception as e:
                logger.error("Session sweep failed: %s", e, exc_info=True)
