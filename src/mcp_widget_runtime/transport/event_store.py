# mcp_widget_runtime/transport/event_store.py
"""
Resumable event streams.

Every outbound message of a session is appended to that session's
``EventStream`` and receives the next sequence number (1, 2, 3, ...).  The
sequence number doubles as the SSE event id, so a client that reconnects with
``Last-Event-ID: N`` is replayed exactly the entries after ``N``.

Each entry is tagged with the id of the HTTP stream it was written to (one
per POST, plus the standalone GET stream).  Sequence numbers are shared by
all streams of a session; replay and tailing are filtered by stream so a
response is only ever delivered on the stream of the request that caused it.

Streams live in memory for the lifetime of their session only.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from mcp_widget_runtime.server.logging_config import get_logger

logger = get_logger("mcp_widget_runtime.event_store")

# stream id of the standalone GET stream (server-initiated messages)
GET_STREAM_ID = "_GET_stream"


@dataclass(frozen=True)
class EventEntry:
    sequence: int
    message: Dict[str, Any]
    stream_id: str = GET_STREAM_ID


class EventStream:
    """Append-only log of one session's outbound messages."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self._entries: List[EventEntry] = []
        self._lock = asyncio.Lock()
        # replaced on every change; readers wait on the current one
        self._waiter = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_sequence(self) -> int:
        return self._entries[-1].sequence if self._entries else 0

    def __len__(self) -> int:
        return len(self._entries)

    async def append(self, message: Dict[str, Any], stream_id: str = GET_STREAM_ID) -> int:
        """Store *message* on *stream_id* and return its sequence number."""
        async with self._lock:
            if self._closed:
                raise RuntimeError(f"Event stream for session {self.session_id} is closed")
            entry = EventEntry(self.last_sequence + 1, message, stream_id)
            self._entries.append(entry)
        self._signal()
        return entry.sequence

    def _signal(self) -> None:
        waiter, self._waiter = self._waiter, asyncio.Event()
        waiter.set()

    def replay_from(self, last_seen: int, stream_id: Optional[str] = None) -> List[EventEntry]:
        """
        Entries with ``sequence > last_seen`` in ascending order, restricted to
        *stream_id* when given.
        """
        # sequence N lives at index N - 1
        entries = self._entries[max(last_seen, 0):]
        if stream_id is None:
            return entries
        return [entry for entry in entries if entry.stream_id == stream_id]

    def stream_of(self, sequence: int) -> Optional[str]:
        """Stream id the entry *sequence* was written to, ``None`` if unknown."""
        if 1 <= sequence <= len(self._entries):
            return self._entries[sequence - 1].stream_id
        return None

    async def wait_for(self, after: int, timeout: Optional[float] = None) -> bool:
        """
        Wait until an entry beyond *after* exists or the stream closes.

        Returns ``True`` when new entries are available.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while not self._closed and self.last_sequence <= after:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                break
            try:
                await asyncio.wait_for(self._waiter.wait(), remaining)
            except asyncio.TimeoutError:
                break
        return self.last_sequence > after

    def close(self) -> None:
        """Mark the stream closed and wake every waiting reader."""
        if self._closed:
            return
        self._closed = True
        self._signal()


class InMemoryEventStore:
    """Session id → ``EventStream``; sharded so sessions never contend."""

    def __init__(self) -> None:
        self._streams: Dict[str, EventStream] = {}

    def open(self, session_id: str) -> EventStream:
        stream = self._streams.get(session_id)
        if stream is None:
            stream = self._streams[session_id] = EventStream(session_id)
        return stream

    def get(self, session_id: str) -> Optional[EventStream]:
        return self._streams.get(session_id)

    async def append(self, session_id: str, message: Dict[str, Any], stream_id: str = GET_STREAM_ID) -> int:
        return await self.open(session_id).append(message, stream_id)

    def replay_from(
        self, session_id: str, last_seen: int, stream_id: Optional[str] = None
    ) -> List[EventEntry]:
        stream = self._streams.get(session_id)
        return stream.replay_from(last_seen, stream_id) if stream else []

    def discard(self, session_id: str) -> None:
        stream = self._streams.pop(session_id, None)
        if stream is not None:
            stream.close()
            logger.debug("Discarded event stream for %s (%d events)", session_id, len(stream))

    def __len__(self) -> int:
        return len(self._streams)
