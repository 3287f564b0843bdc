# mcp_widget_runtime/transport/streamable_http.py
"""
Streamable HTTP transport for one MCP session.

    POST   /mcp   JSON-RPC message (or batch) → JSON body or SSE stream
    GET    /mcp   SSE stream; ``Last-Event-ID`` resumes after that event
    DELETE /mcp   terminate the session

Every outbound message is appended to the session's ``EventStream`` before
it is written to the network, and its sequence number is used as the SSE
event id.  A client that loses its connection can therefore reconnect with
``Last-Event-ID`` and receive exactly the messages it missed on that stream.

Each POST gets its own stream id, so its responses are never repeated on the
standalone GET stream.  Resuming with the id of a POST event replays the rest
of that POST's stream and then ends; any other GET follows the standalone
stream until the session terminates.
"""
from __future__ import annotations

import json
import uuid
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from mcp import types
from sse_starlette.sse import EventSourceResponse
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from mcp_widget_runtime.common.errors import SESSION_NOT_FOUND, SessionNotFound
from mcp_widget_runtime.server.logging_config import get_logger
from mcp_widget_runtime.server.server import WidgetMCPServer, jsonrpc_error
from mcp_widget_runtime.transport.event_store import GET_STREAM_ID, EventEntry, InMemoryEventStore

logger = get_logger("mcp_widget_runtime.transport")

MCP_SESSION_ID_HEADER = "mcp-session-id"
LAST_EVENT_ID_HEADER = "last-event-id"
CONTENT_TYPE_SSE = "text/event-stream"


def accepts_sse(request: Request) -> bool:
    return CONTENT_TYPE_SSE in request.headers.get("accept", "")


def error_response(status_code: int, code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(jsonrpc_error(None, code, message), status_code=status_code, headers=headers)


class StreamableHTTPTransport:
    """
    Session-bound transport.

    Owned exclusively by one session; ``on_close`` is invoked once when the
    transport is closed so the owner can drop the session.
    """

    def __init__(
        self,
        session_id: str,
        event_store: InMemoryEventStore,
        *,
        json_response: bool = False,
        on_close: Optional[Callable[[str], Any]] = None,
        ping_interval: int = 15,
    ):
        self.session_id = session_id
        self.event_store = event_store
        self.stream = event_store.open(session_id)
        self.json_response = json_response
        self.on_close = on_close
        self.ping_interval = ping_interval
        self.server: Optional[WidgetMCPServer] = None
        self._terminated = False

    @property
    def terminated(self) -> bool:
        return self._terminated

    def connect(self, server: WidgetMCPServer) -> None:
        self.server = server
        server.session_id = self.session_id

    def _headers(self) -> Dict[str, str]:
        return {MCP_SESSION_ID_HEADER: self.session_id}

    # ------------------------------------------------------------------ #
    #   request handling                                                  #
    # ------------------------------------------------------------------ #
    async def handle_request(self, request: Request, body: Any = None) -> Response:
        if self._terminated:
            return error_response(404, SESSION_NOT_FOUND, "Session not found")
        if self.server is None:
            raise RuntimeError("Transport is not connected to a server")

        if request.method == "POST":
            return await self._handle_post(request, body)
        if request.method == "GET":
            return self._handle_get(request)
        if request.method == "DELETE":
            await self.close()
            return Response(status_code=200, headers=self._headers())
        return error_response(405, types.INVALID_REQUEST, "Method Not Allowed")

    async def _handle_post(self, request: Request, body: Any) -> Response:
        batch = isinstance(body, list)
        messages: List[Any] = body if batch else [body]
        if not messages:
            return error_response(400, types.INVALID_REQUEST, "Invalid Request: empty batch", self._headers())

        sent = await self.dispatch(messages, uuid.uuid4().hex)
        if not sent:
            return Response(status_code=202, headers=self._headers())

        if self.json_response or not accepts_sse(request):
            payload = [entry.message for entry in sent] if batch else sent[0].message
            return JSONResponse(payload, headers=self._headers())

        return EventSourceResponse(
            self._format_events(_iterate(sent)),
            headers=self._headers(),
            ping=self.ping_interval,
        )

    def _handle_get(self, request: Request) -> Response:
        if not accepts_sse(request):
            return error_response(
                406, types.INVALID_REQUEST, "Not Acceptable: Client must accept text/event-stream", self._headers()
            )

        raw_last = request.headers.get(LAST_EVENT_ID_HEADER)
        stream_id = GET_STREAM_ID
        if raw_last is None:
            last_seen = self.stream.last_sequence
        else:
            try:
                last_seen = int(raw_last)
            except ValueError:
                return error_response(400, types.INVALID_REQUEST, "Invalid Last-Event-ID", self._headers())
            stream_id = self.stream.stream_of(last_seen) or GET_STREAM_ID
            logger.info("Session %s resuming stream %s after event %d", self.session_id, stream_id, last_seen)

        return EventSourceResponse(
            self._format_events(self.tail(last_seen, stream_id, follow=stream_id == GET_STREAM_ID)),
            headers=self._headers(),
            ping=self.ping_interval,
        )

    # ------------------------------------------------------------------ #
    #   event stream                                                      #
    # ------------------------------------------------------------------ #
    async def dispatch(self, messages: List[Any], stream_id: str) -> List[EventEntry]:
        """
        Run *messages* through the server, recording every reply on *stream_id*.

        Raises ``SessionNotFound`` when the session was terminated (evicted or
        deleted) while a message was being handled.
        """
        sent: List[EventEntry] = []
        for message in messages:
            reply = await self.server.handle_message(message)
            if self._terminated:
                raise SessionNotFound(self.session_id)
            if reply is None:
                continue
            sequence = await self.stream.append(reply, stream_id)
            sent.append(EventEntry(sequence, reply, stream_id))
        return sent

    def replay(self, last_seen: int, stream_id: Optional[str] = None) -> List[EventEntry]:
        return self.stream.replay_from(last_seen, stream_id)

    async def tail(
        self, last_seen: int, stream_id: str = GET_STREAM_ID, follow: bool = True
    ) -> AsyncIterator[EventEntry]:
        """
        Yield the entries of *stream_id* after *last_seen*.

        With *follow* the generator keeps yielding new entries of that stream
        until the session ends; otherwise it stops after the replay.
        """
        cursor = last_seen
        while True:
            # entries of other streams up to here are skipped for good
            scanned = self.stream.last_sequence
            for entry in self.stream.replay_from(cursor, stream_id):
                yield entry
            cursor = max(cursor, scanned)
            if not follow or self._terminated or self.stream.closed:
                return
            await self.stream.wait_for(cursor)

    async def _format_events(self, entries: AsyncIterator[EventEntry]) -> AsyncIterator[Dict[str, str]]:
        async for entry in entries:
            yield {"event": "message", "id": str(entry.sequence), "data": json.dumps(entry.message)}

    # ------------------------------------------------------------------ #
    #   lifecycle                                                         #
    # ------------------------------------------------------------------ #
    def terminate(self) -> None:
        """Stop serving and discard the event stream; safe to call repeatedly."""
        if self._terminated:
            return
        self._terminated = True
        self.event_store.discard(self.session_id)
        logger.info("Transport terminated for session %s", self.session_id)

    async def close(self) -> None:
        if self._terminated:
            return
        self.terminate()
        if self.on_close is not None:
            self.on_close(self.session_id)


async def _iterate(entries: List[EventEntry]) -> AsyncIterator[EventEntry]:
    for entry in entries:
        yield entry
