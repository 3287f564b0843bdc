# mcp_widget_runtime/transport/__init__.py
from mcp_widget_runtime.transport.event_store import EventEntry, EventStream, InMemoryEventStore
from mcp_widget_runtime.transport.streamable_http import (
    LAST_EVENT_ID_HEADER,
    MCP_SESSION_ID_HEADER,
    StreamableHTTPTransport,
)

__all__ = [
    "EventEntry",
    "EventStream",
    "InMemoryEventStore",
    "StreamableHTTPTransport",
    "MCP_SESSION_ID_HEADER",
    "LAST_EVENT_ID_HEADER",
]
