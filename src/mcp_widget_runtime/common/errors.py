# mcp_widget_runtime/common/errors.py
"""
Error hierarchy for the MCP widget runtime.

Protocol errors carry the JSON-RPC code they are reported with; HTTP-level
errors (``BadRequest``, ``SessionNotFound``) carry the status code the
transport handler answers with.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from mcp.types import INTERNAL_ERROR, INVALID_PARAMS

# MCP reserves -32002 for "resource not found"
RESOURCE_NOT_FOUND = -32002
# Server-defined codes used by the streamable HTTP handler
BAD_REQUEST = -32000
SESSION_NOT_FOUND = -32001


class WidgetRuntimeError(Exception):
    """Base class for all runtime errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(WidgetRuntimeError):
    """Invalid configuration or registry setup."""


class SessionError(WidgetRuntimeError):
    """Session bookkeeping violated an invariant."""


# ───────────────────────── protocol errors ─────────────────────────

class ProtocolError(WidgetRuntimeError):
    """An error reported to the client as a JSON-RPC error object."""

    code: int = INTERNAL_ERROR

    @property
    def data(self) -> Optional[Any]:
        return None

    def to_error(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


class UnknownTool(ProtocolError):
    code = INVALID_PARAMS

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class InvalidInput(ProtocolError):
    """Arguments failed schema validation; ``errors`` holds per-field detail."""

    code = INVALID_PARAMS

    def __init__(self, tool_name: str, errors: List[Dict[str, str]]):
        super().__init__(f"Invalid arguments for tool {tool_name}")
        self.tool_name = tool_name
        self.errors = errors

    @property
    def data(self) -> Dict[str, Any]:
        return {"errors": self.errors}


class ToolExecutionFailed(ProtocolError):
    code = INTERNAL_ERROR

    def __init__(self, tool_name: str):
        super().__init__(f"Tool execution failed: {tool_name}")
        self.tool_name = tool_name


class UnknownResource(ProtocolError):
    code = RESOURCE_NOT_FOUND

    def __init__(self, uri: str):
        super().__init__(f"Unknown resource: {uri}")
        self.uri = uri


class ResourceLoadFailed(ProtocolError):
    code = INTERNAL_ERROR

    def __init__(self, uri: str, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to load resource: {uri}")
        self.uri = uri
        self.cause = cause


# ───────────────────────── HTTP-level errors ─────────────────────────

class BadRequest(WidgetRuntimeError):
    status_code = 400
    code = BAD_REQUEST


class SessionNotFound(WidgetRuntimeError):
    status_code = 404
    code = SESSION_NOT_FOUND

    def __init__(self, session_id: str):
        super().__init__("Session not found")
        self.session_id = session_id
