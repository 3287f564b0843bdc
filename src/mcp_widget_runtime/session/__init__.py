# mcp_widget_runtime/session/__init__.py
"""
Session lifecycle for the MCP widget runtime.

    manager = SessionManager()
    session = manager.create(session_id, server, transport)
    manager.cleanup(max_age=3600)   # evict stale sessions
    await manager.close_all()       # on shutdown
"""
from mcp_widget_runtime.common.errors import SessionError, SessionNotFound
from mcp_widget_runtime.session.session_manager import Session, SessionManager, SessionSweeper

__all__ = [
    "Session",
    "SessionManager",
    "SessionSweeper",
    "SessionError",
    "SessionNotFound",
]
