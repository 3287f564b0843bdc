# mcp_widget_runtime/server/http_app.py
"""
HTTP front end: the Starlette application serving ``/mcp`` and ``/health``.

Routing on ``/mcp`` is keyed by the ``mcp-session-id`` header:

* no header + ``initialize`` POST → mint a session, register it, respond
* no header + anything else       → 400 Bad Request
* header of a live session        → that session's transport
* header of an unknown session    → 404 Session not found

The session is registered before the handshake response is returned, so a
follow-up request carrying the new id always finds it.
"""
import contextlib
import json
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from mcp import types
from starlette.applications import Starlette
from starlette.datastructures import MutableHeaders
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route
from starlette.types import ASGIApp, Receive, Scope, Send

from mcp_widget_runtime.common.errors import BadRequest, SessionNotFound
from mcp_widget_runtime.common.mcp_tool_decorator import ToolRegistry
from mcp_widget_runtime.common.verify_credentials import validate_token
from mcp_widget_runtime.resources.widgets import ResourceRegistry
from mcp_widget_runtime.server.logging_config import get_logger
from mcp_widget_runtime.server.server import WidgetMCPServer, is_initialize_request
from mcp_widget_runtime.session.session_manager import SessionManager, SessionSweeper
from mcp_widget_runtime.transport.event_store import InMemoryEventStore
from mcp_widget_runtime.transport.streamable_http import (
    LAST_EVENT_ID_HEADER,
    MCP_SESSION_ID_HEADER,
    StreamableHTTPTransport,
    error_response,
)

logger = get_logger("mcp_widget_runtime.http")

PUBLIC_PATHS = ("/health",)


class AuthMiddleware:
    """Bearer-token auth for everything except ``PUBLIC_PATHS``."""

    def __init__(self, app: ASGIApp, auth: Optional[str] = None):
        self.app = app
        self.auth = auth

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http" or self.auth is None or scope["path"] in PUBLIC_PATHS:
            return await self.app(scope, receive, send)
        if scope["method"] == "OPTIONS":
            return await self.app(scope, receive, send)

        request = Request(scope, receive=receive)
        headers = MutableHeaders(scope=scope)
        token = ""

        if self.auth == "bearer":
            match = re.match(r"Bearer\s+(.+)", headers.get("Authorization", ""), re.IGNORECASE)
            if match:
                token = match.group(1)
            if not token:
                token = request.cookies.get("jwt_token", "")

        if not token:
            response = JSONResponse({"error": "Not authenticated"}, status_code=401)
            return await response(scope, receive, send)

        try:
            scope["user"] = await validate_token(token)
        except HTTPException as ex:
            response = JSONResponse({"error": ex.detail}, status_code=ex.status_code, headers=ex.headers)
            return await response(scope, receive, send)

        await self.app(scope, receive, send)


class MCPEndpoint:
    """Resolves or creates the session for each ``/mcp`` request."""

    def __init__(
        self,
        tools: ToolRegistry,
        resources: ResourceRegistry,
        session_manager: SessionManager,
        event_store: InMemoryEventStore,
        config: Dict[str, Any],
    ):
        self.tools = tools
        self.resources = resources
        self.session_manager = session_manager
        self.event_store = event_store
        self.server_name = config.get("host", {}).get("name", "mcp-widget-runtime")
        self.server_version = str(config.get("host", {}).get("version", "1.0.0"))
        self.json_response = bool(config.get("server", {}).get("json_response", False))

    async def handle(self, request: Request) -> Response:
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        client = request.client.host if request.client else None
        logger.info("MCP request: %s session=%s client=%s", request.method, session_id, client)

        try:
            body = None
            if request.method == "POST":
                try:
                    body = json.loads(await request.body())
                except ValueError:
                    logger.warning("Unparseable MCP body (session=%s)", session_id)
                    return error_response(400, types.PARSE_ERROR, "Parse error")

            if session_id is None:
                if request.method == "POST" and is_initialize_request(body):
                    return await self._initialize_session(request, body)
                raise BadRequest("Bad Request: No valid session ID provided")

            session = self.session_manager.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            return await session.transport.handle_request(request, body)

        except (BadRequest, SessionNotFound) as exc:
            logger.warning("Invalid MCP request: %s (method=%s session=%s)", exc.message, request.method, session_id)
            return error_response(exc.status_code, exc.code, exc.message)
        except Exception as exc:
            logger.error("Error handling MCP request (session=%s): %s", session_id, exc, exc_info=True)
            return error_response(500, types.INTERNAL_ERROR, "Internal server error")

    async def _initialize_session(self, request: Request, body: Dict[str, Any]) -> Response:
        session_id = uuid.uuid4().hex
        logger.info("Initializing new session %s", session_id)

        transport = StreamableHTTPTransport(
            session_id,
            self.event_store,
            json_response=self.json_response,
            on_close=self.session_manager.delete,
        )
        server = WidgetMCPServer(
            self.tools,
            self.resources,
            server_name=self.server_name,
            server_version=self.server_version,
        )
        transport.connect(server)

        response = await transport.handle_request(request, body)
        if not server.initialized:
            transport.terminate()
            del response.headers[MCP_SESSION_ID_HEADER]
            logger.warning("Handshake failed; session %s not registered", session_id)
            return response

        self.session_manager.create(session_id, server, transport)
        return response

    async def health(self, request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "version": self.server_version,
                "sessions": self.session_manager.count(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )


def create_app(
    config: Dict[str, Any],
    tools: ToolRegistry,
    resources: ResourceRegistry,
    session_manager: Optional[SessionManager] = None,
    event_store: Optional[InMemoryEventStore] = None,
) -> Starlette:
    """
    Build the Starlette application.

    The app lifespan starts the session sweeper and, on shutdown, stops it and
    drains every session.
    """
    session_manager = session_manager or SessionManager()
    event_store = event_store or InMemoryEventStore()
    server_cfg = config.get("server", {})
    sessions_cfg = config.get("sessions", {})

    endpoint = MCPEndpoint(tools, resources, session_manager, event_store, config)
    sweeper = SessionSweeper(
        session_manager,
        max_age=float(sessions_cfg.get("max_age", 3600)),
        interval=float(sessions_cfg.get("cleanup_interval", 60)),
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        sweeper.start()
        try:
            yield
        finally:
            logger.info("Shutting down MCP endpoint")
            await sweeper.stop()
            await session_manager.close_all()

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=[server_cfg.get("cors_origin", "*")],
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=[
                "Content-Type",
                "Authorization",
                MCP_SESSION_ID_HEADER,
                LAST_EVENT_ID_HEADER,
                "mcp-protocol-version",
            ],
            expose_headers=[MCP_SESSION_ID_HEADER],
        ),
        Middleware(AuthMiddleware, auth=server_cfg.get("auth")),
    ]

    app = Starlette(
        routes=[
            Route("/mcp", endpoint=endpoint.handle, methods=["GET", "POST", "DELETE"]),
            Route("/health", endpoint=endpoint.health, methods=["GET"]),
        ],
        middleware=middleware,
        lifespan=lifespan,
    )
    app.state.session_manager = session_manager
    app.state.event_store = event_store
    app.state.sweeper = sweeper
    return app
