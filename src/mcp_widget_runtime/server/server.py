# mcp_widget_runtime/server/server.py
"""
Per-session MCP protocol server.

One ``WidgetMCPServer`` is created for every session.  It validates incoming
JSON-RPC messages into the ``mcp.types.ClientRequest`` union and dispatches on
the concrete request model through a type-keyed handler table, so supporting a
new request kind means adding one entry there.

Tool results always carry three parts: a human-readable text block, the
tool's literal structured output, and ``_meta`` pointing at the widget the
host should render.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional, Type

from mcp import types
from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS
from pydantic import ValidationError

from mcp_widget_runtime.common.errors import (
    InvalidInput,
    ProtocolError,
    ResourceLoadFailed,
    ToolExecutionFailed,
    UnknownResource,
    UnknownTool,
)
from mcp_widget_runtime.common.mcp_tool_decorator import OUTPUT_TEMPLATE_META, ToolRegistry
from mcp_widget_runtime.resources.widgets import ResourceRegistry
from mcp_widget_runtime.server.logging_config import get_logger

logger = get_logger("mcp_widget_runtime.server")

# methods the server answers; anything else is METHOD_NOT_FOUND
SUPPORTED_METHODS = frozenset(
    {"initialize", "ping", "tools/list", "tools/call", "resources/list", "resources/read"}
)


# ───────────────────────── JSON-RPC envelopes ─────────────────────────

def jsonrpc_response(id: Any, result: Any) -> Dict[str, Any]:
    """Build a JSON-RPC 2.0 success response."""
    return {"jsonrpc": "2.0", "id": id, "result": result}


def jsonrpc_error(id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    """Build a JSON-RPC 2.0 error response."""
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": id, "error": error}


def is_initialize_request(message: Any) -> bool:
    return isinstance(message, dict) and message.get("method") == "initialize" and "id" in message


def _dump(result: types.Result) -> Dict[str, Any]:
    return result.model_dump(by_alias=True, mode="json", exclude_none=True)


class WidgetMCPServer:
    """Protocol server instance owned by exactly one session."""

    def __init__(
        self,
        tools: ToolRegistry,
        resources: ResourceRegistry,
        *,
        session_id: Optional[str] = None,
        server_name: str = "mcp-widget-runtime",
        server_version: str = "1.0.0",
        instructions: Optional[str] = None,
    ):
        self.tools = tools
        self.resources = resources
        self.session_id = session_id
        self.server_name = server_name
        self.server_version = server_version
        self.instructions = instructions

        self.initialized = False
        self.client_info: Optional[types.Implementation] = None

        self._request_handlers: Dict[Type[Any], Callable[[Any], Awaitable[types.Result]]] = {
            types.InitializeRequest: self._handle_initialize,
            types.PingRequest: self._handle_ping,
            types.ListToolsRequest: self._handle_list_tools,
            types.CallToolRequest: self._handle_call_tool,
            types.ListResourcesRequest: self._handle_list_resources,
            types.ReadResourceRequest: self._handle_read_resource,
        }

    # ------------------------------------------------------------------ #
    #   message entry point                                               #
    # ------------------------------------------------------------------ #
    async def handle_message(self, message: Any) -> Optional[Dict[str, Any]]:
        """
        Process one JSON-RPC message.

        Returns the response envelope for requests and ``None`` for
        notifications and client responses.
        """
        if not isinstance(message, dict) or message.get("jsonrpc") != "2.0":
            msg_id = message.get("id") if isinstance(message, dict) else None
            return jsonrpc_error(msg_id, types.INVALID_REQUEST, "Invalid Request")

        method = message.get("method")
        msg_id = message.get("id")

        if method is None:
            # a response to a server→client request; none are issued
            logger.debug("Ignoring client response %s in session %s", msg_id, self.session_id)
            return None
        if msg_id is None:
            self._handle_notification(method)
            return None

        try:
            request = types.ClientRequest.model_validate(message)
        except ValidationError as exc:
            if method not in SUPPORTED_METHODS:
                return jsonrpc_error(msg_id, types.METHOD_NOT_FOUND, f"Method not found: {method}")
            logger.warning("Invalid params for %s in session %s: %s", method, self.session_id, exc)
            return jsonrpc_error(
                msg_id,
                types.INVALID_PARAMS,
                f"Invalid params for {method}",
                [{"field": ".".join(str(p) for p in e["loc"]), "message": e["msg"]} for e in exc.errors()],
            )

        handler = self._request_handlers.get(type(request.root))
        if handler is None:
            return jsonrpc_error(msg_id, types.METHOD_NOT_FOUND, f"Method not found: {method}")

        try:
            result = await handler(request.root)
        except ProtocolError as exc:
            # already logged where it was detected
            return jsonrpc_error(msg_id, **exc.to_error())
        except Exception as exc:
            logger.error("Error handling %s in session %s: %s", method, self.session_id, exc, exc_info=True)
            return jsonrpc_error(msg_id, types.INTERNAL_ERROR, "Internal error")

        return jsonrpc_response(msg_id, _dump(result))

    def _handle_notification(self, method: str) -> None:
        if method == "notifications/initialized":
            logger.debug("Client confirmed initialization for session %s", self.session_id)
        else:
            logger.debug("Notification %s ignored in session %s", method, self.session_id)

    # ------------------------------------------------------------------ #
    #   request handlers                                                  #
    # ------------------------------------------------------------------ #
    async def _handle_initialize(self, request: types.InitializeRequest) -> types.InitializeResult:
        requested = request.params.protocolVersion
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else types.LATEST_PROTOCOL_VERSION
        self.client_info = request.params.clientInfo
        self.initialized = True
        logger.info(
            "Initialize from %s %s (protocol %s)",
            self.client_info.name,
            self.client_info.version,
            version,
        )
        return types.InitializeResult(
            protocolVersion=version,
            capabilities=types.ServerCapabilities(
                tools=types.ToolsCapability(listChanged=False),
                resources=types.ResourcesCapability(subscribe=False, listChanged=False),
            ),
            serverInfo=types.Implementation(name=self.server_name, version=self.server_version),
            instructions=self.instructions,
        )

    async def _handle_ping(self, request: types.PingRequest) -> types.EmptyResult:
        return types.EmptyResult()

    async def _handle_list_tools(self, request: types.ListToolsRequest) -> types.ListToolsResult:
        return self.list_tools()

    async def _handle_call_tool(self, request: types.CallToolRequest) -> types.CallToolResult:
        return await self.call_tool(request.params.name, request.params.arguments)

    async def _handle_list_resources(self, request: types.ListResourcesRequest) -> types.ListResourcesResult:
        return self.list_resources()

    async def _handle_read_resource(self, request: types.ReadResourceRequest) -> types.ReadResourceResult:
        return await self.read_resource(str(request.params.uri))

    # ------------------------------------------------------------------ #
    #   operations                                                        #
    # ------------------------------------------------------------------ #
    def list_tools(self) -> types.ListToolsResult:
        logger.debug("Listing %d tools for session %s", len(self.tools), self.session_id)
        return types.ListToolsResult(tools=[tool.to_mcp_tool() for tool in self.tools.list()])

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> types.CallToolResult:
        """
        Validate and execute a tool.

        Raises:
            UnknownTool: *name* is not registered (nothing is executed).
            InvalidInput: *arguments* violate the tool's input schema.
            ToolExecutionFailed: the tool function raised.
        """
        tool = self.tools.get(name)
        if tool is None:
            logger.warning("Unknown tool %r requested in session %s", name, self.session_id)
            raise UnknownTool(name)

        try:
            validated = tool.validate(arguments)
        except InvalidInput as exc:
            logger.warning("Invalid input for %s in session %s: %s", name, self.session_id, exc.errors)
            raise

        logger.info("Tool invoked: %s (session %s)", name, self.session_id)
        try:
            output = await tool.execute(validated)
        except Exception as exc:
            logger.error("Tool '%s' failed in session %s: %s", name, self.session_id, exc, exc_info=True)
            raise ToolExecutionFailed(name) from exc

        meta = None
        if tool.widget is not None:
            meta = {
                "outputTemplate": {"type": "resource", "resource": {"uri": tool.widget.uri}},
                OUTPUT_TEMPLATE_META: tool.widget.uri,
            }

        logger.debug("Tool %s succeeded in session %s", name, self.session_id)
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=tool.render_summary(validated))],
            structuredContent=output if isinstance(output, dict) else {"result": output},
            _meta=meta,
        )

    def list_resources(self) -> types.ListResourcesResult:
        logger.debug("Listing %d resources for session %s", len(self.resources), self.session_id)
        return types.ListResourcesResult(
            resources=[widget.to_mcp_resource() for widget in self.resources.list()]
        )

    async def read_resource(self, uri: str) -> types.ReadResourceResult:
        """
        Read a widget resource.

        Raises:
            UnknownResource: *uri* is not registered.
            ResourceLoadFailed: the widget HTML could not be loaded.
        """
        try:
            contents = await self.resources.read(uri)
        except UnknownResource:
            logger.warning("Unknown resource %s requested in session %s", uri, self.session_id)
            raise
        except ResourceLoadFailed as exc:
            logger.error(
                "Failed to load widget %s in session %s: %s", uri, self.session_id, exc.cause,
                exc_info=exc.cause,
            )
            raise

        logger.info("Widget resource loaded: %s (session %s)", uri, self.session_id)
        return types.ReadResourceResult(contents=[contents])
