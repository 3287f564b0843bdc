# mcp_widget_runtime/resources/widgets.py
"""
Widget resources.

A widget is a bundled HTML document the UI host renders in place of plain
tool output.  Every widget is exposed as an MCP resource under the
``ui://widget/<id>.html`` scheme with the ``text/html+skybridge`` mime type;
the host refuses to render content tagged with anything else.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from mcp import types

from mcp_widget_runtime.common.errors import ConfigurationError, ResourceLoadFailed, UnknownResource
from mcp_widget_runtime.server.logging_config import get_logger

if TYPE_CHECKING:  # pragma: no cover
    from mcp_widget_runtime.common.mcp_tool_decorator import ToolRegistry
    from mcp_widget_runtime.resources.assets import WidgetAssetProvider

logger = get_logger("mcp_widget_runtime.resources")

WIDGET_URI_SCHEME = "ui://widget/"
WIDGET_MIME_TYPE = "text/html+skybridge"


@dataclass(frozen=True)
class WidgetDescriptor:
    """Static description of one widget; ``id`` matches the built asset name."""

    id: str
    title: str
    description: str = ""

    @property
    def uri(self) -> str:
        return f"{WIDGET_URI_SCHEME}{self.id}.html"

    def to_mcp_resource(self) -> types.Resource:
        return types.Resource(
            uri=self.uri,
            name=self.title,
            title=self.title,
            description=self.description or None,
            mimeType=WIDGET_MIME_TYPE,
        )


def widget_id_from_uri(uri: str) -> Optional[str]:
    """Return the widget id encoded in *uri*, or ``None`` for foreign URIs."""
    if not uri.startswith(WIDGET_URI_SCHEME) or not uri.endswith(".html"):
        return None
    widget_id = uri[len(WIDGET_URI_SCHEME):-len(".html")]
    return widget_id or None


class ResourceRegistry:
    """
    Read-only (after startup) map of widget URI to descriptor.

    Content is never cached here: each read goes to the asset provider so a
    rebuilt widget is picked up without restarting the server.
    """

    def __init__(self, assets: "WidgetAssetProvider", widgets: Iterable[WidgetDescriptor] = ()):
        self.assets = assets
        self._widgets: Dict[str, WidgetDescriptor] = {}
        for widget in widgets:
            self.register(widget)

    def register(self, widget: WidgetDescriptor) -> None:
        existing = self._widgets.get(widget.uri)
        if existing is not None and existing != widget:
            raise ConfigurationError(f"Conflicting widget registered for {widget.uri}")
        self._widgets[widget.uri] = widget

    def get(self, uri: str) -> Optional[WidgetDescriptor]:
        return self._widgets.get(uri)

    def list(self) -> List[WidgetDescriptor]:
        return list(self._widgets.values())

    def __len__(self) -> int:
        return len(self._widgets)

    async def read(self, uri: str) -> types.TextResourceContents:
        """
        Load the HTML for *uri*.

        Raises:
            UnknownResource: *uri* is not a registered widget.
            ResourceLoadFailed: the asset provider could not produce the HTML.
        """
        widget = self._widgets.get(uri)
        if widget is None:
            raise UnknownResource(uri)

        try:
            html = await self.assets.load(widget.id)
        except Exception as exc:
            raise ResourceLoadFailed(uri, exc) from exc

        return types.TextResourceContents(uri=uri, mimeType=WIDGET_MIME_TYPE, text=html)


def build_resource_registry(
    tools: "ToolRegistry",
    assets: "WidgetAssetProvider",
    extra_widgets: Iterable[WidgetDescriptor] = (),
) -> ResourceRegistry:
    """Register every widget bound to a tool, plus *extra_widgets*."""
    registry = ResourceRegistry(assets, extra_widgets)
    for tool in tools.list():
        if tool.widget is not None:
            registry.register(tool.widget)
    logger.debug("Registered %d widget resource(s)", len(registry))
    return registry
