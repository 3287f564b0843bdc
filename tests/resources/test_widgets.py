# tests/resources/test_widgets.py
import pytest

from mcp_widget_runtime.common.errors import ConfigurationError, ResourceLoadFailed, UnknownResource
from mcp_widget_runtime.common.mcp_tool_decorator import ToolRegistry, mcp_tool
from mcp_widget_runtime.resources.widgets import (
    WIDGET_MIME_TYPE,
    ResourceRegistry,
    WidgetDescriptor,
    build_resource_registry,
    widget_id_from_uri,
)
from mcp_widget_runtime.tools.echo_tool import ECHO_WIDGET


def test_widget_uri_and_resource():
    assert ECHO_WIDGET.uri == "ui://widget/echo-marquee.html"
    resource = ECHO_WIDGET.to_mcp_resource()
    assert resource.mimeType == WIDGET_MIME_TYPE
    assert resource.name == "Echo Marquee"
    assert resource.description.startswith("Interactive scrolling marquee")


@pytest.mark.parametrize(
    "uri, expected",
    [
        ("ui://widget/echo-marquee.html", "echo-marquee"),
        ("ui://widget/.html", None),
        ("ui://other/echo.html", None),
        ("https://example.com/echo.html", None),
        ("ui://widget/echo.js", None),
    ],
)
def test_widget_id_from_uri(uri, expected):
    assert widget_id_from_uri(uri) == expected


def test_registry_collects_tool_widgets(tool_registry, asset_provider):
    registry = build_resource_registry(tool_registry, asset_provider)
    assert len(registry) == 1
    assert registry.get(ECHO_WIDGET.uri) == ECHO_WIDGET


def test_shared_widget_registered_once(asset_provider):
    tools = ToolRegistry()
    chart = WidgetDescriptor(id="chart", title="Chart")

    @mcp_tool(name="a", widget=chart, registry=tools)
    def a() -> dict:
        return {}

    @mcp_tool(name="b", widget=chart, registry=tools)
    def b() -> dict:
        return {}

    registry = build_resource_registry(tools, asset_provider, extra_widgets=[ECHO_WIDGET])
    assert sorted(w.id for w in registry.list()) == ["chart", "echo-marquee"]


def test_conflicting_widget_rejected(asset_provider):
    registry = ResourceRegistry(asset_provider, [WidgetDescriptor(id="w", title="One")])
    with pytest.raises(ConfigurationError):
        registry.register(WidgetDescriptor(id="w", title="Two"))


@pytest.mark.asyncio
async def test_read_returns_fresh_html(resource_registry, assets_dir):
    first = await resource_registry.read(ECHO_WIDGET.uri)
    assert first.mimeType == WIDGET_MIME_TYPE

    (assets_dir / "echo-marquee.html").write_text("<html>rebuilt</html>", encoding="utf-8")
    second = await resource_registry.read(ECHO_WIDGET.uri)
    assert second.text == "<html>rebuilt</html>"


@pytest.mark.asyncio
async def test_read_unknown_uri(resource_registry):
    with pytest.raises(UnknownResource):
        await resource_registry.read("ui://widget/nope.html")


@pytest.mark.asyncio
async def test_read_missing_file_wraps_cause(resource_registry, assets_dir):
    (assets_dir / "echo-marquee.html").unlink()
    with pytest.raises(ResourceLoadFailed) as excinfo:
        await resource_registry.read(ECHO_WIDGET.uri)
    assert "Widget HTML not found" in str(excinfo.value.cause)
    assert excinfo.value.__cause__ is excinfo.value.cause
