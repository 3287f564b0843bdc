# tests/conftest.py
"""
Shared fixtures for the MCP widget runtime tests.

Every test builds its own registries, session manager and event store, so no
state leaks between tests through module globals.
"""
import pytest
import sse_starlette

from mcp_widget_runtime.common.mcp_tool_decorator import ToolRegistry
from mcp_widget_runtime.resources.assets import WidgetAssetProvider
from mcp_widget_runtime.resources.widgets import build_resource_registry
from mcp_widget_runtime.server.server import WidgetMCPServer
from mcp_widget_runtime.session.session_manager import SessionManager
from mcp_widget_runtime.tools.echo_tool import echo
from mcp_widget_runtime.transport.event_store import InMemoryEventStore

ECHO_HTML = """<!doctype html>
<html>
<head><meta charset="utf-8"><title>echo-marquee</title></head>
<body><div id="echo-marquee-root"></div><script type="module" src="/echo-marquee.js"></script></body>
</html>
"""


class FakeClock:
    """Manually advanced clock for eviction tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """Stands in for StreamableHTTPTransport in session-manager tests."""

    def __init__(self, session_id: str = "s", fail_on_close: bool = False):
        self.session_id = session_id
        self.fail_on_close = fail_on_close
        self.closed = False
        self.terminated = False

    def terminate(self) -> None:
        self.terminated = True

    async def close(self) -> None:
        if self.fail_on_close:
            raise RuntimeError(f"close failed for {self.session_id}")
        self.closed = True


@pytest.fixture(autouse=True)
def reset_sse_app_status(monkeypatch):
    """sse-starlette < 3 keeps a module-level exit event bound to the first loop."""
    if int(sse_starlette.__version__.split(".")[0]) < 3:
        from sse_starlette.sse import AppStatus

        monkeypatch.setattr(AppStatus, "should_exit_event", None)


@pytest.fixture
def assets_dir(tmp_path):
    directory = tmp_path / "assets"
    directory.mkdir()
    (directory / "echo-marquee.html").write_text(ECHO_HTML, encoding="utf-8")
    return directory


@pytest.fixture
def asset_provider(assets_dir):
    return WidgetAssetProvider(assets_dir)


@pytest.fixture
def tool_registry():
    registry = ToolRegistry()
    registry.register(echo._mcp_tool)
    return registry


@pytest.fixture
def resource_registry(tool_registry, asset_provider):
    return build_resource_registry(tool_registry, asset_provider)


@pytest.fixture
def protocol_server(tool_registry, resource_registry):
    return WidgetMCPServer(tool_registry, resource_registry, session_id="test-session")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_manager(clock):
    return SessionManager(clock=clock)


@pytest.fixture
def event_store():
    return InMemoryEventStore()


@pytest.fixture
def test_config(assets_dir):
    return {
        "host": {"name": "test-widgets", "version": "9.9.9"},
        "server": {"json_response": True, "cors_origin": "*", "auth": None},
        "sessions": {"max_age": 3600, "cleanup_interval": 60},
        "widgets": {"environment": "production", "assets_dir": str(assets_dir)},
    }
