# mcp_widget_runtime/tools/echo_tool.py
"""
Echo tool: returns the caller's message for the Echo Marquee widget.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Dict

from pydantic import Field

from mcp_widget_runtime.common.mcp_tool_decorator import mcp_tool
from mcp_widget_runtime.resources.widgets import WidgetDescriptor

ECHO_WIDGET = WidgetDescriptor(
    id="echo-marquee",
    title="Echo Marquee",
    description="Interactive scrolling marquee widget for displaying echoed messages",
)


@mcp_tool(
    name="echo",
    description="Echoes back the user's message in a scrolling marquee widget",
    widget=ECHO_WIDGET,
    summary='Echoing: "{message}"',
)
def echo(
    message: Annotated[str, Field(min_length=1, description="The message to echo back")],
) -> Dict[str, str]:
    return {
        "echoedMessage": message,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
