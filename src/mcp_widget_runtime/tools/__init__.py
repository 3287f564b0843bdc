# mcp_widget_runtime/tools/__init__.py
"""
Built-in tools.

Importing a tool module registers its tools in ``TOOLS_REGISTRY``; nothing is
imported until ``load_builtin_tools()`` is called.
"""
from __future__ import annotations

import importlib
from typing import List

BUILTIN_TOOL_MODULES: List[str] = [
    "mcp_widget_runtime.tools.echo_tool",
]


def load_builtin_tools() -> None:
    """Import every built-in tool module (idempotent)."""
    for module_path in BUILTIN_TOOL_MODULES:
        importlib.import_module(module_path)


__all__ = ["BUILTIN_TOOL_MODULES", "load_builtin_tools"]
