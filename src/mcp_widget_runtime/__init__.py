# mcp_widget_runtime/__init__.py
"""
MCP widget runtime: a Streamable HTTP MCP server whose tools render their
results in host widgets.
"""
__version__ = "1.0.0"
