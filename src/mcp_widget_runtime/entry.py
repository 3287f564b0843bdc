# mcp_widget_runtime/entry.py
"""
Entry point for the MCP widget runtime.

Loads configuration, configures logging, builds the tool and resource
registries, and serves the Starlette app with uvicorn.  Shutdown (SIGINT /
SIGTERM, handled by uvicorn) runs the app lifespan, which stops the session
sweeper and drains all sessions.
"""
from __future__ import annotations

import asyncio
import os
import sys
from typing import Any, List, Optional

import uvicorn

from mcp_widget_runtime.common.mcp_tool_decorator import TOOLS_REGISTRY, ToolRegistry
from mcp_widget_runtime.resources.assets import WidgetAssetProvider
from mcp_widget_runtime.resources.widgets import build_resource_registry
from mcp_widget_runtime.server.config_loader import find_project_root, load_config
from mcp_widget_runtime.server.http_app import create_app
from mcp_widget_runtime.server.logging_config import configure_logging, get_logger
from mcp_widget_runtime.session.session_manager import SessionManager
from mcp_widget_runtime.tools import load_builtin_tools

logger = get_logger("mcp_widget_runtime.entry")


def build_app(config: dict[str, Any], tools: Optional[ToolRegistry] = None, project_root: Optional[str] = None):
    """Assemble registries and the HTTP app from *config*."""
    if tools is None:
        load_builtin_tools()
        tools = TOOLS_REGISTRY
    project_root = project_root or find_project_root()
    assets = WidgetAssetProvider.from_config(config, project_root)
    resources = build_resource_registry(tools, assets)

    logger.info(
        "Tools available: %s; widgets: %d; assets: %s (%s)",
        ", ".join(sorted(tools.names())) or "none",
        len(resources),
        assets.assets_dir,
        assets.environment,
    )
    return create_app(config, tools, resources, session_manager=SessionManager())


async def run_runtime_async(
    config_paths: Optional[List[str]] = None,
    default_config: Optional[dict[str, Any]] = None,
) -> None:
    """Boot the runtime and serve until shutdown."""
    cfg = load_config(config_paths, default_config)
    configure_logging(cfg)

    app = build_app(cfg)
    server_cfg = cfg.get("server", {})
    host = server_cfg.get("host", "0.0.0.0")
    port = int(server_cfg.get("port", 8080))

    logger.info("MCP endpoint: http://%s:%d/mcp  health: http://%s:%d/health", host, port, host, port)
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=str(cfg.get("logging", {}).get("level", "info")).lower(),
        log_config=None,
    )
    await uvicorn.Server(config).serve()
    logger.info("Server stopped")


def _config_path_from_argv(argv: List[str]) -> Optional[str]:
    if "-c" in argv and argv.index("-c") + 1 < len(argv):
        return argv[argv.index("-c") + 1]
    if "--config" in argv and argv.index("--config") + 1 < len(argv):
        return argv[argv.index("--config") + 1]
    return argv[0] if argv and not argv[0].startswith("-") else None


def main(default_config: Optional[dict[str, Any]] = None) -> None:
    cfg_path = os.getenv("MCP_WIDGET_CONFIG_PATH") or _config_path_from_argv(sys.argv[1:])
    try:
        asyncio.run(
            run_runtime_async(
                config_paths=[cfg_path] if cfg_path else None,
                default_config=default_config,
            )
        )
    except KeyboardInterrupt:
        logger.warning("Received Ctrl-C → shutting down")
    except Exception as exc:  # pragma: no cover
        logger.error("Uncaught exception: %s", exc, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":  # python -m mcp_widget_runtime.entry
    main()
