# mcp_widget_runtime/resources/assets.py
"""
Widget asset provider.

Production reads ``<assets_dir>/<widget>.html`` produced by the widget build.
Development first asks the live bundler (``<dev_server_url>/<widget>.html``)
and falls back to the static build when the bundler is not running.
"""
from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

from mcp_widget_runtime.common.errors import WidgetRuntimeError
from mcp_widget_runtime.server.logging_config import get_logger

logger = get_logger("mcp_widget_runtime.assets")

_WIDGET_ID = re.compile(r"^[\w-]+$")


class WidgetNotBuiltError(WidgetRuntimeError):
    """The requested widget has no built HTML available."""


class WidgetAssetProvider:
    def __init__(
        self,
        assets_dir: Union[str, Path],
        environment: str = "production",
        dev_server_url: Optional[str] = None,
        dev_timeout: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.assets_dir = Path(assets_dir)
        self.environment = environment
        self.dev_server_url = dev_server_url.rstrip("/") if dev_server_url else None
        self.dev_timeout = dev_timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: Dict[str, Any], project_root: str) -> "WidgetAssetProvider":
        widgets_cfg = config.get("widgets", {})
        assets_dir = widgets_cfg.get("assets_dir") or Path(project_root) / "assets"
        return cls(
            assets_dir=assets_dir,
            environment=widgets_cfg.get("environment", "production"),
            dev_server_url=widgets_cfg.get("dev_server_url"),
        )

    @property
    def is_development(self) -> bool:
        return self.environment == "development" and bool(self.dev_server_url)

    async def load(self, widget_id: str) -> str:
        """Return the HTML document for *widget_id*."""
        if not _WIDGET_ID.match(widget_id):
            raise WidgetNotBuiltError(f"Invalid widget id: {widget_id!r}")

        if self.is_development:
            html = await self._load_from_dev_server(widget_id)
            if html is not None:
                return html

        return await asyncio.to_thread(self._read_static, widget_id)

    async def _load_from_dev_server(self, widget_id: str) -> Optional[str]:
        url = f"{self.dev_server_url}/{widget_id}.html"
        try:
            async with httpx.AsyncClient(timeout=self.dev_timeout, transport=self._transport) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.debug("Dev server unavailable for %s (%s); using static build", widget_id, exc)
            return None
        logger.debug("Loaded %s from dev server", widget_id)
        return response.text

    def _read_static(self, widget_id: str) -> str:
        if not self.assets_dir.is_dir():
            raise WidgetNotBuiltError(
                f"Widget assets not found. Expected directory {self.assets_dir}. "
                "Build the widgets before starting the server."
            )
        html_path = self.assets_dir / f"{widget_id}.html"
        if not html_path.is_file():
            raise WidgetNotBuiltError(f"Widget HTML not found: {html_path}")
        return html_path.read_text(encoding="utf-8")
