# mcp_widget_runtime/server/config_loader.py
"""
Configuration loader for the MCP widget runtime.

YAML files are deep-merged over ``DEFAULT_CONFIG`` in the order given, then a
small set of environment variables is applied on top.
"""
import copy
import os
from typing import Any, Dict, List, Optional

import yaml

from mcp_widget_runtime.server.logging_config import get_logger

logger = get_logger("mcp_widget_runtime.config")

PROJECT_MARKERS = ("config.yaml", "pyproject.toml")

DEFAULT_CONFIG: Dict[str, Any] = {
    "host": {
        "name": "mcp-widget-runtime",
        "version": "1.0.0",
    },
    "server": {
        "host": "0.0.0.0",
        "port": 8080,
        "auth": None,
        "json_response": False,
        "cors_origin": "*",
    },
    "sessions": {
        "max_age": 3600,
        "cleanup_interval": 60,
    },
    "widgets": {
        "environment": "production",
        "assets_dir": None,
        "dev_server_url": "http://localhost:4444",
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "reset_handlers": False,
        "quiet_libraries": True,
    },
}


def _millis_to_seconds(raw: str) -> float:
    return float(raw) / 1000.0


# env var -> (dotted key, converter); SESSION_MAX_AGE is in milliseconds
ENV_OVERRIDES = {
    "HOST": ("server.host", str),
    "PORT": ("server.port", int),
    "LOG_LEVEL": ("logging.level", str),
    "SESSION_MAX_AGE": ("sessions.max_age", _millis_to_seconds),
    "CORS_ORIGIN": ("server.cors_origin", str),
    "WIDGET_ENV": ("widgets.environment", str),
    "WIDGET_ASSETS_DIR": ("widgets.assets_dir", str),
    "WIDGET_DEV_SERVER_URL": ("widgets.dev_server_url", str),
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _set_dotted(config: Dict[str, Any], dotted: str, value: Any) -> None:
    node = config
    *parents, leaf = dotted.split(".")
    for part in parents:
        node = node.setdefault(part, {})
    node[leaf] = value


def find_project_root(start_dir: Optional[str] = None) -> str:
    """Walk up from *start_dir* until a directory holding a project marker is found."""
    current = os.path.abspath(start_dir or os.getcwd())
    while True:
        if any(os.path.exists(os.path.join(current, m)) for m in PROJECT_MARKERS):
            return current
        parent = os.path.dirname(current)
        if parent == current:
            return os.path.abspath(start_dir or os.getcwd())
        current = parent


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, (dotted, convert) in ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        try:
            _set_dotted(config, dotted, convert(raw))
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", env_name, raw)
    return config


def load_config(
    config_paths: Optional[List[str]] = None,
    default_config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Load configuration from YAML files.

    Args:
        config_paths: Files to merge, in order. Defaults to ``config.yaml`` in
            the working directory and in the project root.
        default_config: Base configuration, ``DEFAULT_CONFIG`` when omitted.

    Returns:
        The merged configuration dictionary.
    """
    config = copy.deepcopy(default_config or DEFAULT_CONFIG)

    if config_paths is None:
        cwd_candidate = os.path.join(os.getcwd(), "config.yaml")
        root_candidate = os.path.join(find_project_root(), "config.yaml")
        config_paths = [cwd_candidate]
        if root_candidate != cwd_candidate:
            config_paths.append(root_candidate)

    for path in config_paths:
        if not os.path.exists(path):
            logger.debug("Config file not found: %s", path)
            continue
        try:
            with open(path, "r", encoding="utf-8") as fh:
                file_config = yaml.safe_load(fh) or {}
            if not isinstance(file_config, dict):
                raise ValueError("top-level YAML value must be a mapping")
            _deep_merge(config, file_config)
            logger.debug("Loaded config from %s", path)
        except (OSError, yaml.YAMLError, ValueError) as e:
            logger.warning("Error loading config from %s: %s", path, e)

    return apply_env_overrides(config)


def get_config_value(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """Fetch a dotted key (``"a.b.c"``) from *config*."""
    node: Any = config
    for part in key_path.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node
