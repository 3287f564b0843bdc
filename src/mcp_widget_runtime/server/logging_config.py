# mcp_widget_runtime/server/logging_config.py
"""
Logging configuration for the MCP widget runtime.

Everything is written to *stderr*; stdout stays clean so the runtime can be
embedded behind process supervisors that treat stdout as data.
"""
import logging
import sys
from typing import Any, Dict, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# libraries that are far too chatty at DEBUG
_NOISY_LOGGERS = ("httpx", "httpcore", "sse_starlette", "uvicorn.access")


def _level(value: Any, default: int = logging.INFO) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return getattr(logging, value.upper(), default)
    return default


def get_logger(name: Optional[str] = None, config: Optional[Dict[str, Any]] = None) -> logging.Logger:
    """
    Get a configured logger.

    Args:
        name: Logger name (``None`` for the package logger).
        config: Optional configuration; ``logging.level`` sets the logger level.
    """
    logger = logging.getLogger(name or "mcp_widget_runtime")
    if config:
        level = config.get("logging", {}).get("level")
        if level is not None:
            logger.setLevel(_level(level))
    return logger


def configure_logging(config: Optional[Dict[str, Any]] = None) -> None:
    """Configure the root logger from the ``logging`` section of *config*."""
    log_cfg = (config or {}).get("logging", {})
    level = _level(log_cfg.get("level", "INFO"))
    fmt = log_cfg.get("format", DEFAULT_FORMAT)

    root = logging.getLogger()
    if log_cfg.get("reset_handlers", False):
        for handler in list(root.handlers):
            root.removeHandler(handler)

    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(fmt))
        root.addHandler(handler)
    else:
        for handler in root.handlers:
            handler.setFormatter(logging.Formatter(fmt))

    root.setLevel(level)
    logging.getLogger("mcp_widget_runtime").setLevel(level)

    if not log_cfg.get("quiet_libraries", True):
        return
    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))
