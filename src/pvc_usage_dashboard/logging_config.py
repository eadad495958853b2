"""Logging setup shared by the snapshot server and the dashboard."""

from __future__ import annotations

import logging
import sys

LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def server_log_level(level: int | str) -> str:
    """Lowercase standard level name, as accepted by uvicorn."""
    numeric_level = resolve_level(level)
    if numeric_level <= logging.DEBUG:
        return "debug"
    if numeric_level <= logging.INFO:
        return "info"
    if numeric_level <= logging.WARNING:
        return "warning"
    if numeric_level <= logging.ERROR:
        return "error"
    return "critical"


def setup_logging(component_name: str, level: int | str = logging.INFO) -> logging.Logger:
    """Configure root logging to stdout with a component-tagged format.

    Args:
        component_name: Component identifier shown in every line (e.g. 'server').
        level: Logging level name or number; unknown names fall back to INFO.
    """
    numeric_level = resolve_level(level)
    logging.basicConfig(
        level=numeric_level,
        format=f"[%(asctime)s] [{component_name.upper()}] %(levelname)s - %(message)s",
        datefmt=LOG_DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logger = logging.getLogger(component_name)
    logger.info("%s logging initialized (level=%s)", component_name.upper(), logging.getLevelName(numeric_level))
    return logger
