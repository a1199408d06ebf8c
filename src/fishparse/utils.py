"""Environment-driven settings and logging setup."""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

DEFAULT_MAX_DEPTH = 128

MAX_DEPTH_ENV = "FISHPARSE_MAX_DEPTH"
DEBUG_PY_TRACE_ENV = "FISHPARSE_DEBUG_PY_TRACE"
LOG_LEVEL_ENV = "FISHPARSE_LOG_LEVEL"

_TRUTHY = ("1", "true", "yes", "on")

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def max_depth_from_env(default: int = DEFAULT_MAX_DEPTH) -> int:
    """Nesting bound for the parser; FISHPARSE_MAX_DEPTH overrides the default."""
    raw = os.environ.get(MAX_DEPTH_ENV, "").strip()
    if not raw:
        return default

    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{MAX_DEPTH_ENV} must be an integer, got {raw!r}") from None

    if value < 1:
        raise ValueError(f"{MAX_DEPTH_ENV} must be at least 1, got {value}")
    return value


def debug_py_trace_enabled() -> bool:
    """Whether CLI and REPL should print Python tracebacks for internal errors."""
    return os.environ.get(DEBUG_PY_TRACE_ENV, "").strip().lower() in _TRUTHY


def log_level_from_env(default: int = logging.WARNING) -> int:
    raw = os.environ.get(LOG_LEVEL_ENV, "").strip()
    if not raw:
        return default
    if raw.isdigit():
        return int(raw)

    level = logging.getLevelName(raw.upper())
    if not isinstance(level, int):
        raise ValueError(f"{LOG_LEVEL_ENV} names an unknown level: {raw!r}")
    return level


def configure_logging(level: Optional[Union[int, str]] = None) -> None:
    """Send package logs to stderr at ``level`` (default from the environment)."""
    if level is None:
        level = log_level_from_env()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("fishparse").setLevel(level)
