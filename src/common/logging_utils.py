"""Logging helpers shared by the resolver, feed client and publisher.

Modules log through ``logging.getLogger(__name__)`` and attach structured
fields with :func:`extra_context`. DEBUG traces are guarded by
:func:`is_debug_enabled` so building the context dict costs nothing when
debug logging is off.
"""
from __future__ import annotations

import logging
import os
import time
import urllib.parse
from typing import Any, Dict, Optional

from constants import Constants

_CONTEXT_FIELDS = (
    "event",
    "component",
    "action",
    "outcome",
    "target",
    "package_id",
    "attempt",
    "duration_ms",
    "count",
)


class ContextFormatter(logging.Formatter):
    """Formatter appending structured context fields at DEBUG level."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if record.levelno > logging.DEBUG:
            return base
        parts = []
        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                parts.append(f"{name}={value}")
        if parts:
            return f"{base} [{' '.join(parts)}]"
        return base


def configure_logging(level: Optional[str] = None) -> None:
    """Install a root handler using Constants.LOG_FORMAT.

    The level comes from ``level``, then ``$NURESOLVE_LOG_LEVEL``, then INFO.
    Calling this more than once replaces the previously installed handler.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_nuresolve", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter(Constants.LOG_FORMAT))
    handler._nuresolve = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    level_name = (level or os.environ.get(Constants.ENV_LOG_LEVEL) or "INFO").upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when the logger would emit DEBUG records."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra=`` mapping, dropping fields whose value is None."""
    return {key: value for key, value in fields.items() if value is not None}


def safe_url(url: str) -> str:
    """Strip credentials and query string from a URL for logging."""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return "<invalid-url>"
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urllib.parse.urlunsplit((parts.scheme, host, parts.path, "", ""))


class Timer:
    """Context manager measuring elapsed wall-clock time."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, *exc: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds, up to now if the block is still running."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
