"""Logging helpers shared by every component.

Components log through the standard library ``logging`` module and attach
structured context via ``extra=extra_context(...)``. URLs are passed through
``safe_url`` before they are logged so credentials never reach a log sink.
"""
from __future__ import annotations

import logging
import time
import urllib.parse
from typing import Any, Dict, Optional, Union

from ..constants import Constants

_SENSITIVE_QUERY_KEYS = {"token", "access_token", "api_key", "apikey", "key", "password", "sig", "signature"}


def extra_context(**kwargs: Any) -> Dict[str, Any]:
    """Build an ``extra`` mapping for structured log records, dropping ``None`` values."""
    return {k: v for k, v in kwargs.items() if v is not None}


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records from ``logger`` would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def safe_url(url: str) -> str:
    """Return ``url`` with userinfo removed and secret-looking query values masked.

    Args:
        url: URL to sanitize.

    Returns:
        str: URL suitable for logging. Unparseable input is returned as ``"<invalid url>"``.
    """
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return "<invalid url>"

    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"

    query = parts.query
    if query:
        pairs = urllib.parse.parse_qsl(query, keep_blank_values=True)
        masked = [
            (k, "***" if k.lower() in _SENSITIVE_QUERY_KEYS else v)
            for k, v in pairs
        ]
        query = urllib.parse.urlencode(masked)

    return urllib.parse.urlunsplit((parts.scheme, netloc, parts.path, query, ""))


def configure_logging(level: Union[int, str] = logging.INFO, logger_name: str = "nugetfeed") -> logging.Logger:
    """Attach a single stream handler to the package logger.

    Hosts with their own logging configuration should not call this.

    Args:
        level: Logging level name or number.
        logger_name: Logger to configure.

    Returns:
        logging.Logger: The configured logger.
    """
    logger = logging.getLogger(logger_name)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    if not any(getattr(h, "_nugetfeed_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        handler._nugetfeed_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger


class Timer:
    """Context manager measuring elapsed wall time in milliseconds."""

    def __init__(self) -> None:
        self._start: Optional[float] = None
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds so far (or total once the block exited)."""
        if self._start is None:
            return 0
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
