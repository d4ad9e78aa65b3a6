"""Logging setup shared by the CLI and library modules.

Library modules ask for ``get_logger("refund_reconciler.<module>")`` and never
add handlers. The CLI calls :func:`configure_logging` once, which routes the
package logger to a single stderr ``StreamHandler``. At ``DEBUG`` the same
handler is also attached to ``httpx`` so each GraphQL page request shows up
alongside the fetch log lines.

The level comes from the explicit argument, then ``REFUND_RECON_LOG_LEVEL``,
then ``INFO``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "refund_reconciler"
_HTTP_LOGGER_NAME = "httpx"
_LEVEL_ENV = "REFUND_RECON_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_CONFIGURED = False


def _coerce_level(value: int | str | None) -> int | None:
    """Map an int, digit string or level name to a numeric level, else ``None``."""

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    text = value.strip().upper()
    if text.isdigit():
        return int(text)
    numeric = logging.getLevelName(text)
    return numeric if isinstance(numeric, int) else None


def resolve_level(level: int | str | None = None) -> int:
    """Effective level for ``level``; unusable values fall through to the env."""

    for candidate in (level, os.getenv(_LEVEL_ENV)):
        numeric = _coerce_level(candidate)
        if numeric is not None:
            return numeric
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Route package logs to ``stream`` (default ``sys.stderr``). Runs once.

    Parameters
    ----------
    level:
        ``int`` or level name such as ``"DEBUG"``; see :func:`resolve_level`.
    fmt:
        Format string for the handler. Defaults to
        ``"%(asctime)s %(name)s %(levelname)s %(message)s"``.
    stream:
        Destination for the handler.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    numeric = resolve_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(numeric)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    for existing in [h for h in pkg_logger.handlers if isinstance(h, logging.NullHandler)]:
        pkg_logger.removeHandler(existing)
    pkg_logger.setLevel(numeric)
    pkg_logger.addHandler(handler)
    # Root handlers would print every record a second time
    pkg_logger.propagate = False

    if numeric <= logging.DEBUG:
        http_logger = logging.getLogger(_HTTP_LOGGER_NAME)
        http_logger.setLevel(numeric)
        http_logger.addHandler(handler)
        http_logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name``; the package root stays silent until configured."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
