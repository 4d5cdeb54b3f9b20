"""Logging for the ``invoice_ingest`` package.

All modules log through children of the ``"invoice_ingest"`` logger, e.g.
``get_logger("invoice_ingest.uploads")``, with messages in the
``"<operation>:<event> key=value ..."`` form. Only entrypoints (the CLI or a
host application) call :func:`configure_logging`; library code never attaches
handlers.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "invoice_ingest"
LOG_LEVEL_ENV = "INVOICE_INGEST_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_handler: logging.Handler | None = None


def resolve_level(level: int | str | None = None) -> int:
    """Turn ``level`` (or ``$INVOICE_INGEST_LOG_LEVEL`` when None) into a number.

    Unknown names fall back to ``INFO``.
    """

    if level is None:
        level = os.getenv(LOG_LEVEL_ENV)
    if isinstance(level, int):
        return level
    if not level:
        return logging.INFO
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Attach one ``StreamHandler`` to the package logger; later calls are no-ops.

    ``stream`` defaults to ``sys.stderr`` so command output on stdout stays
    clean.
    """

    global _handler
    logger = logging.getLogger(PACKAGE_LOGGER)
    if _handler is not None:
        return logger

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    numeric = resolve_level(level)
    _handler = logging.StreamHandler(stream or sys.stderr)
    _handler.setLevel(numeric)
    _handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    logger.addHandler(_handler)
    logger.setLevel(numeric)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    # NullHandler until configured, so library use stays silent.
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if _handler is None and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
