"""Logging for the ``ledger_ingest`` package.

Engine modules only ever call ``get_logger("ledger_ingest.<module>")``; the
CLI (or a host application) calls :func:`configure_logging` once.

While a file is being imported, :func:`import_context` tags every record
emitted by the package with the account code and the source file, so that
interleaved warnings (skipped rows, discarded amount columns, duplicate
keys) can be traced back to the import that produced them::

    WARNING ledger_ingest.transform [CHQ jan.csv] 2 row(s) skipped ...
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import IO

PACKAGE_LOGGER = "ledger_ingest"
LEVEL_ENV = "LEDGER_INGEST_LOG_LEVEL"
DEFAULT_FORMAT = "%(levelname)s %(name)s%(import_tag)s %(message)s"

_current_import: ContextVar[str] = ContextVar("ledger_ingest_import", default="")


class ImportTagFilter(logging.Filter):
    """Adds ``import_tag`` (`` [CODE file]`` or empty) to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        tag = _current_import.get()
        record.import_tag = f" [{tag}]" if tag else ""
        return True


@contextmanager
def import_context(account_code: str, source: str | None = None) -> Iterator[None]:
    """Tag records logged inside the block with ``account_code`` and ``source``."""

    tag = account_code.upper() + (f" {source}" if source else "")
    token = _current_import.set(tag)
    try:
        yield
    finally:
        _current_import.reset(token)


def resolve_level(level: int | str | None = None) -> int:
    """Explicit level, else ``LEDGER_INGEST_LOG_LEVEL``, else ``INFO``.

    Strings may be level names (any case) or numbers; unknown names fall back
    to ``INFO``.
    """

    if level is None:
        level = os.getenv(LEVEL_ENV)
    if isinstance(level, int):
        return level
    if level is None or not level.strip():
        return logging.INFO
    text = level.strip().upper()
    if text.isdigit():
        return int(text)
    return logging.getLevelNamesMapping().get(text, logging.INFO)


def _own_handlers(logger: logging.Logger) -> list[logging.Handler]:
    return [h for h in logger.handlers if getattr(h, "ledger_ingest", False)]


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
    force: bool = False,
) -> logging.Logger:
    """Attach the package's stream handler to the ``ledger_ingest`` logger.

    Calling it again is a no-op unless ``force`` is set, in which case the
    previous handler is replaced (new level, format or stream). Records do
    not propagate to the root logger.
    """

    logger = logging.getLogger(PACKAGE_LOGGER)
    existing = _own_handlers(logger)
    if existing and not force:
        return logger
    for h in existing + [h for h in logger.handlers if isinstance(h, logging.NullHandler)]:
        logger.removeHandler(h)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.ledger_ingest = True  # type: ignore[attr-defined]
    handler.setLevel(resolved)
    handler.addFilter(ImportTagFilter())
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return ``name``'s logger; the package stays silent until configured."""

    pkg = logging.getLogger(PACKAGE_LOGGER)
    if not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = [
    "DEFAULT_FORMAT",
    "ImportTagFilter",
    "LEVEL_ENV",
    "PACKAGE_LOGGER",
    "configure_logging",
    "get_logger",
    "import_context",
    "resolve_level",
]
