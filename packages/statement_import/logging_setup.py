"""Logging for the ``statement_import`` package.

Library modules only ever call :func:`get_logger` (or :func:`import_logger`
for messages about one import) and never attach handlers. Entrypoints such as
the CLI call :func:`configure_logging` once; until then the package root
logger carries a ``NullHandler`` and stays silent.

The level comes from the explicit argument, else ``STATEMENT_IMPORT_LOG_LEVEL``,
else ``INFO``.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import MutableMapping
from typing import IO, Any

_PKG_LOGGER_NAME = "statement_import"
_LEVEL_ENV_VAR = "STATEMENT_IMPORT_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_configured = False


def resolve_level(level: int | str | None = None) -> int:
    """Turn ``level`` (int, digits or a level name) into a logging level.

    Unknown names resolve to ``INFO`` rather than raising; a bad env value
    must not break an import.
    """

    if level is None:
        level = os.getenv(_LEVEL_ENV_VAR) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelName(name)
    return numeric if isinstance(numeric, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Attach one ``StreamHandler`` to the package root logger.

    Only the first call has an effect. ``stream`` defaults to ``sys.stderr``
    as it is at call time.
    """

    global _configured
    if _configured:
        return

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(pkg_logger.handlers):
        if isinstance(h, logging.NullHandler):
            pkg_logger.removeHandler(h)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(resolved)
    pkg_logger.propagate = False

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``, keeping the package silent until configured."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _configured and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


class ImportLogAdapter(logging.LoggerAdapter):
    """Prefix messages with ``Import <id>:`` and expose the id on the record."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        import_id = self.extra["import_id"] if self.extra else None
        kwargs.setdefault("extra", {})["import_id"] = import_id
        return f"Import {import_id}: {msg}", kwargs


def import_logger(logger: logging.Logger, import_id: int | None) -> ImportLogAdapter:
    return ImportLogAdapter(logger, {"import_id": import_id})


__all__ = [
    "configure_logging",
    "get_logger",
    "import_logger",
    "resolve_level",
    "ImportLogAdapter",
]
