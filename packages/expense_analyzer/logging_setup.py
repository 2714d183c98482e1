"""Central logging setup for ``expense_analyzer``.

Entrypoints (the CLI, or a host application) call :func:`configure_logging`
once at startup. Library modules only ever call
``get_logger("expense_analyzer.<module>")`` and never attach handlers of their
own; until configuration runs, the package root logger carries a
``NullHandler`` so importing the library stays silent.

Log lines are short ``event key=value`` records, e.g.::

    extraction:batch_done batch=2 total=5 transactions=31 latency_ms=812.40
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

ROOT_LOGGER_NAME = "expense_analyzer"
LEVEL_ENV_VAR = "EXPENSE_ANALYZER_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_handler: logging.Handler | None = None


class _StderrHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is at emit time (test runners swap it)."""

    @property
    def stream(self) -> IO[str]:
        return sys.stderr

    @stream.setter
    def stream(self, value: IO[str]) -> None:
        pass


def resolve_level(level: int | str | None = None) -> int:
    """Translate ``level`` (int, digit string, or level name) into an int.

    ``None`` or an unrecognized name falls back to ``EXPENSE_ANALYZER_LOG_LEVEL``
    and then to ``INFO``.
    """

    if isinstance(level, int):
        return level
    if isinstance(level, str) and level.strip():
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelName(name)
        if isinstance(numeric, int):
            return numeric
    env_val = os.getenv(LEVEL_ENV_VAR)
    if env_val and env_val != level:
        return resolve_level(env_val)
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Attach a single stream handler to the package root logger.

    Calling this again only adjusts the level of the existing handler, so
    repeated CLI invocations inside one process (tests) don't stack handlers.
    """

    global _handler
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    numeric = resolve_level(level)

    if _handler is None:
        for h in list(logger.handlers):
            if isinstance(h, logging.NullHandler):
                logger.removeHandler(h)
        _handler = logging.StreamHandler(stream) if stream is not None else _StderrHandler()
        _handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
        logger.addHandler(_handler)
        # Records stop at the package root.
        logger.propagate = False

    _handler.setLevel(numeric)
    logger.setLevel(numeric)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``, silencing the package root if unconfigured."""

    root = logging.getLogger(ROOT_LOGGER_NAME)
    if _handler is None and not root.handlers:
        root.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level", "ROOT_LOGGER_NAME"]
