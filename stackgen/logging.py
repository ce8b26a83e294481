"""Logging setup shared by the CLI and service front ends."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

ROOT_LOGGER = "stackgen"
LEVEL_ENV = "STACKGEN_LOG_LEVEL"

CONSOLE_FORMAT = "[stackgen] %(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the ``stackgen`` logger or one of its ``stackgen.<name>`` children."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


def resolve_level(verbose: bool, environ: Optional[Mapping[str, str]] = None) -> int:
    """``--verbose`` wins, then ``STACKGEN_LOG_LEVEL``, then WARNING."""
    if verbose:
        return logging.DEBUG
    source = os.environ if environ is None else environ
    name = source.get(LEVEL_ENV, "").strip().upper()
    if not name:
        return logging.WARNING
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.WARNING


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Install the console handler and, when requested, a debug-level file sink."""
    level = resolve_level(verbose)
    logger = get_logger()
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(logging.DEBUG)
        sink.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(sink)

    return logger


__all__ = ["configure_logging", "get_logger", "resolve_level"]
