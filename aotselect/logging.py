"""Logging setup for aotselect.

The engine reports a one-line summary per run on ``aotselect.engine`` and one
record per candidate on ``aotselect.engine.trace``. The trace has its own level
so a build log can carry every decision without inspector diagnostics.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

_LOGGER_NAME = "aotselect"
TRACE_LOGGER = "engine.trace"

_CONSOLE_FORMAT = "[aotselect] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger under the aotselect hierarchy."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME)


def configure_logging(
    *,
    verbose: bool = False,
    trace: Optional[bool] = None,
    log_file: Path | None = None,
) -> logging.Logger:
    """Attach console and optional file handlers to the aotselect logger.

    ``verbose`` lowers the whole hierarchy to DEBUG. ``trace`` controls the
    per-candidate decision records independently and follows ``verbose`` when
    left unset.
    """
    trace_enabled = verbose if trace is None else trace

    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    get_logger(TRACE_LOGGER).setLevel(logging.DEBUG if trace_enabled else logging.WARNING)
    return logger


__all__ = ["TRACE_LOGGER", "configure_logging", "get_logger"]
