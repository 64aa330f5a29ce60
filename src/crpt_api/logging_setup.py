"""Logging configuration for the registry client and CLI."""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_HANDLER_MARK = "_crpt_api_handler"


def _parse_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unknown log level: {level!r}")
    return resolved


def configure_logging(
    level: int | str = logging.INFO,
    *,
    log_dir: str | Path | None = None,
    logger_name: str = "crpt_api",
) -> logging.Logger:
    """Attach console (and optional daily file) handlers to the package logger.

    Repeat calls replace the handlers installed by a previous call instead of
    stacking them.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(_parse_level(level))
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    setattr(console, _HANDLER_MARK, True)
    logger.addHandler(console)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        log_date = datetime.now(UTC).strftime("%Y-%m-%d")
        file_handler = logging.FileHandler(path / f"crpt-api-{log_date}.log", encoding="utf-8")
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_MARK, True)
        logger.addHandler(file_handler)
    return logger
