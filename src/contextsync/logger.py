from __future__ import annotations

import json
import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config_schema import LoggingConfig

_DATEFMT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """Render each record as one line of JSON.

    Keys are ``ts``, ``level``, ``logger`` and ``msg``; a formatted
    traceback is added under ``exc`` when the record carries one.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, str] = dict(
            ts=self.formatTime(record, self.datefmt),
            level=record.levelname,
            logger=record.name,
            msg=record.getMessage(),
        )
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _formatter(debug_format: str, text_format: str) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    return logging.Formatter(text_format, datefmt=_DATEFMT)


def setup_logging(
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """Send library logs to stderr and, if a file is named, to that file.

    Level precedence: ``debug=True`` > *level* > ``LOG_LEVEL`` > INFO.
    Unknown level names fall back to INFO.

    Args:
        debug: Force DEBUG.
        log_file: Append to this file as well; defaults to ``LOG_FILE``.
        debug_format: ``"text"`` or ``"json"`` (one JSON object per line).
        level: Level name such as ``"WARNING"``.
    """
    if debug:
        log_level = logging.DEBUG
    else:
        name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
        log_level = getattr(logging, name, logging.INFO)

    handlers: list[logging.Handler] = []
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(
        _formatter(debug_format, "[%(asctime)s] [%(levelname)s] %(message)s")
    )
    handlers.append(stderr_handler)

    final_log_file = log_file or os.getenv("LOG_FILE")
    if final_log_file:
        file_handler = logging.FileHandler(final_log_file, mode="a")
        file_handler.setFormatter(
            _formatter(
                debug_format,
                "[%(asctime)s] [%(levelname)s] %(name)s %(message)s",
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)


def configure_logging(config: LoggingConfig, debug: bool = False) -> None:
    """Apply a ``LoggingConfig`` section via ``setup_logging()``."""
    setup_logging(
        debug=debug,
        log_file=config.file,
        debug_format=config.format,
        level=config.level,
    )
