"""JSON structured logging for the API server and the watch CLI."""
from __future__ import annotations

import logging
import sys
from typing import TextIO

from pythonjsonlogger.json import JsonFormatter

from snaptrack.config import settings

_QUIET_LOGGERS = (
    "uvicorn.access",
    # one line per request; the 1s poll loop would flood the output
    "httpx",
    "httpcore",
)


def setup_logging(level: str | None = None, *, stream: TextIO | None = None) -> None:
    """Install a single JSON handler on the root logger (stdout unless `stream` is given)."""
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level or settings.APP_LOG_LEVEL)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DB_ECHO else logging.WARNING)
