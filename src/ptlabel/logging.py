"""
Logging setup for ptlabel.

Library modules only call logging.getLogger(__name__); the CLI calls
configure_logging() once. Set PTLABEL_JSON_LOGS=true for one JSON object
per line.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Optional

LOGGER_NAME = "ptlabel"
PLAIN_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter with timestamp, level, logger and message."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        base = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False)


def configure_logging(debug: bool = False, json_logs: Optional[bool] = None) -> logging.Logger:
    """
    Configure the package logger.

    - INFO by default, DEBUG traces every command sent to the printer
    - Replaces existing handlers so repeated calls do not duplicate output
    - json_logs=None reads PTLABEL_JSON_LOGS

    Returns the configured logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.handlers = []

    if json_logs is None:
        json_logs = os.environ.get("PTLABEL_JSON_LOGS", "false").lower() in ("1", "true", "yes")

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter() if json_logs else logging.Formatter(PLAIN_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


__all__ = ["JsonFormatter", "configure_logging"]
