"""
Structured logging configuration for the entire application.
Call setup_logging() once at startup (main.py).

LOG_LEVEL sets the level of the 'app' namespace; LOG_JSON=true switches the
stdout handler to one JSON object per line.
"""

import json
import logging
import os
import sys

_HANDLER_MARK = "_canvas_relay_handler"


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter used when LOG_JSON=true."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "level": record.levelname,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


def _get_formatter(log_json: bool) -> logging.Formatter:
    if log_json:
        return JsonFormatter()
    return logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")


def setup_logging() -> logging.Logger:
    """Configure logging to stdout for the 'app' namespace. Safe to call twice."""
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    log_json = os.getenv("LOG_JSON", "false").lower() == "true"

    root = logging.getLogger("app")
    root.setLevel(getattr(logging, level_name, logging.INFO))

    handler = next((h for h in root.handlers if getattr(h, _HANDLER_MARK, False)), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        setattr(handler, _HANDLER_MARK, True)
        root.addHandler(handler)
    handler.setFormatter(_get_formatter(log_json))

    return root
