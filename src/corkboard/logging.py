"""Structured JSON logging for corkboard.

One JSON object per line in ``<home>/corkboard.log``, rotated at 5MB with
3 backups. Module loggers under ``corkboard.*`` propagate here.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from corkboard.config import SECRET_ARGS

LOG_FILENAME = "corkboard.log"
_ROTATE_AT = 5 * 1024 * 1024
_KEEP = 3
_lock = threading.Lock()

# (LogRecord attribute set via ``extra=``, key in the JSON line)
_EXTRA_FIELDS = (
    ("tool", "tool"),
    ("args_data", "args"),
    ("duration_ms", "duration_ms"),
    ("error", "error"),
)


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: v for k, v in value.items() if k not in SECRET_ARGS}
    return value


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "msg": record.getMessage(),
        }
        for attr, key in _EXTRA_FIELDS:
            if attr in record.__dict__:
                line[key] = _scrub(record.__dict__[attr])
        if record.exc_info and record.exc_info[1] is not None:
            line["exception"] = str(record.exc_info[1])
        return json.dumps(line, default=str)


def setup_logging(home: Path) -> logging.Logger:
    """Attach the rotating JSON handler for *home* to the ``corkboard`` logger.

    Calling again with the same home is a no-op; a different home swaps the
    file handler so records never go to two files.
    """
    root = logging.getLogger("corkboard")
    home.mkdir(parents=True, exist_ok=True)
    path = home / LOG_FILENAME
    wanted = os.path.abspath(str(path))

    with _lock:
        for existing in [h for h in root.handlers if isinstance(h, RotatingFileHandler)]:
            if existing.baseFilename == wanted:
                return root
            root.removeHandler(existing)
            existing.close()

        handler = RotatingFileHandler(str(path), maxBytes=_ROTATE_AT, backupCount=_KEEP)
        handler.setFormatter(_JsonFormatter())
        root.addHandler(handler)
        root.setLevel(logging.INFO)
    return root
