"""JSONL run log for ``kira lint`` and ``kira doctor``.

Each command appends to <work folder>/kira.log (rotated at 5MB, 3 backups).
Command records carry timing; fix and write-failure records name the file.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOG_FILENAME = "kira.log"
_setup_lock = threading.Lock()
_MAX_BYTES = 5 * 1024 * 1024  # 5MB
_BACKUP_COUNT = 3
_EXTRA_KEYS = ("command", "file", "field", "duration_ms", "error")


class _JsonFormatter(logging.Formatter):
    """One JSON object per record; known extra keys are copied when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "msg": record.getMessage(),
        }
        for key in _EXTRA_KEYS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = str(record.exc_info[1])
        return json.dumps(entry, default=str)


def setup_logging(log_dir: Path) -> logging.Logger:
    """Route the ``kira`` logger to *log_dir*/kira.log for this command.

    The CLI calls this once the work folder is known. Repeat calls for the same
    folder keep the existing handler; a different folder replaces it.
    """
    logger = logging.getLogger("kira")
    log_path = log_dir / LOG_FILENAME
    target_filename = os.path.abspath(str(log_path))

    with _setup_lock:
        for h in logger.handlers[:]:
            if not isinstance(h, RotatingFileHandler):
                continue
            if h.baseFilename == target_filename:
                return logger
            logger.removeHandler(h)
            h.close()

        handler = RotatingFileHandler(
            str(log_path),
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
            encoding="utf-8",
        )
        handler.setFormatter(_JsonFormatter())
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger
