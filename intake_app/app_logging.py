from __future__ import annotations

import logging
from pathlib import Path
from queue import Full
from typing import Any

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(threadName)s | %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class QueueLogHandler(logging.Handler):
    """Pushes formatted lines onto a queue the UI drains on a timer."""

    def __init__(self, queue_obj: Any) -> None:
        super().__init__()
        self.queue_obj = queue_obj

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
        except Exception:  # noqa: BLE001
            self.handleError(record)
            return
        try:
            self.queue_obj.put_nowait(message)
        except Full:
            pass


def configure_logging(log_file: Path | None, queue_obj: Any | None = None) -> logging.Logger:
    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.INFO)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if queue_obj is not None:
        queue_handler = QueueLogHandler(queue_obj)
        queue_handler.setFormatter(formatter)
        root.addHandler(queue_handler)

    return logging.getLogger("intake_app")


def extract_log_level(message: str) -> str:
    parts = message.split(" | ")
    if len(parts) >= 3:
        candidate = parts[1].strip().upper()
        if candidate in LOG_LEVELS:
            return candidate
    return "INFO"
