"""Bounded in-memory tail of recent log lines."""

from __future__ import annotations

import logging
import threading
from collections import deque

DEFAULT_MAX_LINES = 1000


class LogBuffer:
    """Keeps the last `max_lines` formatted log lines."""

    def __init__(self, max_lines: int = DEFAULT_MAX_LINES) -> None:
        if max_lines < 1:
            raise ValueError("max_lines must be >= 1")
        self._lines: deque[str] = deque(maxlen=max_lines)
        self._lock = threading.Lock()

    def append(self, line: str) -> None:
        with self._lock:
            self._lines.append(line)

    def tail(self, count: int | None = None) -> list[str]:
        with self._lock:
            lines = list(self._lines)
        if count is None:
            return lines
        if count <= 0:
            return []
        return lines[-count:]

    def __len__(self) -> int:
        return len(self._lines)


class LogBufferHandler(logging.Handler):
    """logging.Handler that feeds a LogBuffer."""

    def __init__(self, buffer: LogBuffer, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.buffer.append(self.format(record))
        except Exception:
            self.handleError(record)
