"""Log handlers for the solvency pipeline."""

import os
import sys
import threading
from typing import Any, Dict, List, Optional

from .core import LogEntry, LogHandler


class ConsoleHandler(LogHandler):
    """Console log handler."""

    def __init__(self, stream: Any = None):
        super().__init__()
        self.stream = stream or sys.stderr

    def emit(self, entry: LogEntry) -> None:
        with self._lock:
            self.stream.write(self.format(entry) + "\n")
            self.stream.flush()


class FileHandler(LogHandler):
    """Append-only file log handler."""

    def __init__(self, filename: str, encoding: str = "utf-8"):
        super().__init__()
        self.filename = filename
        self.encoding = encoding
        self.stream = None

    def _open(self) -> None:
        if self.stream is None:
            directory = os.path.dirname(self.filename)
            if directory:
                os.makedirs(directory, exist_ok=True)
            self.stream = open(self.filename, "a", encoding=self.encoding)

    def emit(self, entry: LogEntry) -> None:
        with self._lock:
            self._open()
            self.stream.write(self.format(entry) + "\n")
            self.stream.flush()

    def close(self) -> None:
        with self._lock:
            if self.stream is not None:
                self.stream.close()
                self.stream = None


class MemoryHandler(LogHandler):
    """Bounded in-memory log handler."""

    def __init__(self, max_size: int = 1000):
        super().__init__()
        self.max_size = max_size
        self.buffer: List[Dict[str, Any]] = []

    def emit(self, entry: LogEntry) -> None:
        with self._lock:
            self.buffer.append(
                {
                    "timestamp": entry.timestamp,
                    "level": entry.level.value,
                    "message": entry.message,
                    "logger_name": entry.logger_name,
                    "context": entry.context.to_dict(),
                    "extra": dict(entry.extra),
                    "formatted": self.format(entry),
                }
            )

            if len(self.buffer) > self.max_size:
                self.buffer.pop(0)

    def get_logs(self, operation: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get buffered logs, optionally only those of one operation."""
        with self._lock:
            if operation is None:
                return list(self.buffer)
            return [
                log for log in self.buffer if log["context"]["operation"] == operation
            ]

    def clear_logs(self) -> None:
        with self._lock:
            self.buffer.clear()

    def close(self) -> None:
        self.clear_logs()
