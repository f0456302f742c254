"""Core structured-logging types for the solvency pipeline.

Audit-relevant events (accepted and rejected submissions, trust-state
changes, verification outcomes) are written through a ``LogManager`` so they
carry a ``LogContext`` with the snapshot timestamp and caller that produced
them.
"""

import json
import os
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

_LEVEL_ORDER = {
    "trace": 0,
    "debug": 1,
    "info": 2,
    "warning": 3,
    "error": 4,
    "critical": 5,
}


class LogLevel(Enum):
    """Log levels."""

    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER[self.value]

    @classmethod
    def from_name(cls, name: str) -> "LogLevel":
        """Parse a level name case-insensitively."""
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown log level: {name!r}")


@dataclass
class LogContext:
    """Log context information."""

    component: Optional[str] = None
    operation: Optional[str] = None
    caller: Optional[str] = None
    snapshot_timestamp: Optional[int] = None
    request_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "component": self.component,
            "operation": self.operation,
            "caller": self.caller,
            "snapshot_timestamp": self.snapshot_timestamp,
            "request_id": self.request_id,
            "metadata": self.metadata,
        }

    def merged_with(self, other: Optional["LogContext"]) -> "LogContext":
        """Return a context where fields set on ``other`` win."""
        if other is None:
            return self
        return LogContext(
            component=other.component or self.component,
            operation=other.operation or self.operation,
            caller=other.caller or self.caller,
            snapshot_timestamp=(
                other.snapshot_timestamp
                if other.snapshot_timestamp is not None
                else self.snapshot_timestamp
            ),
            request_id=other.request_id or self.request_id,
            metadata={**self.metadata, **other.metadata},
        )


@dataclass
class LogEntry:
    """Log entry data structure."""

    timestamp: float
    level: LogLevel
    message: str
    logger_name: str
    context: LogContext
    exception: Optional[BaseException] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    thread_id: Optional[int] = None
    process_id: Optional[int] = None

    def __post_init__(self):
        if self.thread_id is None:
            self.thread_id = threading.get_ident()
        if self.process_id is None:
            self.process_id = os.getpid()

    def to_dict(self) -> Dict[str, Any]:
        """Convert log entry to dictionary."""
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "message": self.message,
            "logger_name": self.logger_name,
            "context": self.context.to_dict(),
            "exception": str(self.exception) if self.exception else None,
            "extra": self.extra,
            "thread_id": self.thread_id,
            "process_id": self.process_id,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class LogConfig:
    """Log configuration."""

    def __init__(
        self,
        name: str = "solvency",
        level: LogLevel = LogLevel.INFO,
        format_type: str = "json",
        handlers: Optional[List[str]] = None,
        log_file: Optional[str] = None,
    ):
        self.name = name
        self.level = level
        self.format_type = format_type
        self.handlers = handlers or ["console"]
        self.log_file = log_file

    def validate(self) -> None:
        """Validate configuration parameters."""
        if self.format_type not in ("json", "text"):
            raise ValueError("format_type must be 'json' or 'text'")
        if "file" in self.handlers and not self.log_file:
            raise ValueError("log_file is required when the file handler is enabled")


class LogFormatter(ABC):
    """Abstract log formatter."""

    @abstractmethod
    def format(self, entry: LogEntry) -> str:
        """Format log entry."""
        pass


class LogHandler(ABC):
    """Abstract log handler."""

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.__class__.__name__
        self.formatter: Optional[LogFormatter] = None
        self.level: LogLevel = LogLevel.DEBUG
        self._lock = threading.RLock()

    def set_formatter(self, formatter: LogFormatter) -> None:
        with self._lock:
            self.formatter = formatter

    def set_level(self, level: LogLevel) -> None:
        with self._lock:
            self.level = level

    def should_handle(self, entry: LogEntry) -> bool:
        return entry.level.rank >= self.level.rank

    def format(self, entry: LogEntry) -> str:
        if self.formatter:
            return self.formatter.format(entry)
        return (
            f"{entry.timestamp} [{entry.level.value.upper()}] "
            f"{entry.logger_name}: {entry.message}"
        )

    @abstractmethod
    def emit(self, entry: LogEntry) -> None:
        """Emit log entry."""
        pass

    def handle(self, entry: LogEntry) -> None:
        if self.should_handle(entry):
            self.emit(entry)

    def close(self) -> None:
        """Release handler resources."""
        pass


class LogManager:
    """Routes log entries from named loggers to the configured handlers."""

    def __init__(self, config: Optional[LogConfig] = None):
        self.config = config or LogConfig()
        self.config.validate()
        self.loggers: Dict[str, "SolvencyLogger"] = {}
        self.handlers: Dict[str, LogHandler] = {}
        self._lock = threading.RLock()
        self._context = LogContext()

        self._setup_defaults()

    def _setup_defaults(self) -> None:
        from .formatters import JSONFormatter, TextFormatter
        from .handlers import ConsoleHandler, FileHandler, MemoryHandler

        formatter = JSONFormatter() if self.config.format_type == "json" else TextFormatter()

        for handler_name in self.config.handlers:
            if handler_name == "console":
                handler = ConsoleHandler()
            elif handler_name == "memory":
                handler = MemoryHandler()
            elif handler_name == "file":
                handler = FileHandler(self.config.log_file)
            else:
                raise ValueError(f"Unknown handler: {handler_name}")
            handler.set_formatter(formatter)
            self.handlers[handler_name] = handler

    def get_logger(self, name: str) -> "SolvencyLogger":
        with self._lock:
            if name not in self.loggers:
                self.loggers[name] = SolvencyLogger(name, self, self.config.level)
            return self.loggers[name]

    def add_handler(self, name: str, handler: LogHandler) -> None:
        with self._lock:
            self.handlers[name] = handler

    def get_handler(self, name: str) -> Optional[LogHandler]:
        with self._lock:
            return self.handlers.get(name)

    def remove_handler(self, name: str) -> None:
        with self._lock:
            handler = self.handlers.pop(name, None)
            if handler is not None:
                handler.close()

    def set_context(self, context: LogContext) -> None:
        with self._lock:
            self._context = context

    def get_context(self) -> LogContext:
        with self._lock:
            return self._context

    def log(
        self,
        level: LogLevel,
        message: str,
        logger_name: str = "root",
        context: Optional[LogContext] = None,
        exception: Optional[BaseException] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        with self._lock:
            entry = LogEntry(
                timestamp=time.time(),
                level=level,
                message=message,
                logger_name=logger_name,
                context=self._context.merged_with(context),
                exception=exception,
                extra=extra or {},
            )

            for handler in self.handlers.values():
                handler.handle(entry)

    def shutdown(self) -> None:
        with self._lock:
            for handler in self.handlers.values():
                handler.close()

            self.loggers.clear()
            self.handlers.clear()


class SolvencyLogger:
    """Named logger bound to a ``LogManager``."""

    def __init__(self, name: str, manager: LogManager, level: LogLevel = LogLevel.INFO):
        self.name = name
        self.manager = manager
        self.level = level

    def set_level(self, level: LogLevel) -> None:
        self.level = level

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level.rank >= self.level.rank

    def log(
        self,
        level: LogLevel,
        message: str,
        context: Optional[LogContext] = None,
        exception: Optional[BaseException] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self.is_enabled_for(level):
            self.manager.log(
                level=level,
                message=message,
                logger_name=self.name,
                context=context,
                exception=exception,
                extra=extra,
            )

    def debug(self, message: str, **kwargs) -> None:
        self.log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.log(LogLevel.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs) -> None:
        self.log(LogLevel.CRITICAL, message, **kwargs)


_global_manager: Optional[LogManager] = None
_global_lock = threading.Lock()


def get_logger(name: str = "solvency") -> SolvencyLogger:
    """Get logger instance from the global manager."""
    global _global_manager
    with _global_lock:
        if _global_manager is None:
            _global_manager = LogManager()
        manager = _global_manager
    return manager.get_logger(name)


def setup_logging(config: LogConfig) -> LogManager:
    """Replace the global manager with one built from ``config``."""
    global _global_manager
    with _global_lock:
        if _global_manager is not None:
            _global_manager.shutdown()
        _global_manager = LogManager(config)
        return _global_manager


def shutdown_logging() -> None:
    global _global_manager
    with _global_lock:
        if _global_manager is not None:
            _global_manager.shutdown()
            _global_manager = None
