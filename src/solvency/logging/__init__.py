"""Solvency structured logging.

Structured audit logging for the solvency pipeline: JSON or text output,
console/file/memory handlers, and a per-entry context carrying the
operation, caller and snapshot timestamp.
"""

from .core import (
    LogConfig,
    LogContext,
    LogEntry,
    LogFormatter,
    LogHandler,
    LogLevel,
    LogManager,
    SolvencyLogger,
    get_logger,
    setup_logging,
    shutdown_logging,
)
from .formatters import JSONFormatter, TextFormatter
from .handlers import ConsoleHandler, FileHandler, MemoryHandler

__all__ = [
    "LogLevel",
    "LogConfig",
    "LogContext",
    "LogEntry",
    "LogFormatter",
    "LogHandler",
    "LogManager",
    "SolvencyLogger",
    "get_logger",
    "setup_logging",
    "shutdown_logging",
    "JSONFormatter",
    "TextFormatter",
    "ConsoleHandler",
    "FileHandler",
    "MemoryHandler",
]
