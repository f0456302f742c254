"""Persistence for solvency records and address-ownership entries."""

from .database import DatabaseConfig, InMemoryRecordStore, RecordStore, SQLiteRecordStore

__all__ = [
    "DatabaseConfig",
    "RecordStore",
    "InMemoryRecordStore",
    "SQLiteRecordStore",
]
