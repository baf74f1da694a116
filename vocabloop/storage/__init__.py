"""Record store implementations."""

from .memory import InMemoryRecordStore
from .sqlite import DEFAULT_DB_PATH, SQLiteRecordStore

__all__ = ["InMemoryRecordStore", "SQLiteRecordStore", "DEFAULT_DB_PATH"]
