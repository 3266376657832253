"""Store implementations."""

from .base import DuplicateRecordError, Store
from .sqlite_store import SQLiteStore

__all__ = ["DuplicateRecordError", "Store", "SQLiteStore"]
