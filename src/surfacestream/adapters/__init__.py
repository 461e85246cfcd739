"""Concrete adapters for the storage ports."""

from .memory_store import InMemoryImpressionLog, InMemorySegmentStore, InMemorySurfaceStore, InMemoryVisitorStore
from .sqlite_store import (
    SqliteDatabase,
    SqliteImpressionLog,
    SqliteSegmentStore,
    SqliteSurfaceStore,
    SqliteVisitorStore,
)

__all__ = [
    "InMemoryImpressionLog",
    "InMemorySegmentStore",
    "InMemorySurfaceStore",
    "InMemoryVisitorStore",
    "SqliteDatabase",
    "SqliteImpressionLog",
    "SqliteSegmentStore",
    "SqliteSurfaceStore",
    "SqliteVisitorStore",
]
