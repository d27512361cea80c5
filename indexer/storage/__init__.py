"""
Data storage layer.

Holds the fact tables (votes, claims, audit rows), derived aggregates
(leaderboards, rankings, top-brand cache) and the processed-event ledger.

Backends:
    - duckdb: durable local database file (default)
    - memory: dict tables, for tests and dry-run replays
"""

from functools import lru_cache

from indexer.config import get_settings

from .base import StorageBackend, StorageError
from .duckdb_storage import DuckDBStorage
from .memory_storage import MemoryStorage


@lru_cache
def get_storage() -> StorageBackend:
    """
    Get cached storage backend instance (singleton).

    Returns the implementation named by ``settings.db_type``.

    Returns:
        StorageBackend implementation instance
    """
    settings = get_settings()
    if settings.db_type == "memory":
        return MemoryStorage()
    return DuckDBStorage(db_path=settings.db_path, threads=settings.db_threads)


__all__ = [
    "StorageBackend",
    "StorageError",
    "DuckDBStorage",
    "MemoryStorage",
    "get_storage",
]
