"""Storage backends for duckprom."""

from duckprom.config import Settings
from duckprom.storage.backend import StorageBackend
from duckprom.storage.duckdb_backend import DuckDBBackend
from duckprom.storage.memory_backend import InMemoryBackend
from duckprom.storage.pool import DuckDBConnectionPool


def create_backend(settings: Settings) -> StorageBackend:
    """Build the storage backend selected by configuration.

    The backend still needs ``await backend.initialize()`` before use.
    """
    if settings.storage_backend == "memory":
        return InMemoryBackend(settings.storage_collection)

    if not settings.is_in_memory:
        from pathlib import Path

        Path(settings.storage_database).parent.mkdir(parents=True, exist_ok=True)

    pool = DuckDBConnectionPool(
        database=settings.storage_database,
        max_connections=settings.duckdb_pool_size,
        memory_limit=settings.duckdb_memory_limit,
        threads=settings.duckdb_threads,
    )
    return DuckDBBackend(pool, collection=settings.storage_collection)


__all__ = [
    "DuckDBBackend",
    "DuckDBConnectionPool",
    "InMemoryBackend",
    "StorageBackend",
    "create_backend",
]
