"""DuckDB connection pool for the sample store."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Sequence

import duckdb

from duckprom.exceptions import StorageBackendError

logger = logging.getLogger(__name__)


class DuckDBConnectionPool:
    """
    Connection pool over a single DuckDB database.

    DuckDB connections are not safe to share between threads, so the pool
    hands out cursors of one root connection: each cursor is an independent
    connection to the same database instance (this also keeps ``:memory:``
    databases shared between pooled connections). Since DuckDB is not truly
    async, all operations run in a thread executor.

    Features:
    - Lazy connection creation up to max_connections
    - Memory and thread configuration on the root connection
    - Connection health checking
    - Proper cleanup on shutdown

    Usage:
        pool = DuckDBConnectionPool(
            database="~/.duckprom/samples.duckdb",
            max_connections=4,
            memory_limit="1GB",
            threads=4
        )
        await pool.initialize()

        async with pool.acquire() as conn:
            await pool.execute(conn, "SELECT count(*) FROM samples")
    """

    def __init__(
        self,
        database: str = ":memory:",
        max_connections: int = 4,
        memory_limit: str = "1GB",
        threads: int = 4,
    ) -> None:
        """
        Initialize connection pool.

        Args:
            database: DuckDB database file or ":memory:"
            max_connections: Maximum number of connections in pool
            memory_limit: DuckDB memory limit (e.g., "4GB", "512MB")
            threads: Number of threads for DuckDB query execution
        """
        self.database = database
        self.max_connections = max_connections
        self.memory_limit = memory_limit
        self.threads = threads

        self._root: duckdb.DuckDBPyConnection | None = None
        self._pool: asyncio.Queue[duckdb.DuckDBPyConnection] = asyncio.Queue(
            maxsize=max_connections
        )

        self._created_connections = 0
        self._lock = asyncio.Lock()

        self._closed = False

        logger.debug(
            "Initialized DuckDB connection pool",
            extra={
                "database": database,
                "max_connections": max_connections,
                "memory_limit": memory_limit,
                "threads": threads,
            },
        )

    async def initialize(self, min_connections: int = 1) -> None:
        """
        Open the database and pre-create connections in pool.

        Args:
            min_connections: Minimum number of connections to create upfront

        Raises:
            StorageBackendError: If the database cannot be opened
        """
        if self._closed:
            raise StorageBackendError("duckdb", "initialize", "pool is closed")

        loop = asyncio.get_running_loop()
        if self._root is None:
            try:
                self._root = await loop.run_in_executor(None, self._open_root)
            except duckdb.Error as e:
                logger.error(f"Failed to open DuckDB database {self.database}: {e}")
                raise StorageBackendError("duckdb", "connect", str(e)) from e

        connections_to_create = min(min_connections, self.max_connections)
        for i in range(connections_to_create):
            conn = await self._create_connection()
            await self._pool.put(conn)
            logger.debug(f"Created connection {i + 1}/{connections_to_create}")

        logger.debug(
            f"Connection pool initialized with {connections_to_create} connections"
        )

    def _open_root(self) -> duckdb.DuckDBPyConnection:
        """Open the root connection (runs in thread executor)."""
        conn = duckdb.connect(self.database)
        conn.execute(f"SET memory_limit='{self.memory_limit}'")
        conn.execute(f"SET threads={int(self.threads)}")
        conn.execute("SET enable_progress_bar=false")
        return conn

    async def _create_connection(self) -> duckdb.DuckDBPyConnection:
        """
        Create a new pooled connection.

        Returns:
            Cursor of the root connection

        Raises:
            StorageBackendError: If the pool was not initialized
        """
        if self._root is None:
            raise StorageBackendError("duckdb", "connect", "pool is not initialized")

        loop = asyncio.get_running_loop()
        conn = await loop.run_in_executor(None, self._root.cursor)
        self._created_connections += 1

        logger.debug(
            f"Created connection (total: {self._created_connections}/{self.max_connections})"
        )
        return conn

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[duckdb.DuckDBPyConnection]:
        """
        Acquire connection from pool.

        A new connection is created when the pool is empty and below
        max_connections; otherwise this waits for a connection to be released.

        Yields:
            DuckDB connection

        Raises:
            StorageBackendError: If the pool is closed
        """
        if self._closed:
            raise StorageBackendError("duckdb", "acquire", "pool is closed")

        conn: duckdb.DuckDBPyConnection | None = None

        async with self._lock:
            if self._pool.empty() and self._created_connections < self.max_connections:
                logger.debug("Pool empty, creating new connection")
                conn = await self._create_connection()

        if conn is None:
            conn = await self._pool.get()
            logger.debug("Acquired connection from pool")

        try:
            await self._check_connection_health(conn)
            yield conn

        finally:
            await self._pool.put(conn)
            logger.debug("Released connection back to pool")

    async def _check_connection_health(self, conn: duckdb.DuckDBPyConnection) -> None:
        """
        Check connection health.

        Raises:
            StorageBackendError: If connection is unhealthy
        """
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, conn.execute, "SELECT 1")
        except duckdb.Error as e:
            logger.error(f"Connection health check failed: {e}")
            raise StorageBackendError("duckdb", "health_check", str(e)) from e

    async def execute(
        self,
        conn: duckdb.DuckDBPyConnection,
        sql: str,
        params: Sequence[Any] | None = None,
    ) -> duckdb.DuckDBPyConnection:
        """
        Execute SQL in thread executor.

        Args:
            conn: DuckDB connection
            sql: SQL statement with ``?`` placeholders
            params: Positional parameters

        Returns:
            The connection, positioned on the statement's result
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, conn.execute, sql, list(params or []))

    async def fetchmany(self, conn: duckdb.DuckDBPyConnection, size: int) -> list[tuple]:
        """Fetch the next chunk of the current result in thread executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, conn.fetchmany, size)

    async def close(self) -> None:
        """
        Close all connections in pool.

        This method should be called when shutting down the application
        to properly clean up resources.
        """
        if self._closed:
            return

        logger.info("Closing connection pool")
        self._closed = True

        loop = asyncio.get_running_loop()
        closed_count = 0
        while not self._pool.empty():
            conn = self._pool.get_nowait()
            await loop.run_in_executor(None, conn.close)
            closed_count += 1

        if self._root is not None:
            await loop.run_in_executor(None, self._root.close)
            self._root = None

        logger.info(f"Connection pool closed ({closed_count} connections)")

    @property
    def available_connections(self) -> int:
        """Get number of available connections in pool."""
        return self._pool.qsize()

    @property
    def total_connections(self) -> int:
        """Get total number of created connections."""
        return self._created_connections
