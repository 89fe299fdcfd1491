"""DuckDB storage backend for duckprom.

Samples are stored one row per key:

    CREATE TABLE samples (
        key VARCHAR PRIMARY KEY,
        metric VARCHAR NOT NULL,      -- JSON object of labels
        "timestamp" BIGINT NOT NULL,  -- milliseconds since epoch
        value DOUBLE
    )

Query expressions are rendered to DuckDB SQL, reading labels with
``json_extract_string`` and implementing ``regex_contains`` with
``regexp_matches`` (RE2, unanchored).
"""

import json
import logging
from typing import AsyncIterator

import duckdb

from duckprom.exceptions import InvalidRegexError, StorageBackendError
from duckprom.models import MatchType, SampleRecord
from duckprom.query.expression import Clause, LabelClause, QueryExpression
from duckprom.storage.backend import StorageBackend
from duckprom.storage.pool import DuckDBConnectionPool

logger = logging.getLogger(__name__)

FETCH_SIZE = 1024


def _label_expr(label: str) -> str:
    # Label names are validated identifiers by the time they get here.
    return f"coalesce(json_extract_string(metric, '$.{label}'), '')"


def render_clause(clause: Clause) -> str:
    """Render one clause as a DuckDB SQL predicate."""
    if isinstance(clause, LabelClause):
        expr = _label_expr(clause.label)
        if clause.kind == MatchType.EQUAL:
            return f"{expr} = ?"
        if clause.kind == MatchType.NOT_EQUAL:
            return f"{expr} != ?"
        if clause.kind == MatchType.REGEX_MATCH:
            return f"regexp_matches({expr}, ?)"
        return f"NOT regexp_matches({expr}, ?)"
    return f'"timestamp" BETWEEN {int(clause.start_ms)} AND {int(clause.end_ms)}'


def render_select(expression: QueryExpression) -> str:
    """Render a full SELECT for an expression, ordered by timestamp."""
    where = " AND ".join(render_clause(clause) for clause in expression.clauses)
    return (
        f'SELECT metric, "timestamp", value FROM "{expression.target}" '
        f'WHERE {where} ORDER BY "timestamp"'
    )


class DuckDBBackend(StorageBackend):
    """DuckDB-backed sample store.

    Storing an existing key replaces the row, like a document-store upsert.

    Example:
        pool = DuckDBConnectionPool(database=":memory:")
        backend = DuckDBBackend(pool, collection="samples")
        await backend.initialize()
    """

    def __init__(self, pool: DuckDBConnectionPool, collection: str = "samples") -> None:
        """Initialize DuckDB backend.

        Args:
            pool: Connection pool for the database
            collection: Table name; must be a plain identifier
        """
        self.pool = pool
        self.collection = collection

    @property
    def name(self) -> str:
        return self.collection

    async def initialize(self) -> None:
        await self.pool.initialize()
        try:
            async with self.pool.acquire() as conn:
                await self.pool.execute(
                    conn,
                    f'CREATE TABLE IF NOT EXISTS "{self.collection}" ('
                    "key VARCHAR PRIMARY KEY, "
                    "metric VARCHAR NOT NULL, "
                    '"timestamp" BIGINT NOT NULL, '
                    "value DOUBLE)",
                )
        except duckdb.Error as e:
            raise StorageBackendError("duckdb", "initialize", str(e)) from e

        logger.info(
            f"DuckDB backend ready: {self.pool.database} / {self.collection}",
            extra={"database": self.pool.database, "collection": self.collection},
        )

    async def close(self) -> None:
        await self.pool.close()

    async def store(self, key: str, record: SampleRecord) -> None:
        sql = (
            f'INSERT OR REPLACE INTO "{self.collection}" '
            '(key, metric, "timestamp", value) VALUES (?, ?, ?, ?)'
        )
        params = [
            key,
            json.dumps(dict(record.labels), sort_keys=True),
            record.timestamp,
            record.value,
        ]
        try:
            async with self.pool.acquire() as conn:
                await self.pool.execute(conn, sql, params)
        except duckdb.Error as e:
            raise StorageBackendError("duckdb", "store", str(e)) from e

    async def query(self, expression: QueryExpression) -> AsyncIterator[SampleRecord]:
        sql = render_select(expression)
        logger.debug("Executing sample query", extra={"query": sql})
        try:
            async with self.pool.acquire() as conn:
                await self.pool.execute(conn, sql, expression.params)
                while rows := await self.pool.fetchmany(conn, FETCH_SIZE):
                    for metric, timestamp, value in rows:
                        yield SampleRecord(
                            labels=json.loads(metric),
                            timestamp=timestamp,
                            value=value,
                        )
        except duckdb.Error as e:
            raise StorageBackendError("duckdb", "query", str(e)) from e

    async def validate_regex(self, label: str, pattern: str) -> None:
        """Compile the pattern with DuckDB's own RE2 engine."""
        try:
            async with self.pool.acquire() as conn:
                await self.pool.execute(conn, "SELECT regexp_matches('', ?)", [pattern])
                await self.pool.fetchmany(conn, 1)
        except duckdb.InvalidInputException as e:
            raise InvalidRegexError(label, pattern, str(e)) from e
        except duckdb.Error as e:
            raise StorageBackendError("duckdb", "validate_regex", str(e)) from e

    async def count(self) -> int:
        try:
            async with self.pool.acquire() as conn:
                await self.pool.execute(conn, f'SELECT count(*) FROM "{self.collection}"')
                rows = await self.pool.fetchmany(conn, 1)
        except duckdb.Error as e:
            raise StorageBackendError("duckdb", "count", str(e)) from e
        return int(rows[0][0])
