"""Remote storage adapter: sequences codec, mapper, compiler, storage and aggregator."""

from contextlib import aclosing

import structlog

from duckprom.exceptions import StorageError
from duckprom.metrics import AdapterMetrics
from duckprom.models import ReadQuery, TimeSeries
from duckprom.query.aggregator import ResultAggregator
from duckprom.query.compiler import MatcherCompiler
from duckprom.query.expression import LabelClause, QueryExpression
from duckprom.remote.codec import RemoteCodec
from duckprom.storage.backend import StorageBackend
from duckprom.write.mapper import SampleMapper
from duckprom.write.result import WriteResult

logger = structlog.get_logger(__name__)


class RemoteStorageAdapter:
    """
    Prometheus remote read/write over a storage backend.

    Write is best effort: every sample is stored with its own call, in order,
    and failures are collected instead of aborting the batch. Samples stored
    before or after a failure stay stored.

    Read checks every query of a request but answers only the first; any
    further queries are ignored (logged, not an error).

    Usage:
        adapter = RemoteStorageAdapter(backend)
        result = await adapter.write(request_body)
        if not result.ok:
            ...
        response_body = await adapter.read(request_body)
    """

    def __init__(
        self,
        backend: StorageBackend,
        metrics: AdapterMetrics | None = None,
        codec: RemoteCodec | None = None,
        mapper: SampleMapper | None = None,
        compiler: MatcherCompiler | None = None,
    ) -> None:
        self.backend = backend
        self.metrics = metrics or AdapterMetrics()
        self.codec = codec or RemoteCodec()
        self.mapper = mapper or SampleMapper()
        self.compiler = compiler or MatcherCompiler()

    async def write(self, body: bytes) -> WriteResult:
        """
        Decode a remote write body and store every sample.

        Args:
            body: Snappy-compressed WriteRequest

        Returns:
            WriteResult with one outcome per sample

        Raises:
            DecodeError: If the body cannot be decoded (nothing is stored)
        """
        with self.metrics.write_duration.time():
            batch = self.codec.decode_write(body)
            result = WriteResult()

            for series in batch.series:
                for keyed in self.mapper.map_series(series):
                    try:
                        with self.metrics.store_duration.time():
                            await self.backend.store(keyed.key, keyed.record)
                    except StorageError as e:
                        self.metrics.store_failures.inc()
                        logger.warning(
                            "sample_store_failed", key=keyed.key, error=str(e)
                        )
                        result.record(keyed.key, error=str(e))
                    else:
                        result.record(keyed.key)
                self.metrics.write_series_samples.observe(len(series.samples))

        log = logger.info if result.ok else logger.warning
        log("remote_write_processed", series=len(batch.series), **result.to_dict())
        return result

    async def read(self, body: bytes) -> bytes:
        """
        Answer a remote read body.

        Every query of the request is compiled and checked before storage is
        queried, so an invalid matcher in any query fails the whole request.
        Only the first query is then answered.

        Args:
            body: Snappy-compressed ReadRequest

        Returns:
            Snappy-compressed ReadResponse with a single query result

        Raises:
            DecodeError: If the body cannot be decoded
            QueryCompileError: If any query cannot be compiled
            StorageError: If the storage query fails
        """
        with self.metrics.read_duration.time():
            queries = self.codec.decode_read(body)
            expressions = [self.compile(query) for query in queries]
            for expression in expressions:
                await self.validate(expression)

            if len(queries) > 1:
                logger.warning(
                    "extra_read_queries_ignored",
                    received=len(queries),
                    answered=1,
                )

            series = await self.execute(queries[0], expressions[0])
            return self.codec.encode_read_response(series)

    def compile(self, query: ReadQuery) -> QueryExpression:
        return self.compiler.compile(query, target=self.backend.name)

    async def validate(self, expression: QueryExpression) -> None:
        """Check every regex parameter against the backend's regex dialect."""
        for clause, pattern in expression.bindings():
            if isinstance(clause, LabelClause) and clause.is_regex:
                await self.backend.validate_regex(clause.label, pattern)

    async def query(self, query: ReadQuery) -> list[TimeSeries]:
        """
        Run one read query and regroup the rows into series.

        Raises:
            QueryCompileError: If the query cannot be compiled
            StorageError: If the storage query fails
        """
        expression = self.compile(query)
        await self.validate(expression)
        return await self.execute(query, expression)

    async def execute(
        self, query: ReadQuery, expression: QueryExpression
    ) -> list[TimeSeries]:
        aggregator = ResultAggregator()
        try:
            with self.metrics.query_duration.time():
                async with aclosing(self.backend.query(expression)) as rows:
                    await aggregator.consume(rows)
        except StorageError as e:
            self.metrics.query_failures.inc()
            logger.error("storage_query_failed", where=str(expression), error=str(e))
            raise

        series = aggregator.series
        for ts in series:
            self.metrics.read_series_samples.observe(len(ts.samples))

        logger.info(
            "remote_read_processed",
            matchers=len(query.matchers),
            start_ms=query.start_ms,
            end_ms=query.end_ms,
            rows=aggregator.row_count,
            series=len(series),
        )
        return series
