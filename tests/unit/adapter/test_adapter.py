"""Tests for the remote storage adapter."""

from unittest.mock import MagicMock, patch

import pytest
from prometheus_client import CollectorRegistry

from duckprom.adapter import RemoteStorageAdapter
from duckprom.exceptions import (
    DecompressionError,
    InvalidRegexError,
    StorageBackendError,
    UnsupportedMatcherError,
)
from duckprom.metrics import AdapterMetrics
from duckprom.models import (
    Matcher,
    MatchType,
    ReadQuery,
    SamplePoint,
    SampleRecord,
    WireSeries,
    WriteBatch,
)
from duckprom.query.aggregator import ResultAggregator
from duckprom.remote.codec import RemoteCodec
from duckprom.storage import DuckDBBackend, DuckDBConnectionPool
from duckprom.storage.memory_backend import InMemoryBackend


class FailingBackend(InMemoryBackend):
    """In-memory backend whose Nth store call fails."""

    def __init__(self, fail_on: set[int]) -> None:
        super().__init__("samples")
        self.fail_on = fail_on
        self.calls = 0

    async def store(self, key, record):
        self.calls += 1
        if self.calls in self.fail_on:
            raise StorageBackendError("memory", "store", f"disk full at {record.timestamp}")
        await super().store(key, record)


class BrokenQueryBackend(InMemoryBackend):
    async def query(self, expression):
        raise StorageBackendError("memory", "query", "connection lost")
        yield


@pytest.fixture
def metrics():
    return AdapterMetrics(registry=CollectorRegistry())


def _metric(metrics, name):
    return metrics.registry.get_sample_value(name) or 0.0


class TestWrite:
    """Test the write path."""

    async def test_stores_every_sample(self, memory_backend, metrics, write_body):
        adapter = RemoteStorageAdapter(memory_backend, metrics=metrics)

        result = await adapter.write(write_body)

        assert result.ok
        assert len(result.stored_keys) == 3
        assert set(memory_backend.records) == set(result.stored_keys)
        assert _metric(metrics, "duckprom_adapter_write_latency_seconds_count") == 1
        assert _metric(metrics, "duckprom_adapter_write_timeseries_samples_count") == 2
        assert _metric(metrics, "duckprom_adapter_write_timeseries_samples_sum") == 3

    async def test_failure_does_not_stop_batch(self, metrics):
        """Test a failing store is reported while the other samples persist."""
        backend = FailingBackend(fail_on={2})
        adapter = RemoteStorageAdapter(backend, metrics=metrics)
        body = RemoteCodec.encode_write_request(
            WriteBatch(
                series=[
                    WireSeries(
                        labels=[("job", "api")],
                        samples=[
                            SamplePoint(1000, 1.0),
                            SamplePoint(2000, 2.0),
                            SamplePoint(3000, 3.0),
                        ],
                    )
                ]
            )
        )

        result = await adapter.write(body)

        assert not result.ok
        assert result.errors == [
            "Storage backend error (memory): store - disk full at 2000"
        ]
        assert sorted(r.timestamp for r in backend.records.values()) == [1000, 3000]
        assert _metric(metrics, "duckprom_adapter_write_storage_failed_total") == 1

    async def test_error_message_joins_failures(self, metrics, write_body):
        backend = FailingBackend(fail_on={1, 3})
        adapter = RemoteStorageAdapter(backend, metrics=metrics)

        result = await adapter.write(write_body)

        assert result.error_message == (
            "Storage backend error (memory): store - disk full at 1000, "
            "Storage backend error (memory): store - disk full at 1500"
        )
        assert len(result.stored_keys) == 1

    async def test_decode_failure_stores_nothing(self, memory_backend, metrics):
        adapter = RemoteStorageAdapter(memory_backend, metrics=metrics)

        with pytest.raises(DecompressionError):
            await adapter.write(b"\xff" * 10)

        assert memory_backend.records == {}

    async def test_stored_labels_keep_last_duplicate(self, memory_backend, metrics):
        adapter = RemoteStorageAdapter(memory_backend, metrics=metrics)
        body = RemoteCodec.encode_write_request(
            WriteBatch(
                series=[
                    WireSeries(
                        labels=[("job", "api"), ("job", "web")],
                        samples=[SamplePoint(1, 1.0)],
                    )
                ]
            )
        )

        await adapter.write(body)

        (record,) = memory_backend.records.values()
        assert dict(record.labels) == {"job": "web"}


class TestRead:
    """Test the read path."""

    @pytest.fixture
    async def populated(self, memory_backend, metrics, write_body):
        adapter = RemoteStorageAdapter(memory_backend, metrics=metrics)
        await adapter.write(write_body)
        return adapter

    async def test_query_groups_series(self, populated):
        series = await populated.query(
            ReadQuery(
                start_ms=0,
                end_ms=5000,
                matchers=(Matcher("__name__", MatchType.EQUAL, "up"),),
            )
        )

        assert [ts.labels["job"] for ts in series] == ["api", "db"]
        assert series[0].samples == [SamplePoint(1000, 1.0), SamplePoint(2000, 0.0)]

    async def test_read_round_trip(self, populated, make_read_body):
        body = make_read_body(
            [("env", MatchType.REGEX_MATCH, "prod")], start_ms=0, end_ms=1500
        )

        series = RemoteCodec.decode_read_response(await populated.read(body))

        assert len(series) == 1
        assert series[0].labels == {"__name__": "up", "env": "prod", "job": "api"}
        assert series[0].samples == [SamplePoint(1000, 1.0)]

    async def test_only_first_query_answered(self, populated):
        body = RemoteCodec.encode_read_request(
            [
                ReadQuery(0, 5000, (Matcher("job", MatchType.EQUAL, "db"),)),
                ReadQuery(0, 5000, (Matcher("job", MatchType.EQUAL, "api"),)),
            ]
        )

        series = RemoteCodec.decode_read_response(await populated.read(body))

        assert [ts.labels["job"] for ts in series] == ["db"]

    async def test_unsupported_matcher_never_queries_storage(self, metrics):
        backend = InMemoryBackend()
        backend.query = MagicMock()
        adapter = RemoteStorageAdapter(backend, metrics=metrics)
        body = RemoteCodec.encode_read_request(
            [ReadQuery(0, 1, (Matcher("job", 7, "api"),))]
        )

        with pytest.raises(UnsupportedMatcherError):
            await adapter.read(body)

        backend.query.assert_not_called()

    async def test_storage_failure_propagates(self, metrics, make_read_body):
        adapter = RemoteStorageAdapter(BrokenQueryBackend(), metrics=metrics)

        with pytest.raises(StorageBackendError):
            await adapter.read(make_read_body())

        assert _metric(metrics, "duckprom_adapter_read_storage_failed_total") == 1

    async def test_read_metrics(self, populated, metrics, make_read_body):
        await populated.read(make_read_body())

        assert _metric(metrics, "duckprom_adapter_read_latency_seconds_count") == 1
        assert _metric(metrics, "duckprom_adapter_read_timeseries_samples_count") == 2

    @pytest.mark.parametrize(
        "bad_matcher,error",
        [
            (Matcher("job", 7, "api"), UnsupportedMatcherError),
            (Matcher("env", MatchType.REGEX_MATCH, "prod("), InvalidRegexError),
        ],
    )
    async def test_invalid_later_query_fails_whole_read(
        self, metrics, bad_matcher, error
    ):
        """Test every query is checked although only the first is answered."""
        backend = InMemoryBackend()
        backend.query = MagicMock()
        adapter = RemoteStorageAdapter(backend, metrics=metrics)
        body = RemoteCodec.encode_read_request(
            [
                ReadQuery(0, 1, (Matcher("job", MatchType.EQUAL, "api"),)),
                ReadQuery(0, 1, (bad_matcher,)),
            ]
        )

        with pytest.raises(error):
            await adapter.read(body)

        backend.query.assert_not_called()


class TestReadDuckDB:
    """Test reads against the DuckDB backend."""

    @pytest.fixture
    async def duckdb_adapter(self, metrics, write_body):
        pool = DuckDBConnectionPool(database=":memory:", max_connections=1, threads=1)
        backend = DuckDBBackend(pool)
        await backend.initialize()
        adapter = RemoteStorageAdapter(backend, metrics=metrics)
        await adapter.write(write_body)
        yield adapter
        await backend.close()

    async def test_regex_rejected_by_engine(self, duckdb_adapter, make_read_body):
        """Test a pattern only Python's re accepts is a compile error."""
        with pytest.raises(InvalidRegexError):
            await duckdb_adapter.read(
                make_read_body([("job", MatchType.REGEX_MATCH, "a(?=p)")])
            )

    async def test_re2_only_regex_answered(self, duckdb_adapter, make_read_body):
        """Test a pattern only RE2 accepts is run by the store."""
        body = make_read_body([("job", MatchType.REGEX_MATCH, r"^\p{Ll}+$")])

        series = RemoteCodec.decode_read_response(await duckdb_adapter.read(body))

        assert [ts.labels["job"] for ts in series] == ["api", "db"]

    async def test_connection_released_when_consumer_fails(
        self, duckdb_adapter, make_read_body
    ):
        """Test the pooled connection is returned as soon as reading stops."""
        pool = duckdb_adapter.backend.pool

        with patch.object(ResultAggregator, "add", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                await duckdb_adapter.read(make_read_body())

        assert pool.available_connections == 1
