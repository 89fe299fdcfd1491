"""Tests for the remote read/write HTTP API."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry

from duckprom.adapter import RemoteStorageAdapter
from duckprom.api.app import create_app
from duckprom.config import Settings
from duckprom.exceptions import StorageBackendError
from duckprom.metrics import AdapterMetrics
from duckprom.models import MatchType, SamplePoint, WireSeries, WriteBatch
from duckprom.remote.codec import RemoteCodec
from duckprom.storage.memory_backend import InMemoryBackend

PROTOBUF_HEADERS = {
    "Content-Type": "application/x-protobuf",
    "Content-Encoding": "snappy",
}


class FailingStoreBackend(InMemoryBackend):
    """Fails the second store call."""

    calls = 0

    async def store(self, key, record):
        self.calls += 1
        if self.calls == 2:
            raise StorageBackendError("memory", "store", "write rejected")
        await super().store(key, record)


class FailingQueryBackend(InMemoryBackend):
    async def query(self, expression):
        raise StorageBackendError("memory", "query", "connection lost")
        yield


@pytest.fixture
def settings():
    return Settings(storage_backend="memory", metrics_enabled=True)


def _client(backend, settings):
    adapter = RemoteStorageAdapter(backend, metrics=AdapterMetrics(CollectorRegistry()))
    return TestClient(create_app(adapter=adapter, settings=settings))


@pytest.fixture
def client(memory_backend, settings):
    with _client(memory_backend, settings) as test_client:
        yield test_client


class TestRemoteWrite:
    """Test POST /write."""

    def test_write_stores_samples(self, client, memory_backend, write_body):
        response = client.post("/write", content=write_body, headers=PROTOBUF_HEADERS)

        assert response.status_code == 200
        assert response.content == b""
        assert len(memory_backend.records) == 3

    def test_write_decompression_failure(self, client, memory_backend):
        response = client.post("/write", content=b"\xff" * 10, headers=PROTOBUF_HEADERS)

        assert response.status_code == 400
        body = response.json()
        assert "decompress" in body["detail"]
        assert body["request_id"] == response.headers["X-Request-ID"]
        assert memory_backend.records == {}

    def test_write_protobuf_failure(self, client):
        response = client.post(
            "/write",
            content=RemoteCodec.compress(b"\x0a\x05ab"),
            headers=PROTOBUF_HEADERS,
        )

        assert response.status_code == 400
        assert "WriteRequest" in response.json()["detail"]

    def test_write_partial_failure(self, settings):
        backend = FailingStoreBackend()
        body = RemoteCodec.encode_write_request(
            WriteBatch(
                series=[
                    WireSeries(
                        labels=[("job", "api")],
                        samples=[
                            SamplePoint(1, 1.0),
                            SamplePoint(2, 2.0),
                            SamplePoint(3, 3.0),
                        ],
                    )
                ]
            )
        )

        with _client(backend, settings) as client:
            response = client.post("/write", content=body, headers=PROTOBUF_HEADERS)

        assert response.status_code == 500
        assert response.json()["detail"] == (
            "Storage backend error (memory): store - write rejected"
        )
        assert sorted(r.timestamp for r in backend.records.values()) == [1, 3]

    def test_write_without_protobuf_headers(self, client, write_body):
        """Test header deviations are tolerated when the body decodes."""
        response = client.post("/write", content=write_body)
        assert response.status_code == 200

    def test_request_too_large(self, memory_backend):
        settings = Settings(storage_backend="memory", max_request_size_mb=1)

        with _client(memory_backend, settings) as client:
            response = client.post(
                "/write", content=b"\x00" * (1024 * 1024 + 1), headers=PROTOBUF_HEADERS
            )

        assert response.status_code == 400
        assert "too large" in response.json()["detail"]

    def test_request_id_passthrough(self, client, write_body):
        response = client.post(
            "/write",
            content=write_body,
            headers={**PROTOBUF_HEADERS, "X-Request-ID": "req-123"},
        )
        assert response.headers["X-Request-ID"] == "req-123"

    @patch("duckprom.api.middleware.logger")
    def test_user_agent_logged(self, mock_logger, client, write_body):
        client.post(
            "/write",
            content=write_body,
            headers={**PROTOBUF_HEADERS, "User-Agent": "Prometheus/2.53.0"},
        )

        started = mock_logger.debug.call_args
        assert started.args == ("request_started",)
        assert started.kwargs["user_agent"] == "Prometheus/2.53.0"


class TestRemoteRead:
    """Test POST /read."""

    def test_read_returns_protobuf(self, client, write_body, make_read_body):
        client.post("/write", content=write_body, headers=PROTOBUF_HEADERS)

        response = client.post(
            "/read",
            content=make_read_body([("job", MatchType.EQUAL, "api")]),
            headers=PROTOBUF_HEADERS,
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/x-protobuf"
        series = RemoteCodec.decode_read_response(response.content)
        assert len(series) == 1
        assert series[0].samples == [SamplePoint(1000, 1.0), SamplePoint(2000, 0.0)]

    def test_read_no_matches(self, client, make_read_body):
        response = client.post(
            "/read",
            content=make_read_body([("job", MatchType.EQUAL, "missing")]),
            headers=PROTOBUF_HEADERS,
        )

        assert response.status_code == 200
        assert RemoteCodec.decode_read_response(response.content) == []

    def test_read_decompression_failure(self, client):
        response = client.post("/read", content=b"\xff" * 10, headers=PROTOBUF_HEADERS)

        assert response.status_code == 400
        assert "decompress" in response.json()["detail"]

    def test_read_without_queries(self, client):
        response = client.post(
            "/read",
            content=RemoteCodec.encode_read_request([]),
            headers=PROTOBUF_HEADERS,
        )
        assert response.status_code == 400

    def test_unsupported_matcher(self, memory_backend, settings, make_read_body):
        memory_backend.query = MagicMock()

        with _client(memory_backend, settings) as client:
            response = client.post(
                "/read",
                content=make_read_body([("job", 7, "api")]),
                headers=PROTOBUF_HEADERS,
            )

        assert response.status_code == 400
        assert "Unsupported matcher type" in response.json()["detail"]
        memory_backend.query.assert_not_called()

    def test_invalid_regex(self, client, make_read_body):
        response = client.post(
            "/read",
            content=make_read_body([("job", MatchType.REGEX_MATCH, "(")]),
            headers=PROTOBUF_HEADERS,
        )
        assert response.status_code == 400

    def test_storage_failure(self, settings, make_read_body):
        with _client(FailingQueryBackend(), settings) as client:
            response = client.post(
                "/read", content=make_read_body(), headers=PROTOBUF_HEADERS
            )

        assert response.status_code == 500
        assert "connection lost" in response.json()["detail"]


class TestServiceEndpoints:
    """Test health and telemetry endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready(self, client, write_body):
        client.post("/write", content=write_body, headers=PROTOBUF_HEADERS)

        response = client.get("/health/ready")

        assert response.status_code == 200
        body = response.json()
        assert body["storage"] == "samples"
        assert body["stored_samples"] == 3

    def test_metrics(self, client, write_body):
        client.post("/write", content=write_body, headers=PROTOBUF_HEADERS)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "duckprom_adapter_write_latency_seconds_count 1.0" in response.text

    def test_metrics_disabled(self, memory_backend):
        settings = Settings(storage_backend="memory", metrics_enabled=False)

        with _client(memory_backend, settings) as client:
            assert client.get("/metrics").status_code == 404


class TestApplicationLifespan:
    """Test adapter construction at startup."""

    def test_adapter_built_from_settings(self, write_body):
        app = create_app(settings=Settings(storage_backend="memory"))

        with TestClient(app) as client:
            assert client.post(
                "/write", content=write_body, headers=PROTOBUF_HEADERS
            ).status_code == 200
            assert client.get("/health/ready").json()["stored_samples"] == 3

        assert app.state.adapter is None

    @pytest.mark.parametrize(
        "pattern,status_code",
        [("a(?=b)", 400), (r"\p{L}+", 200)],
    )
    def test_regex_checked_by_storage_dialect(
        self, write_body, make_read_body, pattern, status_code
    ):
        """Test regexes are judged by the RE2 engine DuckDB queries with."""
        app = create_app(
            settings=Settings(storage_backend="duckdb", storage_database=":memory:")
        )

        with TestClient(app) as client:
            client.post("/write", content=write_body, headers=PROTOBUF_HEADERS)
            response = client.post(
                "/read",
                content=make_read_body([("job", MatchType.REGEX_MATCH, pattern)]),
                headers=PROTOBUF_HEADERS,
            )

        assert response.status_code == status_code
        if status_code == 400:
            assert "Invalid regex" in response.json()["detail"]
        else:
            series = RemoteCodec.decode_read_response(response.content)
            assert [ts.labels["job"] for ts in series] == ["api", "db"]

    def test_not_started(self, write_body):
        """Test requests before startup are answered with 503."""
        client = TestClient(create_app(settings=Settings(storage_backend="memory")))

        response = client.post("/write", content=write_body, headers=PROTOBUF_HEADERS)

        assert response.status_code == 503
