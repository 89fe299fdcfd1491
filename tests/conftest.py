"""Shared pytest fixtures for duckprom tests."""

import pytest

from duckprom.config import reset_settings
from duckprom.models import Matcher, ReadQuery, SamplePoint, WireSeries, WriteBatch
from duckprom.remote.codec import RemoteCodec
from duckprom.storage.memory_backend import InMemoryBackend


@pytest.fixture(autouse=True)
def clean_settings():
    """Never leak a cached Settings instance between tests."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def memory_backend():
    """Empty in-memory storage backend."""
    return InMemoryBackend("samples")


@pytest.fixture
def sample_batch():
    """Two series, three samples in total."""
    return WriteBatch(
        series=[
            WireSeries(
                labels=[("__name__", "up"), ("job", "api"), ("env", "prod")],
                samples=[SamplePoint(1000, 1.0), SamplePoint(2000, 0.0)],
            ),
            WireSeries(
                labels=[("__name__", "up"), ("job", "db"), ("env", "staging")],
                samples=[SamplePoint(1500, 1.0)],
            ),
        ]
    )


@pytest.fixture
def write_body(sample_batch):
    """Snappy-compressed WriteRequest for sample_batch."""
    return RemoteCodec.encode_write_request(sample_batch)


@pytest.fixture
def make_read_body():
    """Build a Snappy-compressed ReadRequest from (name, kind, value) triples."""

    def _make(matchers=(), start_ms=0, end_ms=10_000):
        query = ReadQuery(
            start_ms=start_ms,
            end_ms=end_ms,
            matchers=tuple(Matcher(name, kind, value) for name, kind, value in matchers),
        )
        return RemoteCodec.encode_read_request([query])

    return _make

