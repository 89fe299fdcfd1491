"""Adapter telemetry using prometheus_client.

Metrics are registered on a collector registry owned by the adapter rather
than the process-wide default, so several adapters (and tests) can coexist.
prometheus_client metrics are safe to update from concurrent requests.
"""

from prometheus_client import CollectorRegistry, Counter, Histogram, Summary


class AdapterMetrics:
    """Counters and latency histograms for the remote read/write paths.

    Example:
        metrics = AdapterMetrics()
        with metrics.write_duration.time():
            ...
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        namespace: str = "duckprom_adapter",
    ) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()

        self.write_duration = Histogram(
            "write_latency_seconds",
            "How long it took us to respond to write requests.",
            namespace=namespace,
            registry=self.registry,
        )
        self.write_series_samples = Summary(
            "write_timeseries_samples",
            "How many samples each written timeseries has.",
            namespace=namespace,
            registry=self.registry,
        )
        self.store_duration = Histogram(
            "write_storage_latency_seconds",
            "Latency for single sample inserts into storage.",
            namespace=namespace,
            registry=self.registry,
        )
        self.store_failures = Counter(
            "write_storage_failed",
            "How many sample inserts into storage failed.",
            namespace=namespace,
            registry=self.registry,
        )
        self.read_duration = Histogram(
            "read_latency_seconds",
            "How long it took us to respond to read requests.",
            namespace=namespace,
            registry=self.registry,
        )
        self.query_duration = Histogram(
            "read_storage_latency_seconds",
            "Latency for queries against storage.",
            namespace=namespace,
            registry=self.registry,
        )
        self.query_failures = Counter(
            "read_storage_failed",
            "How many queries against storage failed.",
            namespace=namespace,
            registry=self.registry,
        )
        self.read_series_samples = Summary(
            "read_timeseries_samples",
            "How many samples each returned timeseries has.",
            namespace=namespace,
            registry=self.registry,
        )
