"""Flatten remote-write series into keyed sample records."""

import uuid
from typing import Callable, Iterable, Iterator

from duckprom.models import KeyedRecord, LabelSet, SampleRecord, WireSeries, WriteBatch


def new_stored_key() -> str:
    """Random 128-bit key, formatted as a UUID string."""
    return str(uuid.uuid4())


def build_label_set(pairs: Iterable[tuple[str, str]]) -> LabelSet:
    """Build a LabelSet from name/value pairs; a repeated name keeps its last value."""
    return {name: value for name, value in pairs}


class SampleMapper:
    """
    Map decoded write batches to records ready for storage.

    Every sample gets a fresh key from ``key_factory``. Keys never depend on
    sample content, so resubmitting identical samples stores them again.

    Example:
        mapper = SampleMapper()
        for keyed in mapper.map_batch(batch):
            await backend.store(keyed.key, keyed.record)
    """

    def __init__(self, key_factory: Callable[[], str] = new_stored_key) -> None:
        self.key_factory = key_factory

    def map_series(self, series: WireSeries) -> list[KeyedRecord]:
        """Emit one keyed record per sample of a single series."""
        labels = build_label_set(series.labels)
        return [
            KeyedRecord(
                key=self.key_factory(),
                record=SampleRecord(labels=labels, timestamp=timestamp, value=value),
            )
            for timestamp, value in series.samples
        ]

    def map_batch(self, batch: WriteBatch) -> Iterator[KeyedRecord]:
        """Emit keyed records for every sample of every series, in wire order."""
        for series in batch.series:
            yield from self.map_series(series)
