"""Regroup stored rows into time series."""

import json
import re
from typing import AsyncIterable, Iterable, Mapping

from duckprom.models import SamplePoint, SampleRecord, TimeSeries

_PLAIN_NAME = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _quote_name(name: str) -> str:
    return name if _PLAIN_NAME.match(name) else json.dumps(name)


def signature(labels: Mapping[str, str]) -> str:
    """
    Canonical string for a label set.

    Names are sorted, so insertion order never matters:

        >>> signature({"job": "api", "env": "prod"})
        '{env="prod", job="api"}'
    """
    body = ", ".join(
        f"{_quote_name(name)}={json.dumps(value)}"
        for name, value in sorted(labels.items())
    )
    return "{" + body + "}"


class ResultAggregator:
    """
    Fold rows into one TimeSeries per distinct label set.

    Series come out in the order their first row was seen; samples keep the
    order rows were returned by the store.
    """

    def __init__(self) -> None:
        self._series: dict[str, TimeSeries] = {}
        self.row_count = 0

    def add(self, row: SampleRecord) -> None:
        key = signature(row.labels)
        series = self._series.get(key)
        if series is None:
            series = TimeSeries(labels=dict(sorted(row.labels.items())))
            self._series[key] = series
        series.samples.append(SamplePoint(row.timestamp, row.value))
        self.row_count += 1

    def extend(self, rows: Iterable[SampleRecord]) -> "ResultAggregator":
        for row in rows:
            self.add(row)
        return self

    async def consume(self, rows: AsyncIterable[SampleRecord]) -> "ResultAggregator":
        async for row in rows:
            self.add(row)
        return self

    @property
    def series(self) -> list[TimeSeries]:
        return list(self._series.values())

    def __len__(self) -> int:
        return len(self._series)
