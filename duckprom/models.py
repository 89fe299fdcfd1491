"""Core data types shared by the write and read paths."""

from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType
from typing import Mapping, NamedTuple

LabelSet = dict[str, str]


class MatchType(IntEnum):
    """Label matcher comparison kinds, numbered as on the wire."""

    EQUAL = 0
    NOT_EQUAL = 1
    REGEX_MATCH = 2
    REGEX_NOT_MATCH = 3


class SamplePoint(NamedTuple):
    """A single (timestamp, value) pair."""

    timestamp: int
    value: float


@dataclass(frozen=True)
class SampleRecord:
    """
    One stored sample: the metric's labels plus a timestamp and value.

    Attributes:
        labels: Label name -> value, read-only
        timestamp: Milliseconds since the Unix epoch
        value: Sample value
    """

    labels: Mapping[str, str]
    timestamp: int
    value: float

    def __post_init__(self) -> None:
        if not isinstance(self.labels, MappingProxyType):
            object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))

    def to_dict(self) -> dict:
        """Document form used by storage engines."""
        return {
            "metric": dict(self.labels),
            "timestamp": self.timestamp,
            "value": self.value,
        }


@dataclass(frozen=True)
class KeyedRecord:
    """A record paired with the storage key it will be written under."""

    key: str
    record: SampleRecord


@dataclass(frozen=True)
class Matcher:
    """
    A single label filter of a read query.

    ``kind`` holds the raw wire integer when the sender used a matcher type
    this adapter does not know, so the compiler can reject it.
    """

    name: str
    kind: MatchType | int
    value: str


@dataclass(frozen=True)
class ReadQuery:
    """Matchers plus the closed time interval [start_ms, end_ms]."""

    start_ms: int
    end_ms: int
    matchers: tuple[Matcher, ...] = ()


@dataclass
class WireSeries:
    """A decoded remote-write series: label pairs in wire order plus samples."""

    labels: list[tuple[str, str]] = field(default_factory=list)
    samples: list[SamplePoint] = field(default_factory=list)


@dataclass
class WriteBatch:
    """A decoded remote-write request."""

    series: list[WireSeries] = field(default_factory=list)

    @property
    def sample_count(self) -> int:
        return sum(len(s.samples) for s in self.series)


@dataclass
class TimeSeries:
    """A read-side series assembled from stored rows."""

    labels: LabelSet
    samples: list[SamplePoint] = field(default_factory=list)
