"""In-memory storage backend for duckprom.

Records live in a dict keyed by storage key, in insertion order. Queries are
evaluated clause by clause in Python, which makes this backend the reference
for what a compiled QueryExpression means:

- ``label == ?`` / ``label != ?`` compare the label value, absent labels read as ""
- ``regex_contains(label, ?)`` is ``re.search`` (unanchored)
- ``timestamp BETWEEN a AND b`` is inclusive on both ends
"""

import re
from typing import AsyncIterator

from duckprom.models import MatchType, SampleRecord
from duckprom.query.expression import LabelClause, QueryExpression, TimeRangeClause
from duckprom.storage.backend import StorageBackend


def _label_matches(clause: LabelClause, param: str, record: SampleRecord) -> bool:
    value = record.labels.get(clause.label, "")
    if clause.kind in (MatchType.EQUAL, MatchType.NOT_EQUAL):
        matched = value == param
    else:
        matched = re.search(param, value) is not None
    return not matched if clause.negated else matched


def matches(expression: QueryExpression, record: SampleRecord) -> bool:
    """Evaluate every clause of an expression against one record."""
    for clause, param in expression.bindings():
        if isinstance(clause, TimeRangeClause):
            if not clause.start_ms <= record.timestamp <= clause.end_ms:
                return False
        elif not _label_matches(clause, param, record):
            return False
    return True


class InMemoryBackend(StorageBackend):
    """Dict-backed storage backend.

    Storing an existing key replaces the record. Nothing survives a restart.

    Example:
        backend = InMemoryBackend("samples")
        await backend.store(key, record)
    """

    def __init__(self, collection: str = "samples") -> None:
        self.collection = collection
        self.records: dict[str, SampleRecord] = {}

    @property
    def name(self) -> str:
        return self.collection

    async def store(self, key: str, record: SampleRecord) -> None:
        self.records[key] = record

    async def query(self, expression: QueryExpression) -> AsyncIterator[SampleRecord]:
        for record in list(self.records.values()):
            if matches(expression, record):
                yield record

    async def count(self) -> int:
        return len(self.records)
