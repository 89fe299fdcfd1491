"""Storage backend interface for duckprom.

This module provides the abstract port the remote storage adapter writes
samples to and reads them back from.

Key Design Principles:
- One record per key; keys are opaque and carry no query semantics
- Stores are individual calls, never transactional across a batch
- Query results are produced lazily, in whatever order the store returns them
- Just-written rows are only guaranteed to become visible eventually
"""

import re
from abc import ABC, abstractmethod
from typing import AsyncIterator

from duckprom.exceptions import InvalidRegexError
from duckprom.models import SampleRecord
from duckprom.query.expression import QueryExpression


class StorageBackend(ABC):
    """Abstract base class for storage backends.

    Implementations raise StorageError (usually StorageBackendError) for any
    failure of the underlying engine.

    Example:
        await backend.initialize()
        await backend.store("6f1c...", record)
        async for row in backend.query(expression):
            ...
        await backend.close()
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Logical name of the stored collection."""
        pass

    @abstractmethod
    async def store(self, key: str, record: SampleRecord) -> None:
        """Persist one record under one key.

        Args:
            key: Unique storage key
            record: Sample to persist

        Raises:
            StorageBackendError: If the write fails
        """
        pass

    @abstractmethod
    def query(self, expression: QueryExpression) -> AsyncIterator[SampleRecord]:
        """Execute a query expression.

        Args:
            expression: Compiled clauses with positional parameters

        Returns:
            Async iterator of matching records

        Raises:
            StorageBackendError: If the query fails
        """
        pass

    async def validate_regex(self, label: str, pattern: str) -> None:
        """Check a regex matcher value against the dialect this backend runs.

        The default is Python's ``re``, which InMemoryBackend evaluates with.
        Backends that push regexes down to an engine override this.

        Raises:
            InvalidRegexError: If the engine would reject the pattern
        """
        try:
            re.compile(pattern)
        except re.error as e:
            raise InvalidRegexError(label, pattern, str(e)) from e

    async def initialize(self) -> None:
        """Prepare the backend for use (create tables, open connections)."""
        return None

    async def close(self) -> None:
        """Release resources held by the backend."""
        return None

    @abstractmethod
    async def count(self) -> int:
        """Number of stored records."""
        pass
