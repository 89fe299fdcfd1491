"""Outcome of a best-effort, non-transactional write."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class StoreOutcome:
    """Result of storing one record under one key."""

    key: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class WriteResult:
    """
    Per-key outcomes of a write request.

    Successful stores are never rolled back when a later store fails, so a
    failed result may still have ``stored_keys``.

    Attributes:
        outcomes: One outcome per sample, in the order they were stored
    """

    outcomes: list[StoreOutcome] = field(default_factory=list)

    def record(self, key: str, error: str | None = None) -> None:
        self.outcomes.append(StoreOutcome(key=key, error=error))

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def stored_keys(self) -> list[str]:
        return [o.key for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[StoreOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def errors(self) -> list[str]:
        return [o.error for o in self.outcomes if o.error is not None]

    @property
    def error_message(self) -> str:
        """All error messages joined with ", "."""
        return ", ".join(self.errors)

    def to_dict(self) -> dict:
        """Summary for logging."""
        return {
            "samples": len(self.outcomes),
            "stored": len(self.stored_keys),
            "failed": len(self.failed),
        }
