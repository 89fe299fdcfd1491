"""Backend-agnostic query expressions.

An expression is a conjunction of clauses against one stored collection.
Untrusted string values never appear in clause text; each label clause binds
exactly one positional parameter, in clause order. The time range clause
carries its integer bounds literally and binds nothing.
"""

from dataclasses import dataclass
from typing import Iterator, Union

from duckprom.models import MatchType

_LABEL_TEMPLATES = {
    MatchType.EQUAL: '"{label}" == ?',
    MatchType.NOT_EQUAL: '"{label}" != ?',
    MatchType.REGEX_MATCH: 'regex_contains("{label}", ?)',
    MatchType.REGEX_NOT_MATCH: 'not regex_contains("{label}", ?)',
}


@dataclass(frozen=True)
class LabelClause:
    """Compare one label of the stored label set against a bound parameter."""

    label: str
    kind: MatchType

    @property
    def negated(self) -> bool:
        return self.kind in (MatchType.NOT_EQUAL, MatchType.REGEX_NOT_MATCH)

    @property
    def is_regex(self) -> bool:
        return self.kind in (MatchType.REGEX_MATCH, MatchType.REGEX_NOT_MATCH)

    def __str__(self) -> str:
        return _LABEL_TEMPLATES[self.kind].format(label=self.label)


@dataclass(frozen=True)
class TimeRangeClause:
    """Inclusive timestamp range in milliseconds."""

    start_ms: int
    end_ms: int

    def __str__(self) -> str:
        return f"timestamp BETWEEN {self.start_ms} AND {self.end_ms}"


Clause = Union[LabelClause, TimeRangeClause]


@dataclass(frozen=True)
class QueryExpression:
    """
    Clauses joined by AND, plus their positional parameters.

    Attributes:
        target: Name of the stored collection to query
        clauses: Label clauses in matcher order, then one time range clause
        params: One value per label clause, in clause order
    """

    target: str
    clauses: tuple[Clause, ...]
    params: tuple[str, ...]

    def bindings(self) -> Iterator[tuple[Clause, str | None]]:
        """Pair every clause with the parameter it binds (None for time ranges)."""
        params = iter(self.params)
        for clause in self.clauses:
            if isinstance(clause, LabelClause):
                yield clause, next(params)
            else:
                yield clause, None

    @property
    def time_range(self) -> TimeRangeClause | None:
        for clause in self.clauses:
            if isinstance(clause, TimeRangeClause):
                return clause
        return None

    def __str__(self) -> str:
        return " AND ".join(str(clause) for clause in self.clauses)
