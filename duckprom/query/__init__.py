"""Read path: matcher compilation and result aggregation."""

from duckprom.query.aggregator import ResultAggregator, signature
from duckprom.query.compiler import LABEL_NAME_PATTERN, MatcherCompiler
from duckprom.query.expression import (
    Clause,
    LabelClause,
    QueryExpression,
    TimeRangeClause,
)

__all__ = [
    "Clause",
    "LABEL_NAME_PATTERN",
    "LabelClause",
    "MatcherCompiler",
    "QueryExpression",
    "ResultAggregator",
    "TimeRangeClause",
    "signature",
]
