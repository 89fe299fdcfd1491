"""Compile remote-read matchers into query expressions."""

import re

import structlog

from duckprom.exceptions import InvalidLabelNameError, UnsupportedMatcherError
from duckprom.models import MatchType, Matcher, ReadQuery
from duckprom.query.expression import LabelClause, QueryExpression, TimeRangeClause

logger = structlog.get_logger(__name__)

LABEL_NAME_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


class MatcherCompiler:
    """
    Translate a read query into a QueryExpression.

    Each matcher becomes one label clause in matcher order, and a single
    ``timestamp BETWEEN start AND end`` clause is appended last. Matcher
    values are always bound as parameters.

    Any invalid matcher fails the whole query before storage is touched.
    Regex values are not checked here: each storage backend has its own
    regex dialect, see StorageBackend.validate_regex.

    Example:
        compiler = MatcherCompiler()
        expression = compiler.compile(query, target=backend.name)
    """

    def compile(self, query: ReadQuery, target: str) -> QueryExpression:
        """
        Compile a query against the given stored collection.

        Args:
            query: Decoded read query
            target: Collection name reported by the storage backend

        Returns:
            QueryExpression with len(query.matchers) + 1 clauses

        Raises:
            UnsupportedMatcherError: If a matcher kind is unknown
            InvalidLabelNameError: If a label name is not a valid identifier
        """
        clauses = []
        params = []
        for matcher in query.matchers:
            clauses.append(self._compile_matcher(matcher))
            params.append(matcher.value)

        clauses.append(TimeRangeClause(int(query.start_ms), int(query.end_ms)))

        expression = QueryExpression(
            target=target, clauses=tuple(clauses), params=tuple(params)
        )
        logger.debug(
            "query_compiled",
            target=target,
            where=str(expression),
            param_count=len(params),
        )
        return expression

    def _compile_matcher(self, matcher: Matcher) -> LabelClause:
        try:
            kind = MatchType(matcher.kind)
        except ValueError:
            raise UnsupportedMatcherError(matcher.name, matcher.kind) from None

        if not LABEL_NAME_PATTERN.match(matcher.name):
            raise InvalidLabelNameError(matcher.name)

        return LabelClause(label=matcher.name, kind=kind)
