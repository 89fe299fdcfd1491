"""Custom exceptions for duckprom."""

from typing import Any


class DuckPromError(Exception):
    """Base exception for all duckprom errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationError(DuckPromError):
    """Configuration-related errors."""

    pass


class DecodeError(DuckPromError):
    """Request body could not be turned into a protocol message.

    Raised before any side effect; always reported as a client error.
    """

    pass


class DecompressionError(DecodeError):
    """Snappy block decompression failed."""

    def __init__(self, details: str) -> None:
        super().__init__(f"Failed to decompress request body: {details}", details=details)


class PayloadDecodeError(DecodeError):
    """Protobuf payload is malformed or semantically empty."""

    def __init__(self, message_type: str, details: str) -> None:
        super().__init__(
            f"Failed to decode {message_type}: {details}",
            message_type=message_type,
            details=details,
        )


class RequestTooLargeError(DecodeError):
    """Request body exceeds the configured size limit."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"Request body too large: {size} bytes (limit {limit} bytes)",
            size=size,
            limit=limit,
        )


class QueryCompileError(DuckPromError):
    """Read query could not be compiled into a storage expression."""

    pass


class UnsupportedMatcherError(QueryCompileError):
    """Matcher kind is not one of EQUAL, NOT_EQUAL, REGEX_MATCH, REGEX_NOT_MATCH."""

    def __init__(self, label: str, kind: Any) -> None:
        super().__init__(
            f"Unsupported matcher type {kind!r} for label {label!r}",
            label=label,
            kind=kind,
        )


class InvalidLabelNameError(QueryCompileError):
    """Label name is not a valid Prometheus label name."""

    def __init__(self, label: str) -> None:
        super().__init__(f"Invalid label name: {label!r}", label=label)


class InvalidRegexError(QueryCompileError):
    """Regex matcher value does not compile."""

    def __init__(self, label: str, pattern: str, details: str) -> None:
        super().__init__(
            f"Invalid regex {pattern!r} for label {label!r}: {details}",
            label=label,
            pattern=pattern,
            details=details,
        )


class StorageError(DuckPromError):
    """Storage-related errors."""

    pass


class StorageBackendError(StorageError):
    """Storage backend operation failed."""

    def __init__(self, backend: str, operation: str, details: str) -> None:
        super().__init__(
            f"Storage backend error ({backend}): {operation} - {details}",
            backend=backend,
            operation=operation,
            details=details,
        )


def get_http_status(error: Exception) -> int:
    """Map exception to HTTP status code."""
    status_map = {
        DecodeError: 400,
        QueryCompileError: 400,
        ConfigurationError: 500,
        StorageError: 500,
    }

    for exc_type, status in status_map.items():
        if isinstance(error, exc_type):
            return status

    return 500
