"""FastAPI exception hierarchy for the duckprom API.

This module defines custom exception classes that map to HTTP status codes
and provide consistent error responses across the API.
"""

from fastapi import HTTPException, status

from duckprom.exceptions import DuckPromError, get_http_status


class DuckPromAPIException(HTTPException):
    """Base API exception for duckprom.

    All custom API exceptions should inherit from this class.
    Automatically maps to HTTP status codes.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        headers: dict | None = None,
    ):
        """Initialize API exception.

        Args:
            status_code: HTTP status code
            detail: Error message detail
            headers: Optional HTTP headers
        """
        super().__init__(status_code=status_code, detail=detail, headers=headers)

    @classmethod
    def from_error(cls, error: DuckPromError) -> "DuckPromAPIException":
        """Wrap a domain error, keeping its message and status mapping."""
        return cls(status_code=get_http_status(error), detail=error.message)


class InternalServerException(DuckPromAPIException):
    """Internal server error (500).

    Raised when storage fails while serving a request.
    """

    def __init__(self, detail: str = "Internal server error"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
        )


class ServiceUnavailableException(DuckPromAPIException):
    """Service unavailable (503).

    Raised when the storage backend is not ready.
    """

    def __init__(self, detail: str = "Service temporarily unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
        )
