"""HTTP-level checks for Prometheus remote read/write requests.

Header problems are only logged: Prometheus and compatible agents differ in
which headers they send, and the body itself is the authority on whether a
request can be decoded. The body size limit is enforced.
"""

import logging
from typing import Mapping, Optional

from duckprom.exceptions import RequestTooLargeError

logger = logging.getLogger(__name__)


class RemoteRequestParser:
    """Inspect remote read/write HTTP requests before decoding.

    Expected request format:
    - Method: POST
    - Content-Type: application/x-protobuf
    - Content-Encoding: snappy
    - X-Prometheus-Remote-Write-Version: 0.1.0 (write only, optional)
    - X-Prometheus-Remote-Read-Version: 0.1.0 (read only, optional)

    Example:
        parser = RemoteRequestParser(max_size=32 * 1024 * 1024)

        for warning in parser.inspect_headers(request.headers):
            log.warning(warning)
        parser.check_request_size(len(body))
    """

    EXPECTED_CONTENT_TYPE = "application/x-protobuf"
    EXPECTED_CONTENT_ENCODING = "snappy"
    SUPPORTED_VERSIONS = ["0.1.0"]
    VERSION_HEADERS = [
        "x-prometheus-remote-write-version",
        "x-prometheus-remote-read-version",
    ]

    def __init__(self, max_size: int = 32 * 1024 * 1024) -> None:
        self.max_size = max_size

    def inspect_headers(self, headers: Mapping[str, str]) -> list[str]:
        """Check request headers against the remote storage protocol.

        Args:
            headers: HTTP request headers

        Returns:
            Human readable descriptions of every deviation, empty when the
            headers look like a regular Prometheus request
        """
        normalized_headers = {k.lower(): v for k, v in headers.items()}
        problems = []

        content_type = normalized_headers.get("content-type", "")
        if self.EXPECTED_CONTENT_TYPE not in content_type:
            problems.append(
                f"Unexpected Content-Type: expected '{self.EXPECTED_CONTENT_TYPE}', "
                f"got '{content_type}'"
            )

        content_encoding = normalized_headers.get("content-encoding", "")
        if self.EXPECTED_CONTENT_ENCODING not in content_encoding.lower():
            problems.append(
                f"Unexpected Content-Encoding: expected '{self.EXPECTED_CONTENT_ENCODING}', "
                f"got '{content_encoding}'"
            )

        for header in self.VERSION_HEADERS:
            version = normalized_headers.get(header, "")
            if version and version not in self.SUPPORTED_VERSIONS:
                problems.append(
                    f"Unsupported protocol version {version} in {header}. "
                    f"Supported versions: {self.SUPPORTED_VERSIONS}"
                )

        for problem in problems:
            logger.debug(problem)

        return problems

    def check_request_size(self, body_size: int) -> None:
        """Reject bodies larger than the configured limit.

        Raises:
            RequestTooLargeError: If body_size exceeds max_size
        """
        if body_size > self.max_size:
            raise RequestTooLargeError(body_size, self.max_size)

    @staticmethod
    def get_user_agent(headers: Mapping[str, str]) -> Optional[str]:
        """Extract User-Agent from request headers."""
        normalized_headers = {k.lower(): v for k, v in headers.items()}
        return normalized_headers.get("user-agent")
