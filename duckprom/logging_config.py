"""Logging configuration for duckprom.

Log lines are structlog events rendered either as JSON (for log shippers
sitting next to Prometheus) or for the console. Remote read URLs and request
headers can carry basic-auth credentials or bearer tokens; those never reach
the output.
"""

import logging
import sys
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit, urlunsplit

import structlog
from structlog.types import EventDict, Processor

from duckprom.config import get_settings

if TYPE_CHECKING:
    from duckprom.storage.backend import StorageBackend

REDACTED = "***REDACTED***"
CREDENTIAL_KEYS = {"authorization", "password", "token", "cookie"}
URL_KEYS = {"url", "remote_url", "endpoint"}


def _strip_url_password(url: str) -> str:
    parts = urlsplit(url)
    if parts.password is None:
        return url
    netloc = f"{parts.username or ''}:{REDACTED}@{parts.hostname}"
    if parts.port:
        netloc += f":{parts.port}"
    return urlunsplit(parts._replace(netloc=netloc))


def redact_credentials(
    logger: Any, method_name: str, event_dict: EventDict
) -> EventDict:
    """Blank credential fields and passwords embedded in URLs.

    Header mappings are scrubbed one level deep, so ``headers=dict(request.headers)``
    is safe to log.
    """
    for key, value in list(event_dict.items()):
        lowered = key.lower()
        if any(credential in lowered for credential in CREDENTIAL_KEYS):
            event_dict[key] = REDACTED
        elif lowered in URL_KEYS and isinstance(value, str):
            event_dict[key] = _strip_url_password(value)
        elif lowered == "headers" and isinstance(value, dict):
            event_dict[key] = {
                name: REDACTED if name.lower() in CREDENTIAL_KEYS else header
                for name, header in value.items()
            }

    return event_dict


def setup_logging(level: str | None = None) -> None:
    """Configure structlog over stdlib logging.

    Args:
        level: Level overriding settings.log_level (the CLI's --verbose)
    """
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_credentials,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, (level or settings.log_level).upper()),
        force=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def log_operation(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    backend: "StorageBackend | None" = None,
    **kwargs: Any,
) -> None:
    """Log a storage lifecycle step with the backend kind and collection."""
    context: dict[str, Any] = {"operation": operation}
    if backend is not None:
        context["backend"] = type(backend).__name__
        context["collection"] = backend.name
    context.update(kwargs)

    logger.info("operation", **context)
