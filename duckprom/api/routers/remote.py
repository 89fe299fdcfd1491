"""Prometheus remote storage router.

Prometheus configuration:

```yaml
remote_write:
  - url: http://localhost:9201/write
remote_read:
  - url: http://localhost:9201/read
```
"""

from fastapi import APIRouter, Request, Response, status
from structlog import get_logger

from duckprom.api.dependencies import Adapter, RequestParser
from duckprom.api.exceptions import DuckPromAPIException, InternalServerException
from duckprom.exceptions import DecodeError, QueryCompileError, StorageError
from duckprom.remote.codec import CONTENT_TYPE

logger = get_logger(__name__)

router = APIRouter(tags=["remote"])


async def _read_body(request: Request, parser: RequestParser) -> bytes:
    for problem in parser.inspect_headers(request.headers):
        logger.debug("unexpected_request_header", path=request.url.path, problem=problem)

    body = await request.body()
    try:
        parser.check_request_size(len(body))
    except DecodeError as e:
        raise DuckPromAPIException.from_error(e) from e
    return body


@router.post(
    "/write",
    status_code=status.HTTP_200_OK,
    summary="Prometheus remote write endpoint",
    response_class=Response,
    responses={
        400: {"description": "Body could not be decompressed or decoded"},
        500: {"description": "One or more samples failed to store"},
    },
)
async def remote_write(request: Request, adapter: Adapter, parser: RequestParser):
    """Store every sample of a Snappy-compressed Protobuf WriteRequest.

    Samples are stored one by one; a failure does not stop the remaining
    samples and successful stores are not rolled back. When any store fails
    the response is 500 with all error messages joined by ", ".
    """
    body = await _read_body(request, parser)

    try:
        result = await adapter.write(body)
    except DecodeError as e:
        raise DuckPromAPIException.from_error(e) from e

    if not result.ok:
        raise InternalServerException(result.error_message)

    return Response(status_code=status.HTTP_200_OK)


@router.post(
    "/read",
    status_code=status.HTTP_200_OK,
    summary="Prometheus remote read endpoint",
    response_class=Response,
    responses={
        200: {"content": {CONTENT_TYPE: {}}},
        400: {"description": "Body could not be decoded or the query compiled"},
        500: {"description": "Storage query failed"},
    },
)
async def remote_read(request: Request, adapter: Adapter, parser: RequestParser):
    """Answer the first query of a Snappy-compressed Protobuf ReadRequest.

    Additional queries in the same request are ignored.
    """
    body = await _read_body(request, parser)

    try:
        payload = await adapter.read(body)
    except (DecodeError, QueryCompileError, StorageError) as e:
        raise DuckPromAPIException.from_error(e) from e

    return Response(content=payload, media_type=CONTENT_TYPE)
