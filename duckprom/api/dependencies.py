"""FastAPI dependencies for the duckprom API."""

from typing import Annotated

from fastapi import Depends, Request

from duckprom.adapter import RemoteStorageAdapter
from duckprom.api.exceptions import ServiceUnavailableException
from duckprom.remote.parser import RemoteRequestParser


def get_adapter(request: Request) -> RemoteStorageAdapter:
    """Return the adapter built during application startup."""
    adapter = getattr(request.app.state, "adapter", None)
    if adapter is None:
        raise ServiceUnavailableException("Storage adapter is not initialized")
    return adapter


def get_request_parser(request: Request) -> RemoteRequestParser:
    parser = getattr(request.app.state, "request_parser", None)
    return parser if parser is not None else RemoteRequestParser()


Adapter = Annotated[RemoteStorageAdapter, Depends(get_adapter)]
RequestParser = Annotated[RemoteRequestParser, Depends(get_request_parser)]
