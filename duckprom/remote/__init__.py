"""Prometheus remote read/write protocol support for duckprom.

This package holds the Protobuf message definitions, the Snappy + Protobuf
codec and HTTP request checks.
"""

from duckprom.remote.codec import CONTENT_TYPE, RemoteCodec
from duckprom.remote.parser import RemoteRequestParser

__all__ = [
    "CONTENT_TYPE",
    "RemoteCodec",
    "RemoteRequestParser",
]
