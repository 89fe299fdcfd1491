"""Write path: sample mapping and per-key write outcomes."""

from duckprom.write.mapper import SampleMapper, build_label_set, new_stored_key
from duckprom.write.result import StoreOutcome, WriteResult

__all__ = [
    "SampleMapper",
    "StoreOutcome",
    "WriteResult",
    "build_label_set",
    "new_stored_key",
]
