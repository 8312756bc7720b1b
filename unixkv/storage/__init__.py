"""Storage module for unixkv."""

from .snapshot import (
    SnapshotCodec,
    SnapshotError,
    SnapshotIOError,
    SnapshotNotFoundError,
    SnapshotParseError,
)
from .store import KVStore

__all__ = [
    "KVStore",
    "SnapshotCodec",
    "SnapshotError",
    "SnapshotIOError",
    "SnapshotNotFoundError",
    "SnapshotParseError",
]
