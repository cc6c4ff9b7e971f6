"""kvfs: A hierarchical virtual filesystem over a flat key-value store."""

from .base import Entry, EntryKind, KeyValueStore
from .config import VFSConfig, connect_fs
from .context import defer_commits
from .errors import (
    AlreadyExists,
    CapacityExceeded,
    InvalidArgument,
    NotFound,
    OpResult,
    TypeConflict,
    VFSError,
)
from .events import EventBus, StorageFull
from .stores import MappingStore, MemoryStore
from .virtual import VirtualFileSystem

__all__ = [
    "AlreadyExists",
    "CapacityExceeded",
    "connect_fs",
    "defer_commits",
    "Entry",
    "EntryKind",
    "EventBus",
    "InvalidArgument",
    "KeyValueStore",
    "MappingStore",
    "MemoryStore",
    "NotFound",
    "OpResult",
    "StorageFull",
    "TypeConflict",
    "VFSConfig",
    "VFSError",
    "VirtualFileSystem",
]
