"""Entry data model and the key-value store interface.

Defines the persisted unit (``Entry``) and the minimal contract the
filesystem needs from its flat persistence substrate (``KeyValueStore``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class EntryKind(str, Enum):
    """Kind of a stored entry. Values match the serialized ``type`` field."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass
class Entry:
    """A file or directory record keyed by its full path.

    Attributes:
        kind: File or directory.
        path: Canonical absolute path, the entry's only identifier.
        content: Payload for files (text, JSON-compatible data or bytes).
            Always None for directories.
        meta: Metadata dict. Holds ``created`` and ``modified`` ISO 8601
            timestamps plus any caller-supplied extension fields.
    """

    kind: EntryKind
    path: str
    content: Any = None
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE

    @property
    def name(self) -> str:
        """Final path segment (empty for the root)."""
        return self.path.rsplit("/", 1)[-1]

    @property
    def created(self) -> Any:
        return self.meta.get("created")

    @property
    def modified(self) -> Any:
        return self.meta.get("modified")


@runtime_checkable
class KeyValueStore(Protocol):
    """Flat persistence substrate the filesystem is layered on.

    Single-key operations are assumed atomic. There is no multi-key
    transaction.
    """

    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value. Raises CapacityExceeded when the store is full."""
        ...

    def remove(self, key: str) -> None:
        """Remove a key. Removing an absent key is a no-op."""
        ...

    def keys(self) -> list[str]:
        """Return every key currently stored."""
        ...
