"""Configuration for the virtual filesystem.

Provides the VFSConfig dataclass and the connect_fs factory that wires a
store, a config and a VirtualFileSystem together and bootstraps it.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .base import KeyValueStore
    from .virtual import VirtualFileSystem

DEFAULT_BOOTSTRAP_DIRS: tuple[str, ...] = (
    "/home",
    "/home/documents",
    "/home/downloads",
    "/home/trash",
)


@dataclass
class VFSConfig:
    """Configuration for a VirtualFileSystem.

    Attributes:
        prefix: Namespace prepended to every path to form its storage key.
            Distinct prefixes let several filesystems share one store.
        journal_key: Storage key holding the pending intent record. Must not
            start with ``prefix``.
        journal: Record an intent before recursive delete and rename so an
            interrupted operation can be finished by ``recover()``.
        strict_types: Refuse to write a file over a directory or create a
            directory over a file (raises TypeConflict) instead of silently
            replacing or ignoring.
        bootstrap_dirs: Directories created by ``init()``, parents first.
        trash_dir: Directory used by ``trash()``. None disables trashing.
    """

    prefix: str = "kvfs:fs:"
    journal_key: str = "kvfs:journal"
    journal: bool = False
    strict_types: bool = False
    bootstrap_dirs: tuple[str, ...] = DEFAULT_BOOTSTRAP_DIRS
    trash_dir: str | None = "/home/trash"

    def __post_init__(self) -> None:
        if not self.prefix:
            raise ValueError("VFSConfig.prefix must not be empty")
        if self.journal_key.startswith(self.prefix):
            raise ValueError(
                f"journal_key '{self.journal_key}' must not live under "
                f"prefix '{self.prefix}'"
            )
        self.bootstrap_dirs = tuple(self.bootstrap_dirs)


def connect_fs(
    store: "KeyValueStore | MutableMapping[str, str] | None" = None,
    capacity: int | None = None,
    **kwargs: Any,
) -> "VirtualFileSystem":
    """Create and bootstrap a virtual filesystem.

    Args:
        store: Persistence substrate. A KeyValueStore is used as-is, a plain
            mapping is wrapped in MappingStore, None creates a MemoryStore.
        capacity: Character quota for the MemoryStore created when ``store``
            is None. Not allowed together with an explicit store.
        **kwargs: VFSConfig fields (prefix, journal, strict_types, ...).

    Returns:
        An initialized VirtualFileSystem with bootstrap directories created.

    Examples:
        >>> fs = connect_fs()
        >>> fs.exists("/home/documents")
        True

        >>> fs = connect_fs({}, prefix="alt:", bootstrap_dirs=())
        >>> fs.list("/")
        []
    """
    from .stores import MemoryStore
    from .virtual import VirtualFileSystem

    known = {f.name for f in fields(VFSConfig)}
    unexpected = [k for k in kwargs if k not in known]
    if unexpected:
        raise ValueError(f"Unexpected arguments for connect_fs: {unexpected}")

    if store is None:
        store = MemoryStore(capacity=capacity)
    elif capacity is not None:
        raise ValueError("capacity only applies when connect_fs creates the store")

    fs = VirtualFileSystem(store, VFSConfig(**kwargs))
    fs.init()
    return fs
