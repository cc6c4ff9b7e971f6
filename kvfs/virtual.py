"""Key-value backed virtual filesystem implementation.

Provides VirtualFileSystem, a hierarchical file and directory tree emulated
on top of a flat key-value store. Each entry is persisted as one value under
a key derived from its path; directories, children and descendants are all
derived from prefix scans over the stored keys.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import MutableMapping
from datetime import datetime, timezone
from typing import Any, Callable

from .base import Entry, EntryKind, KeyValueStore
from .codec import decode_entry, encode_entry
from .config import VFSConfig
from .errors import (
    AlreadyExists,
    CapacityExceeded,
    InvalidArgument,
    NotFound,
    OpResult,
    TypeConflict,
)
from .events import EventBus, StorageFull
from .paths import (
    ROOT,
    basename,
    depth,
    is_descendant,
    is_direct_child,
    join,
    normalize,
    parent,
    relocate,
    unique_path,
)
from .stores import MappingStore, MemoryStore

logger = logging.getLogger(__name__)


class VirtualFileSystem:
    """Path-addressed file and directory store over a flat key-value store.

    Entries are keyed by ``config.prefix + path``. There is no separate id
    and no in-memory tree: the store is the only source of truth.

    Recursive operations touch many keys and the store offers no multi-key
    transaction, so they are ordered to limit damage on partial failure:
    ``delete`` removes children before their parent and ``rename`` moves
    descendants before the directory entry itself. Enable
    ``VFSConfig(journal=True)`` to have interrupted operations finished by
    ``recover()``.

    Storage exhaustion never raises out of a mutation. It is logged,
    published as a ``StorageFull`` event and returned as a failed
    ``OpResult`` with reason ``"capacity_exceeded"``.

    Example:
        >>> fs = VirtualFileSystem({})
        >>> fs.mkdir("/docs")
        OpResult(ok=True, path='/docs', reason=None, message=None)
        >>> bool(fs.write("/docs/todo.txt", "buy milk"))
        True
        >>> fs.read("/docs/todo.txt").content
        'buy milk'
        >>> [e.name for e in fs.list("/docs")]
        ['todo.txt']
    """

    def __init__(
        self,
        store: KeyValueStore | MutableMapping[str, str] | None = None,
        config: VFSConfig | None = None,
        events: EventBus | None = None,
    ):
        """Initialize the filesystem over a store.

        Args:
            store: Persistence substrate. A KeyValueStore is used directly,
                any other mutable mapping is wrapped in MappingStore.
                Defaults to an unlimited MemoryStore.
            config: Filesystem configuration. Defaults to VFSConfig().
            events: Channel for StorageFull notifications. A private bus is
                created if omitted.
        """
        if store is None:
            store = MemoryStore()
        elif not isinstance(store, KeyValueStore):
            if not isinstance(store, MutableMapping):
                raise TypeError(
                    f"Expected a KeyValueStore or mapping, got {type(store).__name__}"
                )
            store = MappingStore(store)

        self._store: KeyValueStore = store
        self.config = config if config is not None else VFSConfig()
        self.events = events if events is not None else EventBus()
        self._lock = threading.RLock()

    @property
    def store(self) -> KeyValueStore:
        return self._store

    # -------------------------------------------------------------------------
    # Bootstrap and notifications
    # -------------------------------------------------------------------------

    def init(self) -> None:
        """Finish any interrupted operation, then create bootstrap directories.

        Safe to call on every startup: existing directories are left alone.
        """
        logger.info("Initializing filesystem (prefix=%r)", self.config.prefix)
        with self._lock:
            self.recover()
            for directory in self.config.bootstrap_dirs:
                self.mkdir(directory)

    def on_storage_full(self, listener: Callable[[StorageFull], None]) -> Callable[[], None]:
        """Subscribe to storage exhaustion events. Returns an unsubscribe callable."""
        return self.events.subscribe(listener)

    # -------------------------------------------------------------------------
    # Entry CRUD
    # -------------------------------------------------------------------------

    def write(self, path: str, content: Any, meta: dict[str, Any] | None = None) -> OpResult:
        """Create or overwrite a file.

        ``meta`` is merged into the file's metadata. ``created`` comes from
        ``meta`` if given, otherwise from the file already at ``path``,
        otherwise now. ``modified`` is always set to now.

        Args:
            path: File path.
            content: Text, JSON-compatible data or bytes.
            meta: Extension metadata fields.

        Returns:
            Successful OpResult, or a failed one if the store is full (the
            previously stored value is left untouched).

        Raises:
            InvalidArgument: If path is empty or the root.
            TypeConflict: If path holds a directory and strict_types is set.
            TypeError: If content or meta cannot be serialized.
        """
        path = normalize(path)
        if path == ROOT:
            raise InvalidArgument("Cannot write to the root directory", path)

        with self._lock:
            existing = self._load(path)
            if existing is not None and existing.is_dir:
                if self.config.strict_types:
                    raise TypeConflict(f"Is a directory: '{path}'", path)
                logger.warning("Replacing directory %s with a file", path)

            now = self._now_iso()
            merged: dict[str, Any] = {}
            if existing is not None and existing.is_file:
                merged.update(existing.meta)
            merged.update(meta or {})
            if not merged.get("created"):
                merged["created"] = now
            merged["modified"] = now

            try:
                self._save(Entry(EntryKind.FILE, path, content, merged))
            except CapacityExceeded as e:
                return self._report_full(e)

        logger.debug("Wrote %s", path)
        return OpResult.success(path)

    def read(self, path: str) -> Entry:
        """Return the entry stored at ``path``.

        Raises:
            NotFound: If nothing readable is stored there.
        """
        path = normalize(path)
        entry = self._load(path)
        if entry is None:
            raise NotFound(f"No such file or directory: '{path}'", path)
        return entry

    def exists(self, path: str) -> bool:
        """True iff a value is stored at exactly ``path``."""
        try:
            path = normalize(path)
        except InvalidArgument:
            return False
        return self._store.get(self._key(path)) is not None

    def isfile(self, path: str) -> bool:
        try:
            entry = self._load(normalize(path))
        except InvalidArgument:
            return False
        return entry is not None and entry.is_file

    def isdir(self, path: str) -> bool:
        try:
            entry = self._load(normalize(path))
        except InvalidArgument:
            return False
        return entry is not None and entry.is_dir

    def mkdir(self, path: str) -> OpResult:
        """Create a directory. Existing paths of any kind are left as they are.

        Raises:
            InvalidArgument: If path is empty.
            TypeConflict: If path holds a file and strict_types is set.
        """
        path = normalize(path)
        with self._lock:
            if self.exists(path):
                if self.config.strict_types and self.isfile(path):
                    raise TypeConflict(f"File exists: '{path}'", path)
                return OpResult.success(path)

            now = self._now_iso()
            try:
                self._save(
                    Entry(EntryKind.DIRECTORY, path, meta={"created": now, "modified": now})
                )
            except CapacityExceeded as e:
                return self._report_full(e)

        logger.debug("Created directory %s", path)
        return OpResult.success(path)

    def makedirs(self, path: str) -> OpResult:
        """Create ``path`` and any missing ancestors, outermost first."""
        path = normalize(path)
        chain = []
        current = path
        while current != ROOT:
            chain.append(current)
            current = parent(current)

        with self._lock:
            for directory in reversed(chain):
                result = self.mkdir(directory)
                if not result:
                    return result
        return OpResult.success(path)

    def delete(self, path: str) -> None:
        """Delete an entry; directories take their whole subtree with them.

        Children are removed before their parent, so an interrupted delete
        can leave orphaned leaves but never a removed directory whose
        descendants are still stored. Deleting a missing path is a no-op.
        """
        path = normalize(path)
        with self._lock:
            key = self._key(path)
            raw = self._store.get(key)
            if raw is None:
                return

            entry = decode_entry(raw, key)
            if entry is None or entry.is_file:
                self._store.remove(key)
            else:
                try:
                    self._begin("delete", path)
                except CapacityExceeded as e:
                    # Proceed without an intent record
                    self._report_full(e)
                self._delete_tree(path)
                self._end()

        logger.debug("Deleted %s", path)

    def rename(self, old_path: str, new_path: str) -> OpResult:
        """Rename or move a file or directory.

        For a directory every stored path under ``old_path + "/"`` is
        relocated by replacing the leading ``old_path`` with ``new_path``.
        Descendants move first, the directory entry last. Metadata is
        carried over unchanged.

        Returns:
            Successful OpResult for ``new_path``, or a failed one if the
            store filled up partway. Entries already moved stay moved.

        Raises:
            InvalidArgument: If either path is empty or the root, or a
                directory would be moved into its own subtree.
            NotFound: If ``old_path`` does not exist.
            AlreadyExists: If ``new_path`` exists. Rename never overwrites.
        """
        if not old_path or not new_path:
            raise InvalidArgument(
                "Invalid path: both source and destination are required",
                old_path or new_path,
            )
        src = normalize(old_path)
        dst = normalize(new_path)
        if ROOT in (src, dst):
            raise InvalidArgument("Cannot rename to or from the root directory", ROOT)

        with self._lock:
            if not self.exists(src):
                raise NotFound(f"Source not found: '{src}'", src)
            if self.exists(dst):
                raise AlreadyExists(f"Destination exists: '{dst}'", dst)

            entry = self._load(src)
            is_dir = entry is not None and entry.is_dir
            if is_dir and is_descendant(dst, src):
                raise InvalidArgument(f"Cannot move '{src}' into itself", dst)

            try:
                self._begin("rename", src, dst)
                if is_dir:
                    for child in self._descendants(src):
                        self._move_key(child, relocate(child, src, dst))
                self._move_key(src, dst)
            except CapacityExceeded as e:
                return self._report_full(e)
            self._end()

        logger.debug("Renamed %s -> %s", src, dst)
        return OpResult.success(dst)

    def copy(self, src: str, dst: str) -> OpResult:
        """Copy a file or a directory tree to ``dst``.

        Copied files keep their metadata except ``created``/``modified``,
        which are set to now.

        Raises:
            NotFound: If ``src`` does not exist.
            AlreadyExists: If ``dst`` exists.
            InvalidArgument: If ``dst`` is the root, or a directory would be
                copied into itself.
        """
        src = normalize(src)
        dst = normalize(dst)
        if dst == ROOT:
            raise InvalidArgument("Cannot copy onto the root directory", dst)
        with self._lock:
            source = self.read(src)
            if self.exists(dst):
                raise AlreadyExists(f"Destination exists: '{dst}'", dst)
            if source.is_dir and is_descendant(dst, src):
                raise InvalidArgument(f"Cannot copy '{src}' into itself", dst)

            try:
                self._copy_tree(source, dst)
            except CapacityExceeded as e:
                return self._report_full(e)

        logger.debug("Copied %s -> %s", src, dst)
        return OpResult.success(dst)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list(self, path: str) -> list[Entry]:
        """Return the direct children of a directory in storage order.

        Missing and empty directories both yield an empty list. Sort the
        result yourself if you need a stable order.
        """
        try:
            directory = normalize(path)
        except InvalidArgument:
            return []

        entries = []
        for child in self._paths():
            if is_direct_child(child, directory):
                entry = self._load(child)
                if entry is not None:
                    entries.append(entry)
        return entries

    def search(self, query: str | None) -> list[Entry]:
        """Find entries whose name contains ``query``, ignoring case.

        An empty query matches nothing.
        """
        if not query:
            return []
        needle = query.lower()

        results = []
        for path in self._paths():
            if needle in basename(path).lower():
                entry = self._load(path)
                if entry is not None:
                    results.append(entry)
        return results

    def unique_path(self, path: str, is_dir: bool = False) -> str:
        """Return ``path`` if free, else the first free ``name (N)`` variant."""
        return unique_path(normalize(path), self.exists, is_dir=is_dir)

    # -------------------------------------------------------------------------
    # Trash
    # -------------------------------------------------------------------------

    def trash(self, path: str) -> OpResult:
        """Move an entry into the trash directory.

        The entry is renamed into ``config.trash_dir`` under a collision-free
        name; the result's ``path`` is its new location. Entries already in
        the trash are deleted permanently and the result's ``path`` is the
        deleted path.

        Raises:
            InvalidArgument: If trash is disabled, or ``path`` is the root,
                the trash itself, or one of its ancestors.
            NotFound: If ``path`` does not exist.
        """
        if self.config.trash_dir is None:
            raise InvalidArgument("Trash is disabled", path)
        path = normalize(path)
        trash_dir = normalize(self.config.trash_dir)
        if path in (ROOT, trash_dir) or is_descendant(trash_dir, path):
            raise InvalidArgument(f"Cannot move '{path}' to the trash", path)

        with self._lock:
            entry = self.read(path)
            if is_descendant(path, trash_dir):
                self.delete(path)
                return OpResult.success(path)

            made = self.mkdir(trash_dir)
            if not made:
                return made
            target = self.unique_path(join(trash_dir, entry.name), is_dir=entry.is_dir)
            return self.rename(path, target)

    # -------------------------------------------------------------------------
    # Intent journal
    # -------------------------------------------------------------------------

    def recover(self) -> OpResult | None:
        """Finish a delete or rename that was interrupted.

        Reads the pending intent record, if any, and replays it. Replaying
        is idempotent. Returns None when there was nothing to recover.
        """
        journal_key = self.config.journal_key
        with self._lock:
            raw = self._store.get(journal_key)
            if raw is None:
                return None

            try:
                intent = json.loads(raw)
                op, src, dst = intent["op"], intent["src"], intent.get("dst")
                if op == "rename" and not dst:
                    raise ValueError("rename intent has no destination")
            except (ValueError, KeyError, TypeError) as e:
                logger.warning("Discarding unreadable intent record: %s", e)
                self._store.remove(journal_key)
                return None

            logger.info("Replaying interrupted %s of %s", op, src)
            if op == "delete":
                self._delete_tree(src)
            elif op == "rename":
                try:
                    for child in self._descendants(src):
                        self._finish_move(child, relocate(child, src, dst))
                    self._finish_move(src, dst)
                except CapacityExceeded as e:
                    return self._report_full(e)
            else:
                logger.warning("Discarding intent with unknown op %r", op)

            self._store.remove(journal_key)
        return OpResult.success(dst or src)

    def _begin(self, op: str, src: str, dst: str | None = None) -> None:
        if not self.config.journal:
            return
        record = json.dumps({"op": op, "src": src, "dst": dst, "started": self._now_iso()})
        try:
            self._store.set(self.config.journal_key, record)
        except CapacityExceeded as e:
            raise CapacityExceeded(e.message, src) from e

    def _end(self) -> None:
        if self.config.journal:
            self._store.remove(self.config.journal_key)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _now_iso(self) -> str:
        """Get current UTC timestamp as ISO 8601 string."""
        return datetime.now(timezone.utc).isoformat()

    def _key(self, path: str) -> str:
        return self.config.prefix + path

    def _paths(self) -> list[str]:
        """All stored paths under this filesystem's prefix, in storage order."""
        prefix = self.config.prefix
        return [key[len(prefix) :] for key in self._store.keys() if key.startswith(prefix)]

    def _descendants(self, path: str) -> list[str]:
        return [p for p in self._paths() if is_descendant(p, path)]

    def _load(self, path: str) -> Entry | None:
        key = self._key(path)
        entry = decode_entry(self._store.get(key), key)
        if entry is not None and entry.path != path:
            # The storage key is authoritative
            entry.path = path
        return entry

    def _save(self, entry: Entry) -> None:
        self._put(entry.path, encode_entry(entry))

    def _put(self, path: str, value: str) -> None:
        try:
            self._store.set(self._key(path), value)
        except CapacityExceeded as e:
            raise CapacityExceeded(e.message, path) from e

    def _move_key(self, old: str, new: str) -> None:
        """Store the entry at ``old`` under ``new``, then drop ``old``."""
        old_key = self._key(old)
        raw = self._store.get(old_key)
        if raw is None:
            return

        entry = decode_entry(raw, old_key)
        if entry is not None:
            entry.path = new
            raw = encode_entry(entry)
        self._put(new, raw)
        self._store.remove(old_key)
        logger.debug("Moved %s -> %s", old, new)

    def _finish_move(self, old: str, new: str) -> None:
        if self._store.get(self._key(new)) is not None:
            # Already written before the interruption; only the old copy remains
            self._store.remove(self._key(old))
        else:
            self._move_key(old, new)

    def _delete_tree(self, path: str) -> None:
        for child in self.list(path):
            if child.is_dir:
                self._delete_tree(child.path)
            else:
                self._store.remove(self._key(child.path))

        # Orphans under missing intermediate directories, undecodable values
        for leftover in sorted(self._descendants(path), key=depth, reverse=True):
            self._store.remove(self._key(leftover))

        self._store.remove(self._key(path))

    def _copy_tree(self, source: Entry, dst: str) -> None:
        now = self._now_iso()
        meta = dict(source.meta)
        meta["created"] = now
        meta["modified"] = now

        if source.is_file:
            self._save(Entry(EntryKind.FILE, dst, source.content, meta))
            return

        self._save(Entry(EntryKind.DIRECTORY, dst, meta=meta))
        for child in self.list(source.path):
            self._copy_tree(child, join(dst, child.name))

    def _report_full(self, error: CapacityExceeded) -> OpResult:
        path = error.path or ""
        logger.error("Storage quota exceeded writing %s: %s", path, error.message)
        self.events.emit(StorageFull(path=path, key=self._key(path), message=error.message))
        return OpResult.failure(error, path)
