"""Reference key-value substrates.

The filesystem only needs the ``KeyValueStore`` protocol. These two
implementations cover the common cases: a quota-limited in-memory store
(handy for tests and for emulating browser-style storage quotas) and an
adapter over any ``MutableMapping[str, str]``.
"""

from __future__ import annotations

import errno
import logging
from collections.abc import MutableMapping

from .context import commits_deferred
from .errors import CapacityExceeded

logger = logging.getLogger(__name__)

_FULL_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class MemoryStore:
    """Dict-backed store with an optional character quota.

    Usage is counted as ``len(key) + len(value)`` summed over every stored
    item. Keys are kept in insertion order.
    """

    def __init__(self, capacity: int | None = None) -> None:
        """Initialize an empty store.

        Args:
            capacity: Maximum total characters (keys plus values).
                None means unlimited.
        """
        self.data: dict[str, str] = {}
        self.capacity = capacity
        self._used = 0

    @property
    def used(self) -> int:
        return self._used

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        existing = self.data.get(key)
        existing_size = len(key) + len(existing) if existing is not None else 0
        new_total = self._used - existing_size + len(key) + len(value)

        if self.capacity is not None and new_total > self.capacity:
            raise CapacityExceeded(
                f"Store capacity exceeded: {new_total} > {self.capacity} characters",
                key,
            )

        self.data[key] = value
        self._used = new_total

    def remove(self, key: str) -> None:
        existing = self.data.pop(key, None)
        if existing is not None:
            self._used -= len(key) + len(existing)

    def keys(self) -> list[str]:
        return list(self.data)


class MappingStore:
    """Adapter exposing a ``MutableMapping[str, str]`` as a KeyValueStore.

    If the mapping has a ``commit()`` method it is called after every
    mutation, unless commits are deferred via ``defer_commits()``.
    ``OSError`` raised by the mapping for a full disk or exhausted quota
    is translated into ``CapacityExceeded``.
    """

    def __init__(self, mapping: MutableMapping[str, str]) -> None:
        self.mapping = mapping

    def get(self, key: str) -> str | None:
        return self.mapping.get(key)

    def set(self, key: str, value: str) -> None:
        try:
            self.mapping[key] = value
        except OSError as e:
            if e.errno in _FULL_ERRNOS:
                raise CapacityExceeded(f"Backing store is full: {e}", key) from e
            raise
        self._commit()

    def remove(self, key: str) -> None:
        if key in self.mapping:
            del self.mapping[key]
            self._commit()

    def keys(self) -> list[str]:
        return list(self.mapping.keys())

    def _commit(self) -> None:
        commit = getattr(self.mapping, "commit", None)
        if commit is None or commits_deferred():
            return
        logger.debug("Committing %s", type(self.mapping).__name__)
        commit()
