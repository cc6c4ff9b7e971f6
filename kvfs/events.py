"""Out-of-band notifications.

The filesystem does not raise on storage exhaustion during ``write``; it
publishes a ``StorageFull`` event so a consuming layer can tell the user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageFull:
    """The store refused to persist the entry at ``path``.

    Attributes:
        path: Filesystem path whose write failed.
        key: Storage key that was being written.
        message: Error message from the store.
    """

    path: str
    key: str
    message: str


Listener = Callable[[StorageFull], None]


class EventBus:
    """Minimal synchronous publish/subscribe channel."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: StorageFull) -> None:
        # A failing listener must not stop delivery to the others
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener %r failed", listener)

    def __len__(self) -> int:
        return len(self._listeners)
