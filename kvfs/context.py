"""Context variables shared by the stores.

Controls whether mapping-backed stores commit after every mutation.
"""

import contextvars
from contextlib import contextmanager
from typing import Iterator

# Internal flag controlling whether MappingStore defers commits to its mapping.
_defer_commits: contextvars.ContextVar[bool] = contextvars.ContextVar(
    "kvfs_defer_commits", default=False
)


def commits_deferred() -> bool:
    return _defer_commits.get()


@contextmanager
def defer_commits() -> Iterator[None]:
    """Suppress per-mutation commits to a MappingStore's backing mapping.

    MappingStore accepts any ``MutableMapping[str, str]``. If the mapping
    also has a ``commit()`` method (e.g. a sqlite-backed dict or a
    transactional KV wrapper), MappingStore calls it after each ``set``
    and ``remove`` so changes are persisted immediately.

    Inside this context manager those automatic commits are suppressed,
    letting you batch a recursive rename or a bulk import and commit once
    at the end.

    Example::

        with defer_commits():
            fs.rename("/home/photos", "/home/archive/photos")
        mapping.commit()
    """
    token = _defer_commits.set(True)
    try:
        yield
    finally:
        _defer_commits.reset(token)
