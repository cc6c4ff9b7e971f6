"""Path algebra for the virtual filesystem.

Paths are plain strings: absolute, ``/``-separated, no trailing separator
except for the root. Every hierarchy question (parent, children,
descendants) is answered by string prefix logic on these canonical forms.
"""

from __future__ import annotations

import posixpath
import re
from typing import Callable

from .errors import InvalidArgument

SEP = "/"
ROOT = "/"

_REPEATED_SEP = re.compile(r"/{2,}")


def normalize(path: str | None) -> str:
    """Return the canonical form of ``path``.

    Backslashes become separators, a leading separator is enforced,
    repeated separators collapse, ``.`` and ``..`` are resolved and any
    trailing separator is dropped.

    Raises:
        InvalidArgument: If ``path`` is None or blank.
    """
    if path is None or not str(path).strip():
        raise InvalidArgument("Path must be a non-empty string", path)

    value = str(path).strip().replace("\\", SEP)
    if not value.startswith(SEP):
        value = SEP + value
    # normpath keeps a leading "//", so collapse first
    value = _REPEATED_SEP.sub(SEP, value)
    return posixpath.normpath(value)


def parent(path: str) -> str:
    """Everything before the last separator (the root is its own parent)."""
    if path == ROOT:
        return ROOT
    head = path.rsplit(SEP, 1)[0]
    return head or ROOT


def basename(path: str) -> str:
    return path.rsplit(SEP, 1)[-1]


def join(directory: str, name: str) -> str:
    return child_prefix(directory) + name


def child_prefix(directory: str) -> str:
    """``directory`` with exactly one trailing separator."""
    return directory if directory.endswith(SEP) else directory + SEP


def is_descendant(path: str, ancestor: str) -> bool:
    """True if ``path`` lies strictly below ``ancestor``."""
    return path != ancestor and path.startswith(child_prefix(ancestor))


def is_direct_child(path: str, directory: str) -> bool:
    """True if ``path`` is one level below ``directory``."""
    if not is_descendant(path, directory):
        return False
    return SEP not in path[len(child_prefix(directory)) :]


def relocate(path: str, old_prefix: str, new_prefix: str) -> str:
    """Replace the leading ``old_prefix`` of ``path`` with ``new_prefix``.

    Only the anchored leading match is substituted; later occurrences of
    ``old_prefix`` inside the path are left alone.
    """
    if path == old_prefix:
        return new_prefix
    head = child_prefix(old_prefix)
    if not path.startswith(head):
        raise InvalidArgument(f"'{path}' is not under '{old_prefix}'", path)
    return join(new_prefix, path[len(head) :])


def depth(path: str) -> int:
    return 0 if path == ROOT else path.count(SEP)


def unique_path(path: str, exists: Callable[[str], bool], is_dir: bool = False) -> str:
    """Return ``path`` or the first free ``name (N)`` variant of it.

    Files keep their extension: ``notes.txt`` becomes ``notes (2).txt``.
    Directories get the suffix appended to the whole name.
    """
    if not exists(path):
        return path

    directory = parent(path)
    name = basename(path)
    if is_dir:
        stem, ext = name, ""
    else:
        dot = name.rfind(".")
        stem, ext = (name[:dot], name[dot:]) if dot > 0 else (name, "")

    index = 2
    while True:
        candidate = join(directory, f"{stem} ({index}){ext}")
        if not exists(candidate):
            return candidate
        index += 1
