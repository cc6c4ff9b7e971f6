"""Error taxonomy and operation results.

Lookup and precondition failures are raised as ``VFSError`` subclasses.
Persistence failures that happen partway through a mutation are reported
through ``OpResult`` instead, so callers get a named reason rather than a
bare ``False``.
"""

from __future__ import annotations

from dataclasses import dataclass


class VFSError(Exception):
    """Base class for all virtual filesystem errors.

    Attributes:
        reason: Stable machine-readable failure code.
        path: Path the failure relates to, if any.
    """

    reason = "error"

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.message = message
        self.path = path


class NotFound(VFSError, LookupError):
    """No entry is stored at the requested path."""

    reason = "not_found"


class AlreadyExists(VFSError):
    """The destination path is already occupied."""

    reason = "already_exists"


class InvalidArgument(VFSError, ValueError):
    """A path argument is missing, empty, or otherwise unusable."""

    reason = "invalid_argument"


class CapacityExceeded(VFSError):
    """The persistence substrate refused a write because it is full."""

    reason = "capacity_exceeded"


class TypeConflict(VFSError):
    """A file would replace a directory (or vice versa) in strict mode."""

    reason = "type_conflict"


@dataclass(frozen=True)
class OpResult:
    """Outcome of a mutating operation.

    Truthy on success. Failures carry the ``reason`` code of the error that
    stopped the operation and its message.
    """

    ok: bool
    path: str
    reason: str | None = None
    message: str | None = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, path: str) -> "OpResult":
        return cls(ok=True, path=path)

    @classmethod
    def failure(cls, error: VFSError, path: str | None = None) -> "OpResult":
        return cls(
            ok=False,
            path=path if path is not None else (error.path or ""),
            reason=error.reason,
            message=error.message,
        )
