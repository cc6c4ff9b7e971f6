"""Entry serialization.

Entries are stored as self-describing JSON objects::

    {"type": "file", "path": "/home/a.txt", "content": "...", "meta": {...}}

Binary content is base64-encoded and flagged with ``"encoding": "base64"``.
A stored value that cannot be decoded back into an Entry is reported as
absent (None) and logged; it is never raised to the caller.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

from .base import Entry, EntryKind

logger = logging.getLogger(__name__)

BASE64 = "base64"


def encode_entry(entry: Entry) -> str:
    """Serialize an Entry to a JSON string.

    Raises:
        TypeError: If the content or metadata is not JSON-serializable.
    """
    record: dict[str, Any] = {"type": entry.kind.value, "path": entry.path}
    if entry.is_file:
        if isinstance(entry.content, (bytes, bytearray)):
            record["content"] = base64.b64encode(bytes(entry.content)).decode("ascii")
            record["encoding"] = BASE64
        else:
            record["content"] = entry.content
    record["meta"] = entry.meta
    try:
        return json.dumps(record, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise TypeError(f"Entry '{entry.path}' is not serializable: {e}") from e


def decode_entry(raw: str | None, key: str = "") -> Entry | None:
    """Deserialize a stored value, returning None if it is absent or corrupt."""
    if raw is None:
        return None
    try:
        record = json.loads(raw)
        kind = EntryKind(record["type"])
        path = record["path"]
        if not isinstance(path, str):
            raise ValueError(f"path is {type(path).__name__}, not str")
        content = record.get("content") if kind is EntryKind.FILE else None
        if content is not None and record.get("encoding") == BASE64:
            content = base64.b64decode(content, validate=True)
        meta = record.get("meta") or {}
        if not isinstance(meta, dict):
            raise ValueError(f"meta is {type(meta).__name__}, not dict")
    except (ValueError, KeyError, TypeError) as e:
        logger.warning("Ignoring undecodable entry %s: %s", key or "<value>", e)
        return None
    return Entry(kind=kind, path=path, content=content, meta=meta)
