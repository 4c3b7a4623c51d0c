"""SHA-256 digests for soul files and the order-independent soul checksum."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any, Iterable, Mapping


def digest(data: bytes | str) -> str:
    """Compute the SHA-256 hex digest of bytes (or UTF-8 text).

    Args:
        data: Content to hash.

    Returns:
        str: 64-character hex digest.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def digest_file(filepath: Path) -> str:
    """Compute SHA-256 of a file without loading it whole.

    Args:
        filepath: Path to the file.

    Returns:
        str: Hex digest.
    """
    h = hashlib.sha256()
    with open(filepath, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def _pair(entry: Any) -> tuple[str, str]:
    if isinstance(entry, Mapping):
        return entry["path"], entry.get("digest") or entry["sha256"]
    return entry.path, entry.digest


def aggregate(entries: Iterable[Any]) -> str:
    """Compute the whole-soul checksum over per-file digests.

    Entries are sorted by the UTF-8 bytes of their path, their
    digests concatenated in that order, and the result hashed.
    The outcome does not depend on the input order.

    Args:
        entries: FileEntry objects or ``{"path", "digest"}`` mappings.

    Returns:
        str: Hex digest of the concatenated, path-sorted digests.
    """
    pairs = sorted((_pair(e) for e in entries), key=lambda p: p[0].encode("utf-8"))
    return digest("".join(d for _, d in pairs))
