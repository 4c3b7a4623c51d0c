"""
Error taxonomy for soul archives and the transfer protocol.

Every failure the core can raise derives from SoulError so the
CLI (and any embedding agent) can catch one type.
"""

from __future__ import annotations

from typing import Any, Optional


class SoulError(Exception):
    """Base class for every soul archive and transfer failure."""


class EmptyWorkspace(SoulError):
    """Raised when discovery finds no soul files to archive."""

    def __init__(self, workspace: Any = None):
        self.workspace = workspace
        where = f" in {workspace}" if workspace is not None else ""
        super().__init__(f"No soul files found{where}")


class MissingManifest(SoulError):
    """Raised when an archive has no usable manifest.json entry."""

    def __init__(self, reason: str = "No manifest.json in archive"):
        super().__init__(reason)


class MissingFile(SoulError):
    """Raised when a file listed in the manifest is absent from the archive."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Missing file in archive: {path}")


class IntegrityFailure(SoulError):
    """Raised when a per-file or aggregate digest does not match.

    Attributes:
        subject: The file path, or ``"aggregate"`` for the whole-soul checksum.
        expected: Digest recorded in the manifest.
        actual: Digest recomputed from the archive contents.
    """

    def __init__(self, subject: str, expected: str, actual: str):
        self.subject = subject
        self.expected = expected
        self.actual = actual
        if subject == "aggregate":
            msg = f"Overall soul integrity check failed: expected {expected}, got {actual}"
        else:
            msg = f"Integrity check failed for {subject}: expected {expected}, got {actual}"
        super().__init__(msg)


class PathTooLong(SoulError):
    """Raised when a path does not fit the 100-byte tar name field."""

    def __init__(self, path: str, limit: int = 100):
        self.path = path
        self.limit = limit
        super().__init__(f"Path exceeds {limit} bytes and cannot be archived: {path}")


class UnsafePath(SoulError):
    """Raised when a manifest path would escape the restore destination."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Refusing to restore path outside destination: {path}")


class Unauthorized(SoulError):
    """Raised when the remote rejects our bearer token (HTTP 401)."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class RequestFailed(SoulError):
    """Raised for any other non-success HTTP status from an STP peer."""

    def __init__(self, status: int, message: Optional[str] = None):
        self.status = status
        super().__init__(message or f"Request failed: {status}")


class ConsentRejected(SoulError):
    """Raised when the remote agent declines an inbound restore (HTTP 403)."""

    def __init__(self, summary: Optional[dict] = None, message: str = "Soul transfer rejected by agent"):
        self.summary = summary or {}
        super().__init__(message)
