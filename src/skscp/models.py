"""
Pydantic models for the soul manifest.

The manifest is the identity card of a backup: who the soul
belongs to, where it came from, when it was taken, and a digest
for every file plus one for the whole.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

from . import MANIFEST_VERSION
from .checksum import aggregate


def utc_timestamp(when: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    when = when or datetime.now(timezone.utc)
    return when.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class FileEntry(BaseModel):
    """One soul file recorded in a manifest.

    Attributes:
        path: Workspace-relative path with forward slashes.
        digest: SHA-256 hex digest of the file contents.
        size: File size in bytes.
    """

    path: str
    digest: str = Field(validation_alias=AliasChoices("digest", "sha256"))
    size: int = Field(default=0, ge=0)


class SoulManifest(BaseModel):
    """Metadata describing the contents of a .soul archive.

    Attributes:
        version: Manifest format version (always "1.0").
        agent: Agent name.
        source: Hostname or address the soul was taken from.
        timestamp: UTC ISO-8601 time of the backup.
        files: Soul files in discovery order.
        checksum: Aggregate digest over ``files``.
    """

    version: Literal["1.0"] = MANIFEST_VERSION
    agent: str = ""
    source: str = ""
    timestamp: str = Field(default_factory=utc_timestamp)
    files: list[FileEntry] = Field(default_factory=list)
    checksum: str = ""

    @classmethod
    def for_files(cls, files: list[FileEntry], agent: str, source: str) -> "SoulManifest":
        """Build a manifest stamped now, with its checksum filled in."""
        return cls(agent=agent, source=source, files=files, checksum=aggregate(files))

    @property
    def total_size(self) -> int:
        """Sum of all file sizes in bytes."""
        return sum(f.size for f in self.files)

    def compute_checksum(self) -> str:
        """Recompute the aggregate digest from ``files``."""
        return aggregate(self.files)

    def summary(self) -> dict:
        """Short description used in transfer responses."""
        return {
            "agent": self.agent,
            "source": self.source,
            "timestamp": self.timestamp,
            "files": len(self.files),
            "checksum": self.checksum,
        }

    def to_json(self) -> str:
        """Canonical JSON text embedded in archives as manifest.json."""
        return self.model_dump_json(indent=2)
