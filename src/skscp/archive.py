"""
Soul archives — create, verify, and restore .soul files.

A .soul archive is a gzip-compressed ustar stream (see skscp.tar)
holding ``manifest.json`` first and then one entry per soul file.

Layout:
    <agent>-<timestamp>.soul
    ├── manifest.json          # SoulManifest: per-file SHA-256 + aggregate
    ├── SOUL.md
    ├── MEMORY.md
    └── memory/2026-02-02.md

Extraction verifies every digest and the aggregate checksum before
a single byte is written. Verification is all-or-nothing.
"""

from __future__ import annotations

import gzip
import logging
import os
import tempfile
import zlib
from contextlib import nullcontext
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, ContextManager, Optional

from pydantic import ValidationError

from . import MANIFEST_NAME, SOUL_SUFFIX
from . import tar
from .checksum import digest
from .discovery import Discover, discover_soul_files
from .errors import (
    EmptyWorkspace,
    IntegrityFailure,
    MissingFile,
    MissingManifest,
    PathTooLong,
    UnsafePath,
)
from .models import FileEntry, SoulManifest

logger = logging.getLogger("skscp.archive")

COMPRESS_LEVEL = 9


def archive_name(agent: str, when: Optional[datetime] = None) -> str:
    """Default filename for a new archive: ``<agent>-YYYY-MM-DD-HH-MM-SS.soul``."""
    when = when or datetime.now(timezone.utc)
    return f"{agent or 'unknown'}-{when.strftime('%Y-%m-%d-%H-%M-%S')}{SOUL_SUFFIX}"


def build_manifest(
    workspace: Path,
    file_list: list[str],
    agent: str,
    source: str,
) -> SoulManifest:
    """Hash every listed file and build a manifest, without archiving.

    Args:
        workspace: Workspace root the paths are relative to.
        file_list: Relative soul file paths in discovery order.
        agent: Agent name.
        source: Hostname or address of the machine being backed up.

    Returns:
        SoulManifest: Manifest stamped with the current UTC time.

    Raises:
        EmptyWorkspace: If ``file_list`` is empty.
    """
    if not file_list:
        raise EmptyWorkspace(workspace)
    return _manifest_for(_read_entries(Path(workspace), file_list), agent, source)


def _read_entries(workspace: Path, file_list: list[str]) -> list[tar.TarEntry]:
    return [tar.TarEntry(p, (workspace / p).read_bytes()) for p in file_list]


def _manifest_for(entries: list[tar.TarEntry], agent: str, source: str) -> SoulManifest:
    files = [FileEntry(path=e.name, digest=digest(e.data), size=len(e.data)) for e in entries]
    return SoulManifest.for_files(files, agent=agent, source=source)


def _check_name_length(path: str) -> None:
    if len(path.encode("utf-8")) > tar.NAME_SIZE:
        raise PathTooLong(path, tar.NAME_SIZE)


def _write_atomic(path: Path, data: bytes) -> None:
    """Write bytes to ``path`` via a sibling temp file and rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def create_soul_archive(
    workspace: Path,
    output_path: Path,
    agent: str,
    source: str,
    discover: Discover = discover_soul_files,
    mtime: Optional[int] = None,
) -> SoulManifest:
    """Create a .soul archive from a workspace directory.

    Args:
        workspace: Agent workspace root.
        output_path: Where to write the archive. Parents are created.
        agent: Agent name for the manifest.
        source: Hostname or address for the manifest.
        discover: Callable returning the relative soul file paths.
        mtime: Optional fixed tar header time, for reproducible output.

    Returns:
        SoulManifest: The manifest embedded in the archive.

    Raises:
        EmptyWorkspace: If discovery finds nothing. No file is written.
        PathTooLong: If a path does not fit a tar header. No file is written.
    """
    workspace = Path(workspace).expanduser()
    output_path = Path(output_path).expanduser()

    file_list = discover(workspace)
    if not file_list:
        raise EmptyWorkspace(workspace)
    for rel_path in file_list:
        _check_name_length(rel_path)

    file_entries = _read_entries(workspace, file_list)
    manifest = _manifest_for(file_entries, agent, source)

    entries = [tar.TarEntry(MANIFEST_NAME, manifest.to_json().encode("utf-8"))] + file_entries
    tarball = tar.encode(entries, mtime=mtime)
    payload = gzip.compress(tarball, compresslevel=COMPRESS_LEVEL, mtime=mtime)
    _write_atomic(output_path, payload)

    logger.info(
        "Soul archived: %s (%d files, %d bytes -> %d bytes compressed)",
        output_path, len(manifest.files), manifest.total_size, len(payload),
    )
    return manifest


def _safe_relative(path: str) -> PurePosixPath:
    rel = PurePosixPath(path)
    if not path or rel.is_absolute() or ".." in rel.parts or "\\" in path:
        raise UnsafePath(path)
    return rel


def _parse_manifest(raw: bytes) -> SoulManifest:
    try:
        return SoulManifest.model_validate_json(raw)
    except (ValidationError, ValueError) as exc:
        raise MissingManifest(f"Unreadable manifest.json: {exc}") from exc


def read_soul_archive(data: bytes) -> tuple[SoulManifest, bytes, dict[str, bytes]]:
    """Decompress, decode, and fully verify archive bytes in memory.

    Args:
        data: Compressed .soul archive bytes.

    Returns:
        tuple: (verified manifest, raw manifest.json bytes, name -> data
            for every entry).

    Raises:
        MissingManifest: No (or an unreadable) manifest.json entry.
        MissingFile: A listed file has no matching entry.
        IntegrityFailure: A file digest or the aggregate checksum mismatches.
        UnsafePath: A listed path would escape the restore destination.
    """
    try:
        tarball = gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as exc:
        raise MissingManifest(f"Not a soul archive: {exc}") from exc

    # First occurrence wins for duplicate names.
    contents: dict[str, bytes] = {}
    for entry in tar.decode(tarball):
        contents.setdefault(entry.name, entry.data)

    raw_manifest = contents.get(MANIFEST_NAME)
    if raw_manifest is None:
        raise MissingManifest()
    manifest = _parse_manifest(raw_manifest)

    for file in manifest.files:
        _safe_relative(file.path)
        if file.path not in contents:
            raise MissingFile(file.path)
        actual = digest(contents[file.path])
        if actual != file.digest:
            raise IntegrityFailure(file.path, file.digest, actual)

    computed = manifest.compute_checksum()
    if computed != manifest.checksum:
        raise IntegrityFailure("aggregate", manifest.checksum, computed)

    return manifest, raw_manifest, contents


def extract_soul_archive(
    archive_path: Path,
    destination: Optional[Path] = None,
    dry_run: bool = False,
    guard: Optional[ContextManager[Any]] = None,
) -> SoulManifest:
    """Verify a .soul archive and optionally restore it.

    Args:
        archive_path: Path to the .soul file.
        destination: Directory to restore into. Required unless dry_run.
        dry_run: Only verify; never touch ``destination``.
        guard: Context manager held around the write phase, e.g. a
            lock serializing restores into a shared workspace.

    Returns:
        SoulManifest: The verified manifest.
    """
    archive = Path(archive_path).expanduser()
    manifest, raw_manifest, contents = read_soul_archive(archive.read_bytes())

    if dry_run:
        logger.debug("Verified %s (%d files)", archive, len(manifest.files))
        return manifest

    if destination is None:
        raise ValueError("destination is required unless dry_run is set")
    target = Path(destination).expanduser()

    with guard if guard is not None else nullcontext():
        target.mkdir(parents=True, exist_ok=True)
        (target / MANIFEST_NAME).write_bytes(raw_manifest)
        for file in manifest.files:
            out = target.joinpath(*_safe_relative(file.path).parts)
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(contents[file.path])

    logger.info("Restored %d soul file(s) to %s", len(manifest.files), target)
    return manifest


def verify_soul_archive(archive_path: Path) -> SoulManifest:
    """Verify archive integrity without extracting anything."""
    return extract_soul_archive(archive_path, dry_run=True)


def list_soul_archives(directory: Path) -> list[dict[str, Any]]:
    """List .soul archives in a directory, newest first.

    Args:
        directory: Directory to scan.

    Returns:
        list[dict]: ``filepath``, ``filename``, ``size``, ``created`` per archive.
    """
    search_dir = Path(directory).expanduser()
    if not search_dir.is_dir():
        return []

    found = []
    for f in search_dir.glob(f"*{SOUL_SUFFIX}"):
        stat = f.stat()
        found.append({
            "filepath": str(f),
            "filename": f.name,
            "size": stat.st_size,
            "mtime": stat.st_mtime,
            "created": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
        })

    found.sort(key=lambda a: (a["mtime"], a["filename"]), reverse=True)
    for item in found:
        del item["mtime"]
    return found
