"""
Soul file discovery — which workspace files make up an agent.

By default the soul is a fixed set of core markdown files plus
everything under ``memory/`` and ``skills/``. A workspace can
override this with a ``SOUL_MANIFEST.json``:

    {
      "version": "1.0",
      "include": ["SOUL.md", "notes/", "journal"],
      "exclude": ["drafts"]
    }

Returned paths are workspace-relative with forward slashes.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Callable, Iterable, Optional

logger = logging.getLogger("skscp.discovery")

Discover = Callable[[Path], list[str]]

CORE_FILES = [
    "SOUL.md",
    "MEMORY.md",
    "AGENTS.md",
    "USER.md",
    "TOOLS.md",
    "IDENTITY.md",
    "HEARTBEAT.md",
    "SECURITY.md",
    "BOOTSTRAP.md",
    "BUCKETLIST.md",
]

SOUL_DIRS = [
    "memory",
    "skills",
]

EXCLUDE = {
    ".git",
    "node_modules",
    "dist",
    ".env",
}

SOUL_MANIFEST_FILE = "SOUL_MANIFEST.json"


def _read_soul_manifest(workspace: Path) -> Optional[dict]:
    """Load SOUL_MANIFEST.json from the workspace, if present and valid.

    Args:
        workspace: Workspace root.

    Returns:
        dict or None when the file is missing or unreadable.
    """
    path = workspace / SOUL_MANIFEST_FILE
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable %s: %s", path, exc)
        return None
    return data if isinstance(data, dict) else None


def _walk(directory: Path, exclude: set[str]) -> Iterable[Path]:
    for root, dirs, files in os.walk(directory):
        dirs[:] = sorted(d for d in dirs if d not in exclude)
        for fname in sorted(files):
            if fname in exclude:
                continue
            path = Path(root) / fname
            # Regular files only, following symlinks.
            if not path.is_file():
                logger.debug("Skipping non-regular file: %s", path)
                continue
            yield path


def _relative(workspace: Path, path: Path) -> str:
    return path.relative_to(workspace).as_posix()


def _discover_defaults(workspace: Path) -> list[str]:
    found: list[str] = []

    for name in CORE_FILES:
        if (workspace / name).is_file():
            found.append(name)

    for dir_name in SOUL_DIRS:
        dir_path = workspace / dir_name
        if not dir_path.is_dir():
            continue
        found.extend(_relative(workspace, p) for p in _walk(dir_path, EXCLUDE))

    return found


def _discover_from_manifest(workspace: Path, config: dict) -> list[str]:
    exclude = EXCLUDE | set(config.get("exclude") or [])
    found: list[str] = []
    root = workspace.resolve()

    for entry in config.get("include") or []:
        expanded = Path(os.path.expanduser(entry))
        full = expanded if expanded.is_absolute() else workspace / expanded
        try:
            rel_root = full.resolve().relative_to(root)
        except ValueError:
            logger.warning("Skipping manifest path outside workspace: %s", entry)
            continue

        target = workspace / rel_root
        if target.is_file():
            found.append(rel_root.as_posix())
        elif target.is_dir():
            found.extend(_relative(workspace, p) for p in _walk(target, exclude))
        else:
            logger.warning("Manifest path not found: %s", entry)

    return list(dict.fromkeys(found))


def discover_soul_files(workspace: Path) -> list[str]:
    """Discover all soul files in a workspace directory.

    Uses SOUL_MANIFEST.json when it declares an ``include`` list,
    otherwise the default core files and soul directories.

    Args:
        workspace: Agent workspace root.

    Returns:
        list[str]: Relative paths in discovery order (may be empty).
    """
    workspace = Path(workspace).expanduser()
    if not workspace.is_dir():
        logger.debug("Workspace not found: %s", workspace)
        return []

    config = _read_soul_manifest(workspace)
    if config and config.get("include"):
        files = _discover_from_manifest(workspace, config)
    else:
        files = _discover_defaults(workspace)

    logger.debug("Discovered %d soul file(s) in %s", len(files), workspace)
    return files
