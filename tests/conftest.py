"""Shared test fixtures for skscp."""

from __future__ import annotations

from pathlib import Path

import pytest


SOUL_FILES = {
    "SOUL.md": "# I am test agent",
    "MEMORY.md": "# Things I remember",
    "memory/2026-02-02.md": "Today was a test.",
}


def write_workspace(root: Path, files: dict[str, str | bytes]) -> Path:
    """Populate a workspace directory with the given relative files."""
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A workspace with SOUL.md, MEMORY.md and one daily memory."""
    return write_workspace(tmp_path / "workspace", SOUL_FILES)


@pytest.fixture
def empty_workspace(tmp_path: Path) -> Path:
    """A workspace with no soul files at all."""
    root = tmp_path / "empty"
    root.mkdir()
    (root / "README.txt").write_text("not a soul file")
    return root


@pytest.fixture
def soul_archive(workspace: Path, tmp_path: Path) -> Path:
    """A .soul archive built from the standard workspace."""
    from skscp.archive import create_soul_archive

    path = tmp_path / "out" / "test.soul"
    create_soul_archive(workspace, path, agent="test-agent", source="localhost")
    return path


@pytest.fixture
def make_workspace(tmp_path: Path):
    """Factory: build a workspace under tmp_path from a {path: content} dict."""

    def _make(files: dict[str, str | bytes], name: str = "ws") -> Path:
        return write_workspace(tmp_path / name, files)

    return _make


@pytest.fixture
def soul_files() -> dict[str, str]:
    """Relative path -> content of the standard workspace."""
    return dict(SOUL_FILES)
