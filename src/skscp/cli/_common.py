"""Shared utilities for all CLI command modules.

Provides the Rich console instance, config loading, and the
error funnel every command uses to turn failures into exit 1.
"""

from __future__ import annotations

import functools
import sys
from typing import Callable

import requests
from rich.console import Console

from ..config import SoulConfig, load_config
from ..errors import SoulError
from ..models import SoulManifest

console = Console()


def get_config() -> SoulConfig:
    """Load config.yaml + environment overrides from the SKSCP home."""
    return load_config()


def fail(message: str) -> None:
    """Print an error and exit with status 1."""
    console.print(f"[red]✗ {message}[/]")
    sys.exit(1)


def handle_errors(func: Callable) -> Callable:
    """Turn SoulError / transport errors into a red message and exit 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (SoulError, requests.RequestException, OSError) as exc:
            fail(str(exc))

    return wrapper


def manifest_lines(manifest: SoulManifest) -> str:
    """Rich markup summary used by several panels."""
    return (
        f"Agent: [bold]{manifest.agent}[/]\n"
        f"Source: {manifest.source}\n"
        f"Files: {len(manifest.files)}\n"
        f"Checksum: {manifest.checksum[:16]}...\n"
        f"Timestamp: {manifest.timestamp}"
    )
