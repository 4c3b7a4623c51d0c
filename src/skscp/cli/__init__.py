"""
SKSCP CLI — back up, verify, and move agent souls.

The main Click group is defined here and each command group
lives in its own module, registered via a register function.

Entry point: skscp.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import __version__

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


@click.group()
@click.version_option(version=__version__, prog_name="skscp")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging.")
def main(verbose: bool):
    """SKSCP — Soul Copy Protocol.

    A .soul archive is a compressed, checksummed snapshot of an agent's
    identity files: SOUL.md, MEMORY.md, memory/*, and everything that
    makes the agent who they are.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .archive import register_archive_commands
from .transfer import register_transfer_commands

register_archive_commands(main)
register_transfer_commands(main)
