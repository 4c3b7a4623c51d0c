"""Archive commands: backup, verify, inspect, restore, list."""

from __future__ import annotations

import socket
from pathlib import Path

import click
from rich.panel import Panel
from rich.table import Table

from ._common import console, get_config, handle_errors, manifest_lines


def register_archive_commands(main: click.Group) -> None:
    """Register the local archive commands."""

    @main.command("backup")
    @click.argument("workspace", type=click.Path(file_okay=False))
    @click.argument("output_dir", type=click.Path(file_okay=False))
    @click.option("--agent", default=None, help="Agent name (default: config or 'unknown').")
    @handle_errors
    def backup(workspace: str, output_dir: str, agent: str):
        """Archive a workspace's soul files into OUTPUT_DIR.

        Examples:

            skscp backup ~/clawd ~/souls --agent lumina
        """
        from ..archive import archive_name, create_soul_archive

        agent_name = agent or get_config().agent or "unknown"
        output_path = Path(output_dir).expanduser() / archive_name(agent_name)

        console.print(f"\n[cyan]Archiving {agent_name}'s soul...[/]")
        manifest = create_soul_archive(
            workspace=Path(workspace),
            output_path=output_path,
            agent=agent_name,
            source=socket.gethostname(),
        )

        console.print(Panel(
            f"[bold green]Soul archived[/]\n"
            f"Path: [cyan]{output_path}[/]\n"
            f"{manifest_lines(manifest)}",
            title="Backup Complete",
            border_style="green",
        ))

    @main.command("verify")
    @click.argument("archive", type=click.Path(dir_okay=False))
    @handle_errors
    def verify(archive: str):
        """Verify an archive's integrity without extracting it."""
        from ..archive import verify_soul_archive

        console.print(f"\n[cyan]Verifying {archive}...[/]")
        manifest = verify_soul_archive(Path(archive))
        console.print(Panel(
            f"[bold green]✓ Soul integrity verified[/]\n{manifest_lines(manifest)}",
            title="Verified",
            border_style="green",
        ))

    @main.command("inspect")
    @click.argument("archive", type=click.Path(dir_okay=False))
    @handle_errors
    def inspect(archive: str):
        """List the files recorded in an archive."""
        from ..archive import verify_soul_archive

        manifest = verify_soul_archive(Path(archive))

        console.print(f"\nSoul: [bold]{manifest.agent}[/] @ {manifest.source}")
        console.print(f"Time: {manifest.timestamp}")
        console.print(f"Checksum: {manifest.checksum}\n")

        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("Path", style="cyan")
        table.add_column("Size", justify="right")
        table.add_column("SHA-256", style="dim")
        for f in manifest.files:
            table.add_row(f.path, f"{f.size / 1024:.1f} KB", f"{f.digest[:12]}...")
        console.print(table)
        console.print()

    @main.command("restore")
    @click.argument("archive", type=click.Path(dir_okay=False))
    @click.argument("destination", type=click.Path(file_okay=False))
    @click.option("--dry-run", is_flag=True, help="Verify only; write nothing.")
    @handle_errors
    def restore(archive: str, destination: str, dry_run: bool):
        """Restore an archive into DESTINATION (verified first).

        Examples:

            skscp restore lumina-2026-02-02-10-00-00.soul ~/clawd

            skscp restore lumina.soul ~/clawd --dry-run
        """
        from ..archive import extract_soul_archive

        prefix = "Dry run: " if dry_run else ""
        console.print(f"\n[cyan]{prefix}Restoring soul to {destination}...[/]")

        manifest = extract_soul_archive(
            Path(archive), Path(destination), dry_run=dry_run,
        )

        title = "Dry Run Complete" if dry_run else "Restore Complete"
        status = "archive is valid" if dry_run else "soul restored"
        console.print(Panel(
            f"[bold green]✓ {status}[/]\n{manifest_lines(manifest)}",
            title=title,
            border_style="green",
        ))

    @main.command("list")
    @click.argument("directory", type=click.Path(file_okay=False))
    def list_archives(directory: str):
        """List .soul archives in DIRECTORY, newest first."""
        from ..archive import list_soul_archives

        archives = list_soul_archives(Path(directory))
        if not archives:
            console.print("\n[dim]No soul archives found.[/]\n")
            return

        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("Filename", style="cyan")
        table.add_column("Size", justify="right")
        table.add_column("Created", style="dim")
        for a in archives:
            table.add_row(a["filename"], f"{a['size'] / 1024:.1f} KB", a["created"][:19])

        console.print(f"\n[bold]{len(archives)}[/] archive(s):\n")
        console.print(table)
        console.print()
