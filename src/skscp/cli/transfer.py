"""Transfer commands: serve, and the remote group (health, manifest, pull, push)."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.panel import Panel

from ._common import console, fail, get_config, handle_errors, manifest_lines


def _client(url: str | None, token: str | None):
    from ..client import STPClient

    config = get_config()
    base_url = url or config.remote
    if not base_url:
        fail("No remote URL. Pass --url or set SKSCP_REMOTE.")
    return STPClient(base_url, token or config.token)


def register_transfer_commands(main: click.Group) -> None:
    """Register the STP server and client commands."""

    @main.command("serve")
    @click.option("--workspace", default=None, type=click.Path(file_okay=False), help="Workspace to serve.")
    @click.option("--agent", default=None, help="Agent name.")
    @click.option("--token", default=None, help="Bearer token (or SKSCP_TOKEN).")
    @click.option("--host", default=None, help="Bind address (default: 127.0.0.1).")
    @click.option("--port", default=None, type=int, help="Port (default: 7780).")
    @click.option(
        "--consent",
        type=click.Choice(["accept", "reject", "prompt"]),
        default="prompt",
        show_default=True,
        help="How to answer inbound restores.",
    )
    def serve(workspace, agent, token, host, port, consent):
        """Serve this agent's soul over STP.

        Peers can pull the soul (GET /soul) or push one back
        (PUT /soul). Pushed souls are verified, then the consent
        policy decides whether they overwrite the workspace.

        Examples:

            skscp serve --workspace ~/clawd --agent lumina --token s3cret
        """
        from ..consent import policy_by_name
        from ..server import SoulTransferServer

        config = get_config()
        workspace_path = Path(workspace).expanduser() if workspace else config.workspace
        bearer = token or config.token
        if workspace_path is None:
            fail("No workspace. Pass --workspace or set SKSCP_WORKSPACE.")
        if not bearer:
            fail("No token. Pass --token or set SKSCP_TOKEN.")

        root = logging.getLogger()
        if root.level > logging.INFO:
            root.setLevel(logging.INFO)

        server = SoulTransferServer(
            workspace=workspace_path,
            agent=agent or config.agent or workspace_path.name,
            token=bearer,
            consent=policy_by_name(consent),
            host=host or config.host,
            port=port if port is not None else config.port,
        )
        try:
            server.bind()
        except OSError as exc:
            fail(f"Cannot bind {server.url}: {exc}")

        console.print(f"\n  [green]♜ STP server[/] on [cyan]{server.url}[/]")
        console.print(f"  Agent: {server.agent}")
        console.print(f"  Workspace: {server.workspace}")
        console.print(f"  Consent: {consent}")
        console.print("  [dim]Ctrl+C to stop[/]\n")
        server.serve_forever()

    @main.group()
    def remote():
        """Talk to a remote agent's STP server."""

    @remote.command("health")
    @click.option("--url", default=None, help="Server base URL (or SKSCP_REMOTE).")
    @handle_errors
    def remote_health(url):
        """Check that the remote agent is alive."""
        with _client(url, None) as client:
            data = client.health()
        console.print(
            f"[green]✓[/] {data.get('agent', '?')} is alive "
            f"([dim]{data.get('protocol', '?')}[/])"
        )

    @remote.command("manifest")
    @click.option("--url", default=None, help="Server base URL (or SKSCP_REMOTE).")
    @click.option("--token", default=None, help="Bearer token (or SKSCP_TOKEN).")
    @click.option("--json-out", is_flag=True, help="Print the raw manifest JSON.")
    @handle_errors
    def remote_manifest(url, token, json_out):
        """Show the remote soul manifest."""
        with _client(url, token) as client:
            manifest = client.manifest()
        if json_out:
            click.echo(manifest.to_json())
            return
        console.print(Panel(manifest_lines(manifest), title="Remote Soul", border_style="cyan"))

    @remote.command("pull")
    @click.argument("output", type=click.Path(dir_okay=False))
    @click.option("--url", default=None, help="Server base URL (or SKSCP_REMOTE).")
    @click.option("--token", default=None, help="Bearer token (or SKSCP_TOKEN).")
    @handle_errors
    def remote_pull(output, url, token):
        """Download and verify the remote soul into OUTPUT."""
        with _client(url, token) as client:
            manifest = client.pull(Path(output))
        console.print(Panel(
            f"[bold green]✓ Soul pulled and verified[/]\n"
            f"Path: [cyan]{output}[/]\n{manifest_lines(manifest)}",
            title="Pull Complete",
            border_style="green",
        ))

    @remote.command("push")
    @click.argument("archive", type=click.Path(dir_okay=False))
    @click.option("--url", default=None, help="Server base URL (or SKSCP_REMOTE).")
    @click.option("--token", default=None, help="Bearer token (or SKSCP_TOKEN).")
    @handle_errors
    def remote_push(archive, url, token):
        """Push ARCHIVE to the remote agent (it may decline)."""
        with _client(url, token) as client:
            result = client.push(Path(archive))
        summary = result.get("manifest", {})
        console.print(Panel(
            f"[bold green]✓ {result.get('message', 'Soul transfer accepted')}[/]\n"
            f"Agent: {summary.get('agent', '?')}\n"
            f"Files: {summary.get('files', '?')}",
            title="Push Complete",
            border_style="green",
        ))
