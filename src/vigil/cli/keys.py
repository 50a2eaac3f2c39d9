"""CLI command: vigil keys — show (and create on first use) the signing key."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from vigil.attest.keys import KeyManager
from vigil.config import VigilConfig
from vigil.errors import KeyGenerationError

console = Console()


@click.command()
@click.pass_context
def keys(ctx: click.Context) -> None:
    """Show the location and fingerprint of the signing key pair."""
    config: VigilConfig = ctx.obj["config"]
    manager = KeyManager(config.resolved_keys_dir)
    created = not manager.exists()
    try:
        pair = manager.ensure_key_pair()
    except KeyGenerationError as exc:
        raise click.ClickException(str(exc)) from exc

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column()
    table.add_row("Private key", str(manager.private_key_path))
    table.add_row("Public key", str(manager.public_key_path))
    table.add_row("Fingerprint", pair.fingerprint)
    if created:
        table.add_row("Status", "[green]generated[/green]")
    console.print(table)
