"""CLI command: vigil verify <artifact> — check a signed report."""

from __future__ import annotations

import sys

import click
from rich.console import Console

from vigil.attest.engine import SignedArtifact, verify_artifact
from vigil.attest.keys import KeyManager
from vigil.config import VigilConfig

console = Console(stderr=True)

EXIT_INVALID = 2


@click.command()
@click.argument("artifact", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--public-key",
    "-k",
    type=click.Path(exists=True, dir_okay=False),
    help="PEM public key to trust (default: this installation's key).",
)
@click.pass_context
def verify(ctx: click.Context, artifact: str, public_key: str | None) -> None:
    """Verify that a signed report has not been altered."""
    try:
        signed = SignedArtifact.load(artifact)
    except (OSError, ValueError) as exc:
        console.print(f"[red]✗ Invalid artifact:[/red] {exc}")
        sys.exit(EXIT_INVALID)

    if public_key is None:
        config: VigilConfig = ctx.obj["config"]
        public_key = str(KeyManager(config.resolved_keys_dir).public_key_path)

    try:
        with open(public_key, "rb") as fh:
            key = fh.read()
    except OSError as exc:
        console.print(f"[red]✗ No trusted public key:[/red] {exc}")
        console.print(f"  Artifact names key: [dim]{signed.public_key_ref}[/dim] (use --public-key)")
        sys.exit(EXIT_INVALID)

    if verify_artifact(signed, key):
        console.print("[green]✓ Valid[/green]: report is authentic and unmodified")
        console.print(f"  Hash: [cyan]{signed.hash}[/cyan]")
        console.print(f"  Key:  [dim]{public_key}[/dim]")
        return

    console.print("[red]✗ Tampered or invalid[/red]: signature check failed")
    console.print(f"  Checked against: [dim]{public_key}[/dim]")
    console.print(f"  Artifact names key: [dim]{signed.public_key_ref}[/dim]")
    sys.exit(EXIT_INVALID)
