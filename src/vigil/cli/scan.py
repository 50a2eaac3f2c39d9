"""CLI command: vigil scan — run all domain scanners and sign the report."""

from __future__ import annotations

import json

import click
from rich.console import Console

from vigil.attest.engine import create_artifact
from vigil.attest.keys import KeyManager
from vigil.audit.canonical import report_to_dict
from vigil.audit.orchestrator import Orchestrator
from vigil.config import VigilConfig
from vigil.errors import VigilError
from vigil.report import render_report
from vigil.scanners import default_scanners

console = Console(stderr=True)


@click.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True),
    help="Write the signed artifact to this file.",
)
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of tables.")
@click.option("--no-sign", is_flag=True, help="Skip signing the report.")
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Per-domain timeout in seconds (default: 10).",
)
@click.pass_context
def scan(
    ctx: click.Context,
    output: str | None,
    as_json: bool,
    no_sign: bool,
    timeout: float | None,
) -> None:
    """Audit this host and produce a signed, risk-scored report."""
    config: VigilConfig = ctx.obj["config"]
    if timeout is not None:
        config.scanner_timeout = timeout

    orchestrator = Orchestrator(
        default_scanners(disabled=config.disabled_domains),
        timeout=config.scanner_timeout,
    )
    with console.status("Scanning..."):
        report = orchestrator.scan()

    artifact = None
    try:
        if no_sign:
            data = {"report": report_to_dict(report)}
        else:
            manager = KeyManager(config.resolved_keys_dir)
            key_pair = manager.ensure_key_pair()
            artifact = create_artifact(report, key_pair, manager.public_key_path)
            data = artifact.to_dict()
    except VigilError as exc:
        action = "serialize" if no_sign else "sign"
        raise click.ClickException(f"Cannot {action} report: {exc}") from exc

    if as_json:
        click.echo(json.dumps(data, indent=2))
    else:
        Console().print(render_report(report))
        if artifact:
            console.print(f"\nReport hash: [cyan]{artifact.hash}[/cyan]")
            console.print(f"Public key:  [dim]{artifact.public_key_ref}[/dim]")
        else:
            console.print("\n[yellow]Report is not signed.[/yellow]")

    if output:
        with open(output, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)
            fh.write("\n")
        console.print(f"Saved to [cyan]{output}[/cyan]")
