"""CLI command: vigil proof <payload> — sign an arbitrary JSON payload."""

from __future__ import annotations

import json

import click

from vigil.attest.engine import sign_payload
from vigil.attest.keys import KeyManager
from vigil.config import VigilConfig
from vigil.errors import VigilError


@click.command()
@click.argument("payload")
@click.option("--purpose", "-p", required=True, help="What the signature attests to.")
@click.pass_context
def proof(ctx: click.Context, payload: str, purpose: str) -> None:
    """Sign PAYLOAD (a JSON document) for the given purpose."""
    try:
        data = json.loads(payload)
    except ValueError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint="PAYLOAD") from exc

    config: VigilConfig = ctx.obj["config"]
    manager = KeyManager(config.resolved_keys_dir)
    try:
        pair = manager.ensure_key_pair()
        signed = sign_payload(data, purpose, pair, public_key_ref=manager.public_key_path)
    except VigilError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(json.dumps(signed.to_dict(), indent=2))
