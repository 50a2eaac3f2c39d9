"""CLI entry point — Click group with global options."""

from __future__ import annotations

import logging

import click

from vigil import __version__
from vigil.config import VigilConfig


@click.group()
@click.version_option(version=__version__, prog_name="vigil")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a YAML config file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Vigil — local security posture audit with signed reports."""
    ctx.ensure_object(dict)

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = VigilConfig.load(config_path)
    except (ValueError, OSError) as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc
    config.verbose = verbose
    ctx.obj["config"] = config


def _register_commands() -> None:
    from vigil.cli.keys import keys  # noqa: F811
    from vigil.cli.proof import proof  # noqa: F811
    from vigil.cli.scan import scan  # noqa: F811
    from vigil.cli.verify import verify  # noqa: F811

    main.add_command(scan)
    main.add_command(verify)
    main.add_command(keys)
    main.add_command(proof)


_register_commands()
