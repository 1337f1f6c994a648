"""
Click-based CLI for rowmap.

A thin host-application wrapper around the raw statement API: check that a
database answers, run a statement, print query rows, show configuration.

Usage:
    from rowmap.cli import cli
    cli()  # Invokes the CLI
"""

from __future__ import annotations

from pathlib import Path

import click

from .. import __version__
from .context import RowmapContext


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="rowmap")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: .rowmap/config.toml or pyproject [tool.rowmap]).",
)
@click.option("--url", default=None, help="Database URL, overrides configuration.")
@click.option("-v", "--verbose", is_flag=True, help="Log statements to stderr.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, url: str | None, verbose: bool) -> None:
    """rowmap - data access from the command line

    \b
    Commands:
        rowmap ping                    Check the database connection
        rowmap exec SQL [PARAMS]...    Run a statement, print affected rows
        rowmap raw SQL [PARAMS]...     Run a query, print the rows
        rowmap config                  Show resolved settings
    """
    ctx.ensure_object(dict)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)
    else:
        ctx.obj = RowmapContext.create(config_path=config_path, url=url, verbose=verbose)


def register_commands() -> None:
    """Register all CLI commands with the main group."""
    from .commands import COMMANDS

    for cmd in COMMANDS:
        cli.add_command(cmd)


# Register commands at module load time
register_commands()


__all__ = [
    "RowmapContext",
    "cli",
    "register_commands",
]
