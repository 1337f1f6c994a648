"""
Native Click implementation of the config command.

Usage: rowmap config [show|get] [key]
"""

from __future__ import annotations

import json
from typing import Any

import click

from ...core.settings import find_config_file
from ..context import RowmapContext


def _redact(url: str | None) -> str | None:
    if not url:
        return url
    from sqlalchemy.engine import make_url
    from sqlalchemy.exc import ArgumentError

    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return url


def _resolved(ctx: RowmapContext) -> dict[str, Any]:
    data = ctx.settings.to_dict()
    data["database"]["url"] = _redact(data["database"]["url"])
    return data


@click.group("config", invoke_without_command=True)
@click.pass_context
def config(ctx: click.Context) -> None:
    """Show resolved configuration.

    Settings come from --url, ROWMAP_<SECTION>__<KEY> variables, a .env
    file, and .rowmap/config.toml (or [tool.rowmap] in pyproject.toml).

    \b
    Examples:

        rowmap config                    # Show everything

        rowmap config get query.batch_size
    """
    if ctx.invoked_subcommand is None:
        ctx.invoke(config_show_cmd)


@config.command("show")
@click.pass_obj
def config_show_cmd(ctx: RowmapContext) -> None:
    """Show every resolved setting."""
    source = ctx.config_path or find_config_file(str(ctx.cwd))
    click.echo(f"# config file: {source if source else '(none)'}")
    click.echo(json.dumps(_resolved(ctx), indent=2, default=str))


@config.command("get")
@click.argument("key")
@click.pass_obj
def config_get_cmd(ctx: RowmapContext, key: str) -> None:
    """Get one setting.

    Arguments:

        KEY    Dotted key, e.g. database.url or logging.level
    """
    section, _, name = key.partition(".")
    data = _resolved(ctx)
    if section not in data or name not in data[section]:
        raise click.ClickException(
            f"Unknown config key: {key}. Sections: {', '.join(sorted(data))}"
        )
    value = data[section][name]
    if value is None:
        click.echo(f"{key}: (not set)")
    else:
        click.echo(f"{key}: {value}")
