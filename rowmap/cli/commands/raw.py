"""
Native Click implementation of the raw command.

Usage: rowmap raw SQL [PARAMS]... [--json]
"""

from __future__ import annotations

import json

import click

from ..context import RowmapContext
from ..decorators import handle_errors, require_database_url
from ._params import parse_params


@click.command("raw")
@click.argument("sql")
@click.argument("params", nargs=-1)
@click.option("--json", "as_json", is_flag=True, help="Print rows as a JSON array of objects.")
@click.pass_obj
@require_database_url
@handle_errors
def raw(ctx: RowmapContext, sql: str, params: tuple[str, ...], as_json: bool) -> None:
    """Run a query and print its rows.

    \b
    Examples:

        rowmap raw "SELECT id, name FROM users WHERE age > ?" 18

        rowmap raw "SELECT * FROM todos" --json
    """
    with ctx.open_database() as db:
        rowset = db.raw(sql, *parse_params(params)).rows()

    if as_json:
        click.echo(json.dumps(rowset.as_dicts(), indent=2, default=str))
        return

    if not rowset.columns:
        click.echo("(no rows)")
        return
    click.echo("\t".join(rowset.columns))
    for row in rowset.rows:
        click.echo("\t".join("NULL" if v is None else str(v) for v in row))
    click.echo(f"({len(rowset)} row(s))")
