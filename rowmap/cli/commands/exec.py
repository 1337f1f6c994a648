"""
Native Click implementation of the exec command.

Usage: rowmap exec SQL [PARAMS]...
"""

from __future__ import annotations

import click

from ..context import RowmapContext
from ..decorators import handle_errors, require_database_url
from ._params import parse_params


@click.command("exec")
@click.argument("sql")
@click.argument("params", nargs=-1)
@click.pass_obj
@require_database_url
@handle_errors
def exec_cmd(ctx: RowmapContext, sql: str, params: tuple[str, ...]) -> None:
    """Execute a statement and print the affected row count.

    \b
    Examples:

        rowmap exec "DELETE FROM users WHERE age > ?" 90

        rowmap exec "UPDATE users SET age = ? WHERE id IN ?" 30 "[1,2]"
    """
    with ctx.open_database() as db:
        affected = db.exec(sql, *parse_params(params))
    click.echo(f"{affected} row(s) affected")
