"""
Native Click implementation of the ping command.

Usage: rowmap ping
"""

from __future__ import annotations

import time

import click

from ..context import RowmapContext
from ..decorators import handle_errors, require_database_url


@click.command("ping")
@click.pass_obj
@require_database_url
@handle_errors
def ping(ctx: RowmapContext) -> None:
    """Check that the configured database answers."""
    started = time.perf_counter()
    with ctx.open_database() as db:
        db.ping()
        elapsed_ms = (time.perf_counter() - started) * 1000
        click.echo(f"OK {db.connection.url} ({db.dialect.name}, {elapsed_ms:.1f}ms)")
