"""
Click decorators for rowmap CLI commands.

- require_database_url: Ensures a database URL is configured
- handle_errors: Turns rowmap exceptions into Click errors with exit codes
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

import click

from ..core.exceptions import RowmapException

if TYPE_CHECKING:
    from .context import RowmapContext

F = TypeVar("F", bound=Callable[..., Any])


def require_database_url(f: F) -> F:
    """Decorator to require a configured database URL.

    Usage:
        @click.command()
        @click.pass_obj
        @require_database_url
        def ping(ctx: RowmapContext):
            ...

    Note:
        This decorator should be applied AFTER @click.pass_obj so that
        the RowmapContext is available.
    """

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        ctx_maybe: Any = args[0] if args else kwargs.get("ctx")

        if ctx_maybe is None:
            raise click.ClickException(
                "Internal error: RowmapContext not available. "
                "Ensure @click.pass_obj is applied before @require_database_url."
            )
        ctx: RowmapContext = ctx_maybe

        if not ctx.has_database_url:
            raise click.ClickException(
                "No database configured.\n"
                "Pass --url, set ROWMAP_DATABASE__URL (or DB), or add [database] url "
                "to .rowmap/config.toml."
            )

        return f(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def handle_errors(f: F) -> F:
    """Decorator reporting RowmapException as a Click error.

    The exception's exit_code becomes the process exit code.
    """

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return f(*args, **kwargs)
        except RowmapException as e:
            error = click.ClickException(str(e))
            error.exit_code = e.exit_code
            raise error from e

    return wrapper  # type: ignore[return-value]
