"""
Per-backend SQL differences.

Statements are compiled with ``?`` placeholders; the dialect rewrites them to
the driver's paramstyle, quotes identifiers, adapts values, and renders the
upsert and row-locking clauses.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

from ..core.exceptions import DatabaseQueryError


def split_placeholders(sql: str) -> list[str]:
    """
    Split SQL text on ``?`` placeholders outside quoted literals.

    Returns the text segments; the number of placeholders is
    ``len(result) - 1``.
    """
    segments: list[str] = []
    current: list[str] = []
    quote: str | None = None
    for ch in sql:
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
        elif ch in ("'", '"', "`"):
            quote = ch
            current.append(ch)
        elif ch == "?":
            segments.append("".join(current))
            current = []
        else:
            current.append(ch)
    segments.append("".join(current))
    return segments


def count_placeholders(sql: str) -> int:
    """Number of ``?`` placeholders outside quoted literals."""
    return len(split_placeholders(sql)) - 1


class Dialect:
    """SQL rendering rules for one backend.

    The base class renders ANSI/PostgreSQL-style SQL; subclasses override what
    their backend does differently.
    """

    name = "default"
    identifier_quote = '"'
    supports_returning = True
    supports_row_locks = True
    # Which row of a multi-row INSERT the driver's lastrowid refers to
    lastrowid_position = "last"

    def __init__(self, paramstyle: str = "qmark") -> None:
        self.paramstyle = paramstyle

    def quote(self, identifier: str) -> str:
        """Quote a (possibly dotted) identifier; ``*`` passes through."""
        q = self.identifier_quote
        parts = []
        for part in identifier.split("."):
            if part == "*":
                parts.append(part)
            else:
                parts.append(f"{q}{part.replace(q, q + q)}{q}")
        return ".".join(parts)

    def adapt_value(self, value: Any) -> Any:
        """Convert a python value to what the driver accepts."""
        return value

    def render(self, sql: str, params: Sequence[Any]) -> tuple[str, Any]:
        """
        Rewrite ``?`` placeholders into the driver's paramstyle.

        Args:
            sql: Statement with ``?`` placeholders
            params: Positional parameters

        Returns:
            (sql, params) ready for the DBAPI cursor.
        """
        params = tuple(self.adapt_value(p) for p in params)
        if self.paramstyle == "qmark":
            return sql, params

        segments = split_placeholders(sql)
        if len(segments) - 1 != len(params):
            raise DatabaseQueryError(
                f"statement has {len(segments) - 1} placeholders but {len(params)} parameters",
                sql=sql,
            )

        if self.paramstyle in ("format", "pyformat"):
            escaped = [segment.replace("%", "%%") for segment in segments]
            return "%s".join(escaped), params
        if self.paramstyle == "numeric":
            out = [segments[0]]
            for index, segment in enumerate(segments[1:], start=1):
                out.append(f":{index}")
                out.append(segment)
            return "".join(out), params
        if self.paramstyle == "named":
            out = [segments[0]]
            named: dict[str, Any] = {}
            for index, segment in enumerate(segments[1:], start=1):
                out.append(f":p{index}")
                out.append(segment)
                named[f"p{index}"] = params[index - 1]
            return "".join(out), named
        raise DatabaseQueryError(f"unsupported driver paramstyle {self.paramstyle!r}")

    def upsert_clause(
        self,
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
    ) -> str:
        """
        Render the ON CONFLICT tail of an INSERT.

        An empty ``update_columns`` means "do nothing on conflict".
        """
        target = ", ".join(self.quote(c) for c in conflict_columns)
        if not update_columns:
            return f" ON CONFLICT ({target}) DO NOTHING"
        assignments = ", ".join(
            f"{self.quote(c)} = excluded.{self.quote(c)}" for c in update_columns
        )
        return f" ON CONFLICT ({target}) DO UPDATE SET {assignments}"

    def lock_clause(self, strength: str, nowait: bool = False, skip_locked: bool = False) -> str:
        """Render ``FOR UPDATE`` / ``FOR SHARE`` with options."""
        clause = f" FOR {strength}"
        if nowait:
            clause += " NOWAIT"
        elif skip_locked:
            clause += " SKIP LOCKED"
        return clause

    def returning_clause(self, columns: Sequence[str]) -> str:
        return " RETURNING " + ", ".join(self.quote(c) for c in columns)

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        clause = ""
        if limit is not None:
            clause += f" LIMIT {int(limit)}"
        if offset:
            clause += f" OFFSET {int(offset)}"
        return clause

    def default_values_clause(self) -> str:
        """VALUES part of an INSERT that writes no explicit column."""
        return " DEFAULT VALUES"


class PostgresDialect(Dialect):
    name = "postgresql"


class SQLiteDialect(Dialect):
    """SQLite has no row-level locks and stores timestamps as text."""

    name = "sqlite"
    supports_row_locks = False

    def __init__(self, paramstyle: str = "qmark", returning: bool = True) -> None:
        super().__init__(paramstyle)
        self.supports_returning = returning

    def adapt_value(self, value: Any) -> Any:
        # The sqlite3 module's default datetime adapters are deprecated
        if isinstance(value, datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, date):
            return value.isoformat()
        return value

    def lock_clause(self, strength: str, nowait: bool = False, skip_locked: bool = False) -> str:
        return ""

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        if offset and limit is None:
            return f" LIMIT -1 OFFSET {int(offset)}"
        return super().limit_clause(limit, offset)


class MySQLDialect(Dialect):
    name = "mysql"
    identifier_quote = "`"
    supports_returning = False
    lastrowid_position = "first"

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        if offset and limit is None:
            return f" LIMIT 18446744073709551615 OFFSET {int(offset)}"
        return super().limit_clause(limit, offset)

    def default_values_clause(self) -> str:
        return " () VALUES ()"

    def upsert_clause(
        self,
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
    ) -> str:
        # MySQL resolves conflicts on any unique key; the target list is implied
        if not update_columns:
            first = self.quote(conflict_columns[0])
            return f" ON DUPLICATE KEY UPDATE {first} = {first}"
        assignments = ", ".join(
            f"{self.quote(c)} = VALUES({self.quote(c)})" for c in update_columns
        )
        return f" ON DUPLICATE KEY UPDATE {assignments}"


def dialect_for(sa_dialect) -> Dialect:
    """
    Pick the rowmap dialect matching an SQLAlchemy dialect.

    Args:
        sa_dialect: ``engine.dialect`` of an SQLAlchemy engine

    Returns:
        Dialect configured with the driver's paramstyle.
    """
    paramstyle = getattr(sa_dialect, "paramstyle", "qmark")
    name = sa_dialect.name
    if name == "sqlite":
        return SQLiteDialect(paramstyle, returning=bool(getattr(sa_dialect, "insert_returning", False)))
    if name in ("mysql", "mariadb"):
        return MySQLDialect(paramstyle)
    if name == "postgresql":
        return PostgresDialect(paramstyle)
    return Dialect(paramstyle)
