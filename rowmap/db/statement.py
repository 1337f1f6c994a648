"""
Statement snapshots and their compilation to SQL.

``Query`` builds a ``Statement`` per execution; the compile functions below
turn statements and mutations into ``(sql, params)`` with ``?`` placeholders.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from ..core.exceptions import RowmapValidationError
from .conditions import And, Condition, is_identifier, is_null, qualify
from .dialect import Dialect


@dataclass(frozen=True)
class Lock:
    strength: str  # "UPDATE" or "SHARE"
    nowait: bool = False
    skip_locked: bool = False


@dataclass(frozen=True)
class Join:
    """A LEFT JOIN of a one-to-one relation, aliased by relation name."""

    relation: str
    table: str
    columns: tuple[str, ...]
    target_key: str
    owner_key: str
    soft_delete: str | None = None

    @property
    def alias(self) -> str:
        return self.relation

    def prefix(self) -> str:
        return f"{self.relation}__"


@dataclass(frozen=True)
class OnConflict:
    """
    Conflict policy for INSERT.

    ``columns`` is the conflict target (primary key when empty). Exactly one
    of ``update_all``, ``do_nothing`` or ``update`` selects the action.
    """

    columns: tuple[str, ...] = ()
    update: tuple[str, ...] = ()
    update_all: bool = False
    do_nothing: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "update", tuple(self.update))
        chosen = sum((bool(self.update), self.update_all, self.do_nothing))
        if chosen != 1:
            raise RowmapValidationError(
                "OnConflict needs exactly one of update=, update_all=True or do_nothing=True"
            )


@dataclass(frozen=True)
class Statement:
    """Immutable SELECT snapshot."""

    table: str
    columns: tuple[str, ...] = ()
    where: Condition | None = None
    order: tuple[str, ...] = ()
    limit: int | None = None
    offset: int | None = None
    joins: tuple[Join, ...] = ()
    lock: Lock | None = None
    soft_delete: str | None = None
    unscoped: bool = False

    def scope(self) -> Condition | None:
        """The WHERE tree including the soft-delete filter."""
        if self.soft_delete is None or self.unscoped:
            return self.where
        marker = is_null(f"{self.table}.{self.soft_delete}")
        if self.where is None:
            return marker
        return And((self.where, marker))


def _select_item(item: str, dialect: Dialect, table: str) -> str:
    # Plain column names are qualified; expressions are the caller's SQL
    if is_identifier(item):
        return qualify(item, dialect, table)
    return item


def _from_clause(stmt: Statement, dialect: Dialect) -> str:
    sql = f" FROM {dialect.quote(stmt.table)}"
    for join in stmt.joins:
        alias = dialect.quote(join.alias)
        on = (
            f"{alias}.{dialect.quote(join.target_key)} = "
            f"{dialect.quote(stmt.table)}.{dialect.quote(join.owner_key)}"
        )
        if join.soft_delete and not stmt.unscoped:
            on += f" AND {alias}.{dialect.quote(join.soft_delete)} IS NULL"
        sql += f" LEFT JOIN {dialect.quote(join.table)} {alias} ON {on}"
    return sql


def _where_clause(condition: Condition | None, dialect: Dialect, table: str) -> tuple[str, list[Any]]:
    if condition is None:
        return "", []
    sql, params = condition.compile(dialect, table)
    return f" WHERE {sql}", params


def compile_select(stmt: Statement, dialect: Dialect) -> tuple[str, list[Any]]:
    """Render a SELECT, including joins, scope, ordering, paging and locks."""
    items = [_select_item(c, dialect, stmt.table) for c in stmt.columns]
    if not items:
        items = [f"{dialect.quote(stmt.table)}.*"]
    for join in stmt.joins:
        alias = dialect.quote(join.alias)
        items.extend(
            f"{alias}.{dialect.quote(c)} AS {dialect.quote(join.prefix() + c)}" for c in join.columns
        )

    sql = "SELECT " + ", ".join(items) + _from_clause(stmt, dialect)
    where_sql, params = _where_clause(stmt.scope(), dialect, stmt.table)
    sql += where_sql
    if stmt.order:
        sql += " ORDER BY " + ", ".join(stmt.order)
    sql += dialect.limit_clause(stmt.limit, stmt.offset)
    if stmt.lock is not None:
        sql += dialect.lock_clause(stmt.lock.strength, stmt.lock.nowait, stmt.lock.skip_locked)
    return sql, params


def compile_count(stmt: Statement, dialect: Dialect) -> tuple[str, list[Any]]:
    """Render ``SELECT COUNT(*)`` over the statement's rows (paging ignored)."""
    sql = "SELECT COUNT(*)" + _from_clause(stmt, dialect)
    where_sql, params = _where_clause(stmt.scope(), dialect, stmt.table)
    return sql + where_sql, params


def compile_insert(
    table: str,
    columns: Sequence[str],
    rows: Sequence[Sequence[Any]],
    dialect: Dialect,
    *,
    conflict: tuple[Sequence[str], Sequence[str]] | None = None,
    returning: Sequence[str] = (),
) -> tuple[str, list[Any]]:
    """
    Render a (multi-row) INSERT.

    Args:
        table: Target table
        columns: Column names, same for every row
        rows: One value sequence per row
        conflict: ``(conflict columns, columns to update)``; no update
            columns means do nothing
        returning: Columns to return (ignored when the backend can't)
    """
    sql = f"INSERT INTO {dialect.quote(table)}"
    params: list[Any] = []
    if columns:
        sql += " (" + ", ".join(dialect.quote(c) for c in columns) + ") VALUES "
        group = "(" + ", ".join("?" for _ in columns) + ")"
        sql += ", ".join(group for _ in rows)
        for row in rows:
            params.extend(row)
    else:
        if len(rows) != 1:
            raise RowmapValidationError("cannot batch-insert rows without explicit columns")
        sql += dialect.default_values_clause()
    if conflict is not None:
        sql += dialect.upsert_clause(conflict[0], conflict[1])
    if returning and dialect.supports_returning:
        sql += dialect.returning_clause(returning)
    return sql, params


def compile_update(
    table: str,
    assignments: Sequence[tuple[str, Any]],
    where: Condition | None,
    dialect: Dialect,
) -> tuple[str, list[Any]]:
    """Render ``UPDATE table SET ... WHERE ...``."""
    sets = ", ".join(f"{dialect.quote(col)} = ?" for col, _ in assignments)
    params = [value for _, value in assignments]
    where_sql, where_params = _where_clause(where, dialect, table)
    return f"UPDATE {dialect.quote(table)} SET {sets}{where_sql}", params + where_params


def compile_delete(table: str, where: Condition | None, dialect: Dialect) -> tuple[str, list[Any]]:
    where_sql, params = _where_clause(where, dialect, table)
    return f"DELETE FROM {dialect.quote(table)}{where_sql}", params
