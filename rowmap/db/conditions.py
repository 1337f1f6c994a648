"""
Condition trees.

A condition is an immutable boolean expression: ``Comparison`` and ``Raw``
leaves combined by ``And``, ``Or`` and ``Not``. Trees keep the shape they were
built with; every interior node renders parenthesized, so
``where(a).where(b).or_(c)`` compiles to ``((a AND b) OR c)``.

Compiled SQL uses ``?`` placeholders; the dialect rewrites them later.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from ..core.exceptions import DatabaseQueryError, RowmapValidationError
from .descriptor import EntityDescriptor
from .dialect import Dialect, count_placeholders, split_placeholders
from .mapper import non_zero_values

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

OPERATORS = frozenset(
    {"=", "!=", "<>", "<", "<=", ">", ">=", "LIKE", "NOT LIKE", "IN", "NOT IN", "IS", "IS NOT"}
)

_LIST_TYPES = (list, tuple, set, frozenset)


def is_identifier(text: str) -> bool:
    """Whether ``text`` is a column name, optionally table-qualified."""
    return bool(_IDENTIFIER.match(text))


def qualify(column: str, dialect: Dialect, table: str | None = None) -> str:
    """
    Quote a column reference, prefixing ``table`` when the name is bare.

    Raises:
        DatabaseQueryError: If ``column`` is not a plain (optionally dotted)
            identifier.
    """
    if not _IDENTIFIER.match(column):
        raise DatabaseQueryError(f"invalid column reference {column!r}")
    if "." in column or table is None:
        return dialect.quote(column)
    return f"{dialect.quote(table)}.{dialect.quote(column)}"


def expand_params(sql: str, params: Sequence[Any]) -> tuple[str, list[Any]]:
    """
    Expand list parameters into ``(?, ?, ...)`` groups.

    An empty list becomes ``(NULL)`` so that ``IN ?`` matches nothing.

    Raises:
        DatabaseQueryError: If the placeholder count differs from ``len(params)``
    """
    segments = split_placeholders(sql)
    if len(segments) - 1 != len(params):
        raise DatabaseQueryError(
            f"statement has {len(segments) - 1} placeholders but {len(params)} parameters",
            sql=sql,
        )
    if not any(isinstance(p, _LIST_TYPES) for p in params):
        return sql, list(params)

    out = [segments[0]]
    flat: list[Any] = []
    for param, segment in zip(params, segments[1:]):
        if isinstance(param, _LIST_TYPES):
            items = list(param)
            out.append("(" + ", ".join("?" for _ in items) + ")" if items else "(NULL)")
            flat.extend(items)
        else:
            out.append("?")
            flat.append(param)
        out.append(segment)
    return "".join(out), flat


class Condition:
    """Base of every condition node."""

    def compile(self, dialect: Dialect, table: str | None = None) -> tuple[str, list[Any]]:
        """Render to ``(sql, params)``; bare columns are qualified with ``table``."""
        raise NotImplementedError

    def __and__(self, other: Condition) -> Condition:
        return And((self, other))

    def __or__(self, other: Condition) -> Condition:
        return Or((self, other))

    def __invert__(self) -> Condition:
        return Not(self)


@dataclass(frozen=True)
class Comparison(Condition):
    column: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        op = self.op.upper()
        if op not in OPERATORS:
            raise RowmapValidationError(f"unsupported operator {self.op!r}")
        object.__setattr__(self, "op", op)

    def compile(self, dialect: Dialect, table: str | None = None) -> tuple[str, list[Any]]:
        col = qualify(self.column, dialect, table)
        op, value = self.op, self.value

        if value is None:
            if op in ("=", "IS"):
                return f"{col} IS NULL", []
            if op in ("!=", "<>", "IS NOT"):
                return f"{col} IS NOT NULL", []
        if isinstance(value, _LIST_TYPES):
            if op == "=":
                op = "IN"
            elif op in ("!=", "<>"):
                op = "NOT IN"
            if op in ("IN", "NOT IN"):
                if not value:
                    return ("1=0" if op == "IN" else "1=1"), []
                return expand_params(f"{col} {op} ?", [value])
            raise DatabaseQueryError(f"operator {op} does not take a list", sql=col)
        return f"{col} {op} ?", [value]


@dataclass(frozen=True)
class Raw(Condition):
    """Literal SQL fragment with positional ``?`` parameters."""

    sql: str
    params: tuple = ()

    def __post_init__(self) -> None:
        expected = count_placeholders(self.sql)
        if expected != len(self.params):
            raise DatabaseQueryError(
                f"condition has {expected} placeholders but {len(self.params)} parameters",
                sql=self.sql,
            )

    def compile(self, dialect: Dialect, table: str | None = None) -> tuple[str, list[Any]]:
        return expand_params(self.sql, self.params)


def _compile_children(
    children: Sequence[Condition], joiner: str, dialect: Dialect, table: str | None
) -> tuple[str, list[Any]]:
    parts: list[str] = []
    params: list[Any] = []
    for child in children:
        sql, child_params = child.compile(dialect, table)
        parts.append(sql if not isinstance(child, Raw) else f"({sql})")
        params.extend(child_params)
    return "(" + f" {joiner} ".join(parts) + ")", params


@dataclass(frozen=True)
class And(Condition):
    children: tuple[Condition, ...]

    def compile(self, dialect: Dialect, table: str | None = None) -> tuple[str, list[Any]]:
        return _compile_children(self.children, "AND", dialect, table)


@dataclass(frozen=True)
class Or(Condition):
    children: tuple[Condition, ...]

    def compile(self, dialect: Dialect, table: str | None = None) -> tuple[str, list[Any]]:
        return _compile_children(self.children, "OR", dialect, table)


@dataclass(frozen=True)
class Not(Condition):
    child: Condition

    def compile(self, dialect: Dialect, table: str | None = None) -> tuple[str, list[Any]]:
        sql, params = self.child.compile(dialect, table)
        return f"NOT ({sql})", params


def all_of(conditions: Sequence[Condition]) -> Condition | None:
    """AND the conditions together; None when empty, the node itself when single."""
    if not conditions:
        return None
    if len(conditions) == 1:
        return conditions[0]
    return And(tuple(conditions))


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def eq(column: str, value: Any) -> Comparison:
    return Comparison(column, "=", value)


def ne(column: str, value: Any) -> Comparison:
    return Comparison(column, "<>", value)


def gt(column: str, value: Any) -> Comparison:
    return Comparison(column, ">", value)


def ge(column: str, value: Any) -> Comparison:
    return Comparison(column, ">=", value)


def lt(column: str, value: Any) -> Comparison:
    return Comparison(column, "<", value)


def le(column: str, value: Any) -> Comparison:
    return Comparison(column, "<=", value)


def like(column: str, pattern: str) -> Comparison:
    return Comparison(column, "LIKE", pattern)


def in_(column: str, values: Sequence[Any]) -> Comparison:
    return Comparison(column, "IN", list(values))


def not_in(column: str, values: Sequence[Any]) -> Comparison:
    return Comparison(column, "NOT IN", list(values))


def is_null(column: str) -> Comparison:
    return Comparison(column, "IS", None)


def not_null(column: str) -> Comparison:
    return Comparison(column, "IS NOT", None)


def raw(sql: str, *params: Any) -> Raw:
    return Raw(sql, tuple(params))


def to_condition(
    arg: Any,
    *params: Any,
    descriptor: EntityDescriptor | None = None,
) -> Condition | None:
    """
    Turn a condition argument into a node.

    Accepted forms:
        - a ``Condition``
        - SQL text with ``?`` placeholders and matching ``params``
        - a mapping: one equality per entry, empty values included
        - an instance of the descriptor's entity: one equality per non-zero
          mapped field
        - a primary-key value (int) or list of them

    Returns None when the argument yields no clause (an entity with only
    zero-valued fields, or an empty mapping).

    Raises:
        RowmapValidationError: On an unsupported argument
        DatabaseQueryError: On placeholder/parameter count mismatch
    """
    if isinstance(arg, Condition):
        if params:
            raise RowmapValidationError("extra parameters given with a Condition")
        return arg
    if isinstance(arg, str):
        return Raw(arg, tuple(params))
    if params:
        raise RowmapValidationError(f"parameters only apply to SQL text, got {type(arg).__name__}")
    if isinstance(arg, Mapping):
        return all_of([Comparison(str(col), "=", value) for col, value in arg.items()])
    if descriptor is not None:
        if isinstance(arg, descriptor.cls):
            return all_of([Comparison(col, "=", value) for col, value in non_zero_values(arg, descriptor)])
        if isinstance(arg, int) and not isinstance(arg, bool):
            return Comparison(descriptor.primary_key.column, "=", arg)
        if isinstance(arg, (list, tuple)) and all(isinstance(v, int) for v in arg):
            return Comparison(descriptor.primary_key.column, "IN", list(arg))
    raise RowmapValidationError(f"unsupported condition argument {arg!r}")
