"""
Fluent query builder.

Every builder call returns a new ``Query``; the original is never modified,
so a base query can be shared and refined:

    adults = db.model(User).where("age >= ?", 18)
    names = adults.order("name").pluck("name")
    first_adult = adults.first()

Terminal methods (``find``, ``first``, ``last``, ``take``, ``count``,
``pluck``) snapshot the builder state into a ``Statement`` and execute it.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ..core.exceptions import RecordNotFoundError, RowmapValidationError
from . import associations, mutation
from .conditions import And, Condition, Not, Or, qualify, to_condition
from .descriptor import EntityDescriptor
from .mapper import decode, scan
from .statement import Lock, Statement, compile_count, compile_select

if TYPE_CHECKING:
    from .session import Session


class Query:
    """Accumulated SELECT/UPDATE/DELETE state for one entity type."""

    def __init__(self, session: Session, descriptor: EntityDescriptor, target: Any = None) -> None:
        self._session = session
        self._descriptor = descriptor
        self._target = target
        self._where: Condition | None = None
        self._columns: tuple[str, ...] = ()
        self._order: tuple[str, ...] = ()
        self._limit: int | None = None
        self._offset: int | None = None
        self._joins: tuple[str, ...] = ()
        self._preloads: tuple[tuple[str, tuple], ...] = ()
        self._lock: Lock | None = None
        self._unscoped = False
        self._into: type | None = None

    def __repr__(self) -> str:
        return f"<Query {self._descriptor.name} on {self._descriptor.table!r}>"

    @property
    def session(self) -> Session:
        return self._session

    @property
    def descriptor(self) -> EntityDescriptor:
        return self._descriptor

    @property
    def target(self) -> Any:
        """Entity instance the query was created from, if any."""
        return self._target

    @property
    def condition(self) -> Condition | None:
        """Accumulated WHERE tree, without the soft-delete filter."""
        return self._where

    @property
    def is_unscoped(self) -> bool:
        return self._unscoped

    def _copy(self, **changes: Any) -> Query:
        new = copy.copy(self)
        for name, value in changes.items():
            setattr(new, f"_{name}", value)
        return new

    def _condition(self, condition: Any, params: tuple) -> Condition | None:
        return to_condition(condition, *params, descriptor=self._descriptor)

    # -------------------------------------------------------------------------
    # Builder
    # -------------------------------------------------------------------------

    def where(self, condition: Any, *params: Any) -> Query:
        """AND a condition onto the accumulated tree."""
        node = self._condition(condition, params)
        if node is None:
            return self._copy()
        return self._copy(where=node if self._where is None else And((self._where, node)))

    def or_(self, condition: Any, *params: Any) -> Query:
        """OR a condition with everything accumulated so far."""
        node = self._condition(condition, params)
        if node is None:
            return self._copy()
        return self._copy(where=node if self._where is None else Or((self._where, node)))

    def not_(self, condition: Any, *params: Any) -> Query:
        """AND the negation of a condition."""
        node = self._condition(condition, params)
        if node is None:
            return self._copy()
        negated = Not(node)
        return self._copy(where=negated if self._where is None else And((self._where, negated)))

    def select(self, *columns: str) -> Query:
        return self._copy(columns=tuple(columns))

    def order(self, spec: str) -> Query:
        """Append an ORDER BY item, e.g. ``"age desc"``."""
        return self._copy(order=(*self._order, spec))

    def limit(self, n: int | None) -> Query:
        """Cap the row count; ``None`` or a negative value removes the cap."""
        return self._copy(limit=None if n is None or n < 0 else n)

    def offset(self, n: int | None) -> Query:
        return self._copy(offset=None if n is None or n < 0 else n)

    def unscoped(self) -> Query:
        """Disable the soft-delete filter (and make delete() physical)."""
        return self._copy(unscoped=True)

    def join(self, relation: str) -> Query:
        """LEFT JOIN a belongs-to or has-one relation and decode it from the same row."""
        rel = self._descriptor.relation(relation)
        if not rel.one_to_one:
            raise RowmapValidationError(
                f"join() supports belongs_to/has_one only; preload {relation!r} instead"
            )
        if relation in self._joins:
            return self._copy()
        return self._copy(joins=(*self._joins, relation))

    def preload(self, path: str, *condition: Any) -> Query:
        """Load a relation (dotted path for nested ones) with one extra query per level."""
        return self._copy(preloads=(*self._preloads, (path, condition)))

    def for_update(self, *, nowait: bool = False, skip_locked: bool = False) -> Query:
        if nowait and skip_locked:
            raise RowmapValidationError("nowait and skip_locked are mutually exclusive")
        return self._copy(lock=Lock("UPDATE", nowait, skip_locked))

    def for_share(self, *, nowait: bool = False, skip_locked: bool = False) -> Query:
        if nowait and skip_locked:
            raise RowmapValidationError("nowait and skip_locked are mutually exclusive")
        return self._copy(lock=Lock("SHARE", nowait, skip_locked))

    def into(self, cls: type) -> Query:
        """Decode results into ``cls`` (any dataclass, or dict) instead of the entity."""
        return self._copy(into=cls)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def statement(self, **overrides: Any) -> Statement:
        """Snapshot the builder state."""
        registry = self._session.registry
        soft = self._descriptor.soft_delete
        fields = dict(
            table=self._descriptor.table,
            columns=self._columns,
            where=self._where,
            order=self._order,
            limit=self._limit,
            offset=self._offset,
            joins=tuple(associations.build_join(registry, self._descriptor, name) for name in self._joins),
            lock=self._lock,
            soft_delete=soft.column if soft else None,
            unscoped=self._unscoped,
        )
        fields.update(overrides)
        return Statement(**fields)

    def _fetch(self, stmt: Statement) -> list[Any]:
        session = self._session
        if stmt.lock is not None and not session.in_transaction():
            session.logger.warning(
                "FOR %s on %s requested outside a transaction; the lock ends with the statement",
                stmt.lock.strength,
                stmt.table,
            )
        sql, params = compile_select(stmt, session.dialect)
        rowset = session.execute(sql, params)

        if self._into is not None:
            return scan(rowset, self._into, session.registry)

        entities = decode(self._descriptor, rowset)
        if stmt.joins:
            associations.bind_joined(session.registry, self._descriptor, stmt.joins, rowset, entities)
        for path, condition in self._preloads:
            associations.preload(
                session, self._descriptor, entities, path, condition, unscoped=self._unscoped
            )
        return entities

    def _one(self, stmt: Statement) -> Any:
        results = self._fetch(stmt)
        if not results:
            raise RecordNotFoundError(table=self._descriptor.table)
        return results[0]

    def _with(self, condition: tuple) -> Query:
        if not condition:
            return self
        return self.where(*condition)

    def find(self, *condition: Any) -> list[Any]:
        """All matching rows; empty list when nothing matches."""
        q = self._with(condition)
        return q._fetch(q.statement())

    def first(self, *condition: Any) -> Any:
        """
        First row ordered by primary key.

        Raises:
            RecordNotFoundError: If nothing matches
        """
        q = self._with(condition)
        pk = qualify(q._descriptor.primary_key.column, q._session.dialect, q._descriptor.table)
        return q._one(q.statement(order=(*q._order, pk), limit=1))

    def last(self, *condition: Any) -> Any:
        """
        Last row ordered by primary key.

        Raises:
            RecordNotFoundError: If nothing matches
        """
        q = self._with(condition)
        pk = qualify(q._descriptor.primary_key.column, q._session.dialect, q._descriptor.table)
        return q._one(q.statement(order=(*q._order, f"{pk} DESC"), limit=1))

    def take(self, *condition: Any) -> Any:
        """
        One matching row, no ordering applied.

        Raises:
            RecordNotFoundError: If nothing matches
        """
        q = self._with(condition)
        return q._one(q.statement(limit=1))

    def count(self) -> int:
        sql, params = compile_count(self.statement(), self._session.dialect)
        rowset = self._session.execute(sql, params)
        return int(rowset.rows[0][0]) if rowset.rows else 0

    def pluck(self, column: str) -> list[Any]:
        """Values of one column for every matching row."""
        sql, params = compile_select(self.statement(columns=(column,)), self._session.dialect)
        return [row[0] for row in self._session.execute(sql, params).rows]

    def exists(self) -> bool:
        sql, params = compile_select(self.statement(columns=("1",), limit=1), self._session.dialect)
        return bool(self._session.execute(sql, params).rows)

    # -------------------------------------------------------------------------
    # Mutations on the matched rows
    # -------------------------------------------------------------------------

    def update(self, column: str, value: Any, *, allow_global: bool = False) -> int:
        """Set one column on every matching row."""
        return mutation.update_rows(self, {column: value}, allow_global=allow_global)

    def updates(self, values: Mapping[str, Any] | Any, *, allow_global: bool = False) -> int:
        """
        Partial update of every matching row.

        A mapping is applied verbatim, empty values included; an entity
        instance applies only its non-zero fields.
        """
        return mutation.update_rows(self, values, allow_global=allow_global)

    def delete(self, *, allow_global: bool = False) -> int:
        """Soft delete when the entity has a marker column, else DELETE."""
        return mutation.delete_rows(self, allow_global=allow_global)
