"""
Create, save, update and delete.

Functions here take the session (for execution, registry and clock) and
return affected-row counts. Association cascades live in ``associations``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from ..core.exceptions import MissingWhereClauseError, RowmapValidationError
from . import associations
from .conditions import Condition, all_of, eq
from .descriptor import EntityDescriptor, is_zero
from .mapper import CREATE, UPDATE, encode, non_zero_values
from .statement import OnConflict, compile_delete, compile_insert, compile_update

if TYPE_CHECKING:
    from datetime import datetime

    from .engine import RowSet
    from .query import Query
    from .session import Session


def _entities(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _same_type(descriptor: EntityDescriptor, entities: Sequence[Any]) -> None:
    for entity in entities:
        if type(entity) is not descriptor.cls:
            raise RowmapValidationError(
                f"cannot mix {type(entity).__name__} into a {descriptor.name} insert"
            )


def _conflict_clause(
    descriptor: EntityDescriptor,
    columns: Sequence[str],
    on_conflict: OnConflict | None,
) -> tuple[list[str], list[str]] | None:
    if on_conflict is None:
        return None
    target = list(on_conflict.columns) or [f.column for f in descriptor.primary_keys]
    if not target:
        raise RowmapValidationError(f"{descriptor.name} has no primary key to resolve conflicts on")
    if on_conflict.do_nothing:
        return target, []
    if on_conflict.update_all:
        updates = [
            c for c in columns if c not in target and descriptor.field(c).writable(UPDATE)
        ]
        return target, updates
    for c in on_conflict.update:
        descriptor.field(c)
    return target, list(on_conflict.update)


def _assign_keys(
    session: Session,
    descriptor: EntityDescriptor,
    entities: list[Any],
    rowset: RowSet,
    *,
    returned: bool,
    upsert: bool,
) -> None:
    """Write generated auto-increment keys back onto the entities."""
    key = next((f for f in descriptor.primary_keys if f.auto_increment), None)
    if key is None:
        return
    pending = [e for e in entities if is_zero(key.get(e))]
    if not pending:
        return
    if returned:
        # Conflicting rows that did nothing return no row; keys can't be matched then
        if len(rowset.rows) == len(pending):
            for entity, row in zip(pending, rowset.rows):
                key.set(entity, row[0])
        return
    if not rowset.lastrowid or (upsert and len(pending) > 1):
        return
    first_id = rowset.lastrowid
    if session.dialect.lastrowid_position == "last":
        first_id -= len(pending) - 1
    for offset, entity in enumerate(pending):
        key.set(entity, first_id + offset)


def insert_entities(
    session: Session,
    descriptor: EntityDescriptor,
    entities: list[Any],
    now: datetime,
    on_conflict: OnConflict | None = None,
) -> int:
    """One INSERT per distinct column set (normally exactly one)."""
    groups: dict[tuple[str, ...], list[tuple[Any, list[Any]]]] = {}
    for entity in entities:
        pairs = encode(entity, descriptor, CREATE, now)
        columns = tuple(col for col, _ in pairs)
        groups.setdefault(columns, []).append((entity, [value for _, value in pairs]))

    dialect = session.dialect
    autoinc = next((f for f in descriptor.primary_keys if f.auto_increment), None)
    affected = 0
    for columns, members in groups.items():
        group_entities = [entity for entity, _ in members]
        conflict = _conflict_clause(descriptor, columns, on_conflict)
        returning: list[str] = []
        if autoinc is not None and autoinc.column not in columns and dialect.supports_returning:
            returning = [autoinc.column]
        if columns:
            rows = [values for _, values in members]
            sql, params = compile_insert(
                descriptor.table, columns, rows, dialect, conflict=conflict, returning=returning
            )
            rowset = session.execute(sql, params)
            affected += len(rowset.rows) if returning else max(rowset.rowcount, 0)
            _assign_keys(
                session, descriptor, group_entities, rowset,
                returned=bool(returning), upsert=conflict is not None,
            )
        else:
            # No writable column set: one DEFAULT VALUES insert per entity
            for entity in group_entities:
                sql, params = compile_insert(
                    descriptor.table, (), [()], dialect, conflict=conflict, returning=returning
                )
                rowset = session.execute(sql, params)
                affected += len(rowset.rows) if returning else max(rowset.rowcount, 0)
                _assign_keys(
                    session, descriptor, [entity], rowset,
                    returned=bool(returning), upsert=conflict is not None,
                )
    return affected


def create(
    session: Session,
    value: Any,
    *,
    on_conflict: OnConflict | None = None,
    omit_associations: bool = False,
) -> int:
    """
    Insert an entity or a list of entities in a single statement.

    Auto-increment keys and stamped timestamps are written back onto the
    entities. Associations are cascaded unless ``omit_associations``.

    Raises:
        ConstraintError: On key violations without a conflict policy
    """
    entities = _entities(value)
    if not entities:
        return 0
    descriptor = session.registry.of(entities[0])
    _same_type(descriptor, entities)
    now = session.now()

    if not omit_associations:
        for entity in entities:
            associations.save_parents(session, descriptor, entity)
    affected = insert_entities(session, descriptor, entities, now, on_conflict)
    if not omit_associations:
        for entity in entities:
            associations.save_children(session, descriptor, entity)
    return affected


def create_batch(
    session: Session,
    entities: Sequence[Any],
    batch_size: int | None = None,
    *,
    on_conflict: OnConflict | None = None,
    omit_associations: bool = False,
) -> int:
    """
    Insert ``entities`` in chunks of ``batch_size``, one statement per chunk.

    Stops at the first failing chunk. Chunks already written stay written
    unless the session is a transaction that is later rolled back.
    """
    size = session.batch_size if batch_size is None else batch_size
    if size <= 0:
        raise RowmapValidationError(f"batch_size must be positive, got {size}")
    entities = list(entities)
    total = 0
    for start in range(0, len(entities), size):
        chunk = entities[start : start + size]
        total += create(session, chunk, on_conflict=on_conflict, omit_associations=omit_associations)
    session.logger.debug(
        "Batch insert of %d rows in chunks of %d: %d affected", len(entities), size, total
    )
    return total


def save(session: Session, entity: Any, *, omit_associations: bool = False) -> int:
    """
    Upsert by primary key.

    A zero-valued key creates. Otherwise every update-writable column is
    written by primary key; if no row matched, the entity is inserted.
    """
    descriptor = session.registry.of(entity)
    if not descriptor.has_primary_key(entity):
        return create(session, entity, omit_associations=omit_associations)

    now = session.now()
    if not omit_associations:
        associations.save_parents(session, descriptor, entity)

    pairs = encode(entity, descriptor, UPDATE, now)
    where = all_of([eq(col, value) for col, value in descriptor.key_values(entity).items()])
    affected = 0
    if pairs:
        sql, params = compile_update(descriptor.table, pairs, where, session.dialect)
        affected = max(session.execute(sql, params).rowcount, 0)
    if affected == 0:
        affected = insert_entities(session, descriptor, [entity], now)

    if not omit_associations:
        associations.save_children(session, descriptor, entity)
    return affected


def _require_condition(query: Query, allow_global: bool, verb: str) -> None:
    if query.condition is not None or allow_global or not query.session.require_where:
        return
    raise MissingWhereClauseError(
        f"{verb} on {query.descriptor.table} without conditions; pass allow_global=True to touch every row"
    )


def _scope(query: Query) -> Condition | None:
    return query.statement(joins=()).scope()


def update_rows(query: Query, values: Mapping[str, Any] | Any, *, allow_global: bool = False) -> int:
    """
    UPDATE the rows matched by ``query``.

    Mapping entries are applied verbatim; entity instances contribute only
    their non-zero fields. Columns that updates may not write are dropped
    and update-time columns are refreshed.
    """
    descriptor = query.descriptor
    session = query.session
    if isinstance(values, Mapping):
        given = [(str(col), value) for col, value in values.items()]
    elif isinstance(values, descriptor.cls):
        given = [
            (col, value)
            for col, value in non_zero_values(values, descriptor)
            if not descriptor.field(col).primary_key
        ]
    else:
        raise RowmapValidationError(
            f"updates() takes a mapping or a {descriptor.name}, got {type(values).__name__}"
        )

    pairs: list[tuple[str, Any]] = []
    for col, value in given:
        field = descriptor.field(col)
        if field.writable(UPDATE):
            pairs.append((col, value))
        else:
            session.logger.debug("Skipping %s.%s: not writable on update", descriptor.table, col)
    if not pairs:
        return 0

    _require_condition(query, allow_global, "UPDATE")
    now = session.now()
    written = {col for col, _ in pairs}
    for field in descriptor.fields:
        if field.auto_update_time and field.column not in written:
            pairs.append((field.column, now))

    sql, params = compile_update(descriptor.table, pairs, _scope(query), session.dialect)
    affected = max(session.execute(sql, params).rowcount, 0)

    if query.target is not None:
        for col, value in pairs:
            descriptor.field(col).set(query.target, value)
    return affected


def delete_rows(query: Query, *, allow_global: bool = False) -> int:
    """Soft delete (marker set to now) when possible, physical DELETE otherwise."""
    descriptor = query.descriptor
    session = query.session
    _require_condition(query, allow_global, "DELETE")

    marker = descriptor.soft_delete
    if marker is not None and not query.is_unscoped:
        now = session.now()
        sql, params = compile_update(
            descriptor.table, [(marker.column, now)], _scope(query), session.dialect
        )
        affected = max(session.execute(sql, params).rowcount, 0)
        if query.target is not None:
            marker.set(query.target, now)
        return affected

    sql, params = compile_delete(descriptor.table, query.condition, session.dialect)
    return max(session.execute(sql, params).rowcount, 0)
