"""
Relation loading and cascading writes.

Two loading strategies:
    preload  one extra SELECT per relation level, ``IN`` over all parent keys
    join     LEFT JOIN of a one-to-one relation, decoded from prefixed columns

Back-references (a wallet's ``user``) are never bound automatically; use
``Session.related()`` to look one up.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from ..core.exceptions import RowmapValidationError
from .conditions import eq, in_
from .descriptor import EntityDescriptor, Registry, RelationKind, is_zero
from .engine import RowSet
from .mapper import decode_row
from .statement import Join, OnConflict

if TYPE_CHECKING:
    from .session import Session


def build_join(registry: Registry, descriptor: EntityDescriptor, name: str) -> Join:
    """Join spec for relation ``name`` of ``descriptor``."""
    rel = descriptor.relation(name)
    if not rel.one_to_one:
        raise RowmapValidationError(f"cannot join has_many relation {name!r}")
    target = registry.target_of(rel)
    soft = target.soft_delete
    return Join(
        relation=name,
        table=target.table,
        columns=tuple(target.columns),
        target_key=registry.target_key(rel),
        owner_key=registry.owner_key(descriptor, rel),
        soft_delete=soft.column if soft else None,
    )


def bind_joined(
    registry: Registry,
    descriptor: EntityDescriptor,
    joins: Sequence[Join],
    rowset: RowSet,
    entities: list[Any],
) -> None:
    """Decode joined columns of each row onto the matching parent."""
    index = {name: i for i, name in enumerate(rowset.columns)}
    for join in joins:
        target = registry.get(descriptor.relation(join.relation).target)
        key_pos = index[join.prefix() + join.target_key]
        for entity, row in zip(entities, rowset.rows):
            related = None if row[key_pos] is None else decode_row(target, index, row, join.prefix())
            setattr(entity, join.relation, related)


def _distinct(values: list[Any]) -> list[Any]:
    seen: dict[Any, None] = {}
    for value in values:
        if not is_zero(value):
            seen.setdefault(value, None)
    return list(seen)


def preload(
    session: Session,
    descriptor: EntityDescriptor,
    parents: list[Any],
    path: str,
    condition: tuple = (),
    *,
    unscoped: bool = False,
) -> None:
    """
    Load relation ``path`` for every parent and bind the results.

    ``condition`` (any ``where()`` argument form) applies to the last level
    of a dotted path. has-many binds a list; one-to-one binds an entity or
    None.
    """
    head, _, rest = path.partition(".")
    rel = descriptor.relation(head)
    registry = session.registry
    target = registry.target_of(rel)
    owner_field = descriptor.field(registry.owner_key(descriptor, rel))
    target_key = registry.target_key(rel)
    target_field = target.field(target_key)

    keys = _distinct([owner_field.get(parent) for parent in parents])
    children: list[Any] = []
    if keys:
        query = session.model(target.cls).where(in_(target_key, keys))
        if unscoped:
            query = query.unscoped()
        if condition and not rest:
            query = query.where(*condition)
        children = query.find()

    grouped: dict[Any, list[Any]] = {}
    for child in children:
        grouped.setdefault(target_field.get(child), []).append(child)
    for parent in parents:
        matched = grouped.get(owner_field.get(parent), [])
        if rel.kind == RelationKind.HAS_MANY:
            setattr(parent, head, list(matched))
        else:
            setattr(parent, head, matched[0] if matched else None)

    if rest and children:
        preload(session, target, children, rest, condition, unscoped=unscoped)


def related(session: Session, entity: Any, name: str) -> Any:
    """
    Fetch relation ``name`` of one entity without binding it.

    Returns:
        A list for has-many, otherwise the related entity or None.
    """
    registry = session.registry
    descriptor = registry.of(entity)
    rel = descriptor.relation(name)
    value = descriptor.field(registry.owner_key(descriptor, rel)).get(entity)
    if is_zero(value):
        return [] if rel.kind == RelationKind.HAS_MANY else None

    query = session.model(rel.target).where(eq(registry.target_key(rel), value))
    if rel.kind == RelationKind.HAS_MANY:
        return query.find()
    found = query.limit(1).find()
    return found[0] if found else None


def save_parents(session: Session, descriptor: EntityDescriptor, entity: Any) -> None:
    """
    Insert belongs-to targets before their owner.

    Existing targets are left alone (conflict does nothing); the owner's
    foreign key is then set from the target's key.
    """
    from . import mutation

    registry = session.registry
    for rel in descriptor.relations.values():
        if rel.kind != RelationKind.BELONGS_TO:
            continue
        parent = getattr(entity, rel.name, None)
        if parent is None:
            continue
        target = registry.target_of(rel)
        mutation.create(session, parent, on_conflict=OnConflict(do_nothing=True), omit_associations=True)
        key = target.field(registry.target_key(rel)).get(parent)
        if not is_zero(key):
            descriptor.field(rel.foreign_key).set(entity, key)


def save_children(session: Session, descriptor: EntityDescriptor, entity: Any) -> None:
    """
    Insert has-one/has-many children after their owner.

    Each child's foreign key is set from the owner; a child that already
    exists gets its foreign key updated.
    """
    from . import mutation

    registry = session.registry
    for rel in descriptor.relations.values():
        if rel.kind == RelationKind.BELONGS_TO:
            continue
        value = getattr(entity, rel.name, None)
        if value is None:
            continue
        children = list(value) if rel.kind == RelationKind.HAS_MANY else [value]
        if not children:
            continue
        target = registry.target_of(rel)
        key = descriptor.field(registry.owner_key(descriptor, rel)).get(entity)
        fk = target.field(rel.foreign_key)
        for child in children:
            fk.set(child, key)
        mutation.create(
            session,
            children,
            on_conflict=OnConflict(update=(rel.foreign_key,)),
            omit_associations=True,
        )
