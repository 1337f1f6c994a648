"""
Entity descriptors.

An entity is a dataclass; its descriptor says which table it lives in, how
its attributes map to columns, which columns are keys, who may write them,
and which relations it declares. Descriptors are built by explicit
``Registry.register()`` calls at startup and never change afterwards.

Usage:
    registry = Registry()
    registry.register(
        User,
        table="users",
        fields=[
            column("id", primary_key=True, write=WriteMode.CREATE),
            column("password"),
            embedded("name", Name, [column("first_name"), column("last_name")]),
            column("created_at", auto_create_time=True, write=WriteMode.CREATE),
            column("updated_at", auto_create_time=True, auto_update_time=True),
            ignored("information"),
        ],
        relations=[has_one("wallet", Wallet, foreign_key="user_id")],
    )
"""

from __future__ import annotations

import dataclasses
import types
import typing
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Union

from ..core.exceptions import DescriptorError


class WriteMode(str, Enum):
    """Which mutations may write a column."""

    BOTH = "both"
    CREATE = "create"
    UPDATE = "update"
    NONE = "none"  # read-only


class RelationKind(str, Enum):
    BELONGS_TO = "belongs_to"
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"


def is_zero(value: Any) -> bool:
    """True for None, "", 0, False and empty containers."""
    if value is None:
        return True
    try:
        return not value
    except (TypeError, ValueError):
        # Objects without a truth value (numpy arrays etc.) are never "empty"
        return False


# -----------------------------------------------------------------------------
# Declarations
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ColumnSpec:
    """Declared column; ``attr`` defaults to the column name."""

    name: str
    attr: str | None = None
    primary_key: bool = False
    auto_increment: bool = False
    write: WriteMode = WriteMode.BOTH
    auto_create_time: bool = False
    auto_update_time: bool = False
    soft_delete: bool = False
    type: type | None = None


@dataclass(frozen=True)
class EmbeddedSpec:
    attr: str
    cls: type
    fields: tuple[ColumnSpec, ...]


@dataclass(frozen=True)
class IgnoredSpec:
    attr: str


@dataclass(frozen=True)
class Relation:
    """
    Declared association.

    For has-one/has-many the foreign key is a column of the target table and
    ``references`` a column of the owner. For belongs-to the foreign key is a
    column of the owner and ``references`` a column of the target. A missing
    ``references`` means the primary key of the referenced side.
    """

    name: str
    kind: RelationKind
    target: type
    foreign_key: str
    references: str | None = None

    @property
    def one_to_one(self) -> bool:
        return self.kind in (RelationKind.BELONGS_TO, RelationKind.HAS_ONE)


def column(
    name: str,
    *,
    attr: str | None = None,
    primary_key: bool = False,
    auto_increment: bool = False,
    write: WriteMode = WriteMode.BOTH,
    auto_create_time: bool = False,
    auto_update_time: bool = False,
    soft_delete: bool = False,
    type: type | None = None,
) -> ColumnSpec:
    """Declare a mapped column."""
    return ColumnSpec(
        name=name,
        attr=attr,
        primary_key=primary_key,
        auto_increment=auto_increment,
        write=WriteMode(write),
        auto_create_time=auto_create_time,
        auto_update_time=auto_update_time,
        soft_delete=soft_delete,
        type=type,
    )


def embedded(attr: str, cls: type, fields: Sequence[ColumnSpec]) -> EmbeddedSpec:
    """Declare a sub-struct whose columns live in the parent's table."""
    return EmbeddedSpec(attr=attr, cls=cls, fields=tuple(fields))


def ignored(attr: str) -> IgnoredSpec:
    """Declare an attribute that is never read from or written to the database."""
    return IgnoredSpec(attr=attr)


def belongs_to(name: str, target: type, *, foreign_key: str, references: str | None = None) -> Relation:
    return Relation(name, RelationKind.BELONGS_TO, target, foreign_key, references)


def has_one(name: str, target: type, *, foreign_key: str, references: str | None = None) -> Relation:
    return Relation(name, RelationKind.HAS_ONE, target, foreign_key, references)


def has_many(name: str, target: type, *, foreign_key: str, references: str | None = None) -> Relation:
    return Relation(name, RelationKind.HAS_MANY, target, foreign_key, references)


# -----------------------------------------------------------------------------
# Resolved descriptors
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ColumnField:
    """A column resolved against the entity class."""

    column: str
    path: tuple[str, ...]
    type: type | None
    required: bool
    primary_key: bool = False
    auto_increment: bool = False
    write: WriteMode = WriteMode.BOTH
    auto_create_time: bool = False
    auto_update_time: bool = False
    soft_delete: bool = False
    embedded_cls: type | None = None

    def get(self, entity: Any) -> Any:
        value = entity
        for attr in self.path:
            if value is None:
                return None
            value = getattr(value, attr)
        return value

    def set(self, entity: Any, value: Any) -> None:
        target = entity
        if len(self.path) == 2:
            target = getattr(entity, self.path[0])
            if target is None:
                target = self.embedded_cls()
                setattr(entity, self.path[0], target)
        setattr(target, self.path[-1], value)

    def writable(self, mode: str) -> bool:
        """Whether a ``create`` or ``update`` may write this column."""
        if self.write == WriteMode.BOTH:
            return True
        return self.write.value == mode


@dataclass(frozen=True)
class EntityDescriptor:
    """Static mapping metadata for one entity class."""

    cls: type
    table: str
    fields: tuple[ColumnField, ...]
    relations: dict[str, Relation]
    embedded: dict[str, type]
    ignored: frozenset[str]

    @property
    def name(self) -> str:
        return self.cls.__name__

    @property
    def columns(self) -> list[str]:
        return [f.column for f in self.fields]

    @property
    def primary_keys(self) -> list[ColumnField]:
        return [f for f in self.fields if f.primary_key]

    @property
    def primary_key(self) -> ColumnField:
        """The single primary key column."""
        keys = self.primary_keys
        if len(keys) != 1:
            raise DescriptorError(
                f"{self.name} needs exactly one primary key for this operation",
                entity=self.name,
            )
        return keys[0]

    @property
    def soft_delete(self) -> ColumnField | None:
        for f in self.fields:
            if f.soft_delete:
                return f
        return None

    def field(self, column_name: str) -> ColumnField:
        for f in self.fields:
            if f.column == column_name:
                return f
        raise DescriptorError(f"{self.name} has no column {column_name!r}", entity=self.name)

    def relation(self, name: str) -> Relation:
        try:
            return self.relations[name]
        except KeyError:
            raise DescriptorError(f"{self.name} has no relation {name!r}", entity=self.name) from None

    def has_primary_key(self, entity: Any) -> bool:
        keys = self.primary_keys
        return bool(keys) and all(not is_zero(f.get(entity)) for f in keys)

    def key_values(self, entity: Any) -> dict[str, Any]:
        return {f.column: f.get(entity) for f in self.primary_keys}


def unwrap_type(annotation: Any) -> type | None:
    """``int | None`` -> ``int``; anything not a plain class -> None."""
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        return unwrap_type(args[0]) if len(args) == 1 else None
    return annotation if isinstance(annotation, type) else None


def _dataclass_fields(cls: type) -> dict[str, dataclasses.Field]:
    if not dataclasses.is_dataclass(cls):
        raise DescriptorError(f"{cls.__name__} must be a dataclass", entity=cls.__name__)
    return {f.name: f for f in dataclasses.fields(cls)}


def _type_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError) as e:
        raise DescriptorError(
            f"Cannot resolve annotations of {cls.__name__}; pass type= to column()",
            entity=cls.__name__,
            cause=e,
        ) from e


def _has_default(f: dataclasses.Field) -> bool:
    return f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING


def _resolve_column(
    spec: ColumnSpec,
    cls: type,
    prefix: tuple[str, ...],
    embedded_cls: type | None,
) -> ColumnField:
    attr = spec.attr or spec.name
    fields = _dataclass_fields(cls)
    if attr not in fields:
        raise DescriptorError(f"{cls.__name__} has no attribute {attr!r}", entity=cls.__name__)
    hints = _type_hints(cls)
    py_type = spec.type or unwrap_type(hints.get(attr))
    if spec.soft_delete and py_type not in (None, datetime):
        raise DescriptorError(
            f"Soft-delete column {spec.name!r} must be a nullable datetime",
            entity=cls.__name__,
        )
    return ColumnField(
        column=spec.name,
        path=(*prefix, attr),
        type=py_type,
        required=not _has_default(fields[attr]),
        primary_key=spec.primary_key,
        auto_increment=spec.auto_increment,
        write=spec.write,
        auto_create_time=spec.auto_create_time,
        auto_update_time=spec.auto_update_time,
        soft_delete=spec.soft_delete,
        embedded_cls=embedded_cls,
    )


class Registry:
    """
    Descriptor table keyed by entity class.

    Passed explicitly to Database; there is no process-wide registry.
    """

    def __init__(self) -> None:
        self._descriptors: dict[type, EntityDescriptor] = {}

    def register(
        self,
        cls: type,
        *,
        table: str,
        fields: Sequence[ColumnSpec | EmbeddedSpec | IgnoredSpec],
        relations: Sequence[Relation] = (),
    ) -> EntityDescriptor:
        """
        Build and store the descriptor for ``cls``.

        Raises:
            DescriptorError: On unknown attributes, duplicate columns, more than
                one soft-delete column, or relation attributes without defaults.
        """
        class_fields = _dataclass_fields(cls)
        resolved: list[ColumnField] = []
        embedded_map: dict[str, type] = {}
        ignored_attrs: set[str] = set()

        for spec in fields:
            if isinstance(spec, ColumnSpec):
                resolved.append(_resolve_column(spec, cls, (), None))
            elif isinstance(spec, EmbeddedSpec):
                if spec.attr not in class_fields:
                    raise DescriptorError(
                        f"{cls.__name__} has no attribute {spec.attr!r}", entity=cls.__name__
                    )
                embedded_map[spec.attr] = spec.cls
                for sub in spec.fields:
                    if sub.primary_key:
                        raise DescriptorError(
                            "Embedded columns cannot be primary keys", entity=cls.__name__
                        )
                    resolved.append(_resolve_column(sub, spec.cls, (spec.attr,), spec.cls))
            elif isinstance(spec, IgnoredSpec):
                ignored_attrs.add(spec.attr)
            else:
                raise DescriptorError(f"Unsupported field declaration {spec!r}", entity=cls.__name__)

        seen: set[str] = set()
        for f in resolved:
            if f.column in seen:
                raise DescriptorError(f"Column {f.column!r} declared twice", entity=cls.__name__)
            seen.add(f.column)
        if sum(1 for f in resolved if f.soft_delete) > 1:
            raise DescriptorError("Only one soft-delete column is allowed", entity=cls.__name__)

        relation_map: dict[str, Relation] = {}
        for rel in relations:
            if rel.name not in class_fields or not _has_default(class_fields[rel.name]):
                raise DescriptorError(
                    f"Relation {rel.name!r} must be a dataclass attribute with a default",
                    entity=cls.__name__,
                )
            if rel.kind == RelationKind.BELONGS_TO and rel.foreign_key not in seen:
                raise DescriptorError(
                    f"belongs_to {rel.name!r}: {rel.foreign_key!r} is not a column of {cls.__name__}",
                    entity=cls.__name__,
                )
            relation_map[rel.name] = rel

        descriptor = EntityDescriptor(
            cls=cls,
            table=table,
            fields=tuple(resolved),
            relations=relation_map,
            embedded=embedded_map,
            ignored=frozenset(ignored_attrs),
        )
        self._descriptors[cls] = descriptor
        return descriptor

    def get(self, cls: type) -> EntityDescriptor:
        try:
            return self._descriptors[cls]
        except KeyError:
            raise DescriptorError(
                f"{cls.__name__} is not registered", entity=cls.__name__
            ) from None

    def of(self, target: Any) -> EntityDescriptor:
        """Descriptor for an entity class or instance (or list of instances)."""
        if isinstance(target, (list, tuple)):
            if not target:
                raise DescriptorError("Cannot infer entity type of an empty sequence")
            target = target[0]
        cls = target if isinstance(target, type) else type(target)
        return self.get(cls)

    def __contains__(self, cls: object) -> bool:
        return cls in self._descriptors

    def target_of(self, relation: Relation) -> EntityDescriptor:
        return self.get(relation.target)

    def owner_key(self, owner: EntityDescriptor, relation: Relation) -> str:
        """Column of the owner table that the relation joins on."""
        if relation.kind == RelationKind.BELONGS_TO:
            return relation.foreign_key
        return relation.references or owner.primary_key.column

    def target_key(self, relation: Relation) -> str:
        """Column of the target table that the relation joins on."""
        if relation.kind == RelationKind.BELONGS_TO:
            return relation.references or self.target_of(relation).primary_key.column
        return relation.foreign_key


@dataclass
class Model:
    """
    Conventional base entity: auto-increment id, timestamps, soft delete.

    Subclasses must give every added field a default. Register with
    ``fields=[*model_columns(), column(...), ...]``.
    """

    id: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None


def model_columns() -> list[ColumnSpec]:
    """Column declarations matching ``Model``."""
    return [
        column("id", primary_key=True, auto_increment=True),
        column("created_at", auto_create_time=True, write=WriteMode.CREATE),
        column("updated_at", auto_create_time=True, auto_update_time=True),
        column("deleted_at", soft_delete=True),
    ]
