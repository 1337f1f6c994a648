"""
Row mapping between entities and raw rows.

Decoding flattens embedded sub-structs back into their attributes and fills
absent optional columns with dataclass defaults. Encoding honours write
permissions and stamps auto-timestamps.
"""

from __future__ import annotations

import dataclasses
import typing
from collections.abc import Sequence
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from ..core.exceptions import MappingError
from .descriptor import ColumnField, EntityDescriptor, Registry, unwrap_type, is_zero
from .engine import RowSet

CREATE = "create"
UPDATE = "update"


def convert_value(value: Any, py_type: type | None) -> Any:
    """
    Convert a driver value to ``py_type``.

    Raises:
        TypeError/ValueError: If the value cannot represent the type
    """
    if value is None or py_type is None:
        return value
    if py_type is date and isinstance(value, datetime):
        return value.date()
    if isinstance(value, py_type) and not (py_type is int and isinstance(value, bool)):
        return value

    if py_type is datetime:
        if isinstance(value, str):
            return datetime.fromisoformat(value)
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value, tz=timezone.utc)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
    elif py_type is date:
        if isinstance(value, str):
            return date.fromisoformat(value[:10])
    elif py_type is bool:
        if isinstance(value, (int, float, Decimal)):
            return bool(value)
        if isinstance(value, str) and value.lower() in ("0", "1", "true", "false", "t", "f"):
            return value.lower() in ("1", "true", "t")
    elif py_type is bytes:
        if isinstance(value, (bytearray, memoryview)):
            return bytes(value)
        if isinstance(value, str):
            return value.encode()
    elif py_type is Decimal:
        return Decimal(str(value))
    elif py_type in (int, float, str):
        return py_type(value)
    elif issubclass(py_type, Enum):
        return py_type(value)
    else:
        # Types we know nothing about are handed over as the driver returned them
        return value
    raise TypeError(f"cannot convert {type(value).__name__} to {py_type.__name__}")


def _convert(value: Any, field: ColumnField, descriptor: EntityDescriptor) -> Any:
    try:
        return convert_value(value, field.type)
    except (TypeError, ValueError, ArithmeticError) as e:
        raise MappingError(
            f"Cannot convert {value!r} to {getattr(field.type, '__name__', field.type)}",
            entity=descriptor.name,
            column=field.column,
            cause=e,
        ) from e


def decode_row(
    descriptor: EntityDescriptor,
    index: dict[str, int],
    row: Sequence[Any],
    prefix: str = "",
) -> Any:
    """
    Build one entity from a row.

    Args:
        descriptor: Entity to build
        index: ``{column name: position}`` of the row
        row: Row values
        prefix: Column-name prefix (joined relations use ``<relation>__``)

    Raises:
        MappingError: Required column absent or value not convertible
    """
    top: dict[str, Any] = {}
    nested: dict[str, dict[str, Any]] = {attr: {} for attr in descriptor.embedded}

    for field in descriptor.fields:
        key = prefix + field.column
        if key not in index:
            if field.required:
                raise MappingError(
                    "Required column missing from result", entity=descriptor.name, column=key
                )
            continue
        value = _convert(row[index[key]], field, descriptor)
        if len(field.path) == 2:
            nested[field.path[0]][field.path[1]] = value
        else:
            top[field.path[0]] = value

    for attr, embedded_cls in descriptor.embedded.items():
        if nested[attr]:
            try:
                top[attr] = embedded_cls(**nested[attr])
            except TypeError as e:
                raise MappingError(
                    f"Cannot build embedded {embedded_cls.__name__}",
                    entity=descriptor.name,
                    cause=e,
                ) from e

    try:
        return descriptor.cls(**top)
    except TypeError as e:
        raise MappingError(
            f"Cannot build {descriptor.name} from row", entity=descriptor.name, cause=e
        ) from e


def decode(descriptor: EntityDescriptor, rowset: RowSet, prefix: str = "") -> list[Any]:
    """Decode every row of ``rowset`` into entities."""
    index = {name: i for i, name in enumerate(rowset.columns)}
    return [decode_row(descriptor, index, row, prefix) for row in rowset.rows]


def scan(rowset: RowSet, cls: type, registry: Registry | None = None) -> list[Any]:
    """
    Decode rows into ``cls``.

    Registered entities decode through their descriptor. Other dataclasses
    are filled by matching column names to field names; ``dict`` yields
    plain dicts.
    """
    if cls is dict:
        return rowset.as_dicts()
    if registry is not None and cls in registry:
        return decode(registry.get(cls), rowset)
    if not dataclasses.is_dataclass(cls):
        raise MappingError(f"Cannot scan into {cls.__name__}; use a dataclass or dict")

    hints = typing.get_type_hints(cls)
    fields = dataclasses.fields(cls)
    index = {name: i for i, name in enumerate(rowset.columns)}
    results = []
    for row in rowset.rows:
        kwargs: dict[str, Any] = {}
        for f in fields:
            if f.name not in index:
                continue
            value = row[index[f.name]]
            try:
                kwargs[f.name] = convert_value(value, unwrap_type(hints.get(f.name)))
            except (TypeError, ValueError, ArithmeticError) as e:
                raise MappingError(
                    f"Cannot convert {value!r}", entity=cls.__name__, column=f.name, cause=e
                ) from e
        try:
            results.append(cls(**kwargs))
        except TypeError as e:
            raise MappingError(
                f"Cannot build {cls.__name__} from row", entity=cls.__name__, cause=e
            ) from e
    return results


def encode(
    entity: Any,
    descriptor: EntityDescriptor,
    mode: str,
    now: datetime,
) -> list[tuple[str, Any]]:
    """
    Column/value pairs to write for ``entity``.

    ``create`` skips unset auto-increment keys and stamps zero-valued
    create/update-time fields; ``update`` skips primary keys and always
    stamps update-time fields. Stamped values are written back onto the
    entity.
    """
    pairs: list[tuple[str, Any]] = []
    for field in descriptor.fields:
        if not field.writable(mode):
            continue
        if mode == CREATE:
            if field.auto_increment and is_zero(field.get(entity)):
                continue
            if (field.auto_create_time or field.auto_update_time) and is_zero(field.get(entity)):
                field.set(entity, now)
        else:
            if field.primary_key:
                continue
            if field.auto_update_time:
                field.set(entity, now)
        pairs.append((field.column, field.get(entity)))
    return pairs


def non_zero_values(entity: Any, descriptor: EntityDescriptor) -> list[tuple[str, Any]]:
    """Column/value pairs of every mapped field holding a non-zero value."""
    return [
        (field.column, value)
        for field in descriptor.fields
        if not is_zero(value := field.get(entity))
    ]
