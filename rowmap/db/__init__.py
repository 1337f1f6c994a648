"""
Rowmap data-access layer.

- Engine: connection handle over an SQLAlchemy engine (driver boundary only)
- Dialect: quoting, placeholders, upsert and lock syntax per backend
- Descriptor: explicit entity registration
- Mapper: entity <-> row conversion
- Conditions / Statement: condition trees and SQL compilation
- Query: fluent builder with find/first/last/take/count/pluck
- Mutation: create, batch create, save, update, delete
- Associations: preload, join, cascading writes
- Transaction: transaction() coordinator, manual begin/commit/rollback

Usage:
    from rowmap.db import Database, Registry

    with Database.open("sqlite:///app.db", registry) as db:
        users = db.model(User).where({"age": 18}).preload("wallet").find()
"""

from .conditions import (
    And,
    Comparison,
    Condition,
    Not,
    Or,
    Raw,
    eq,
    ge,
    gt,
    in_,
    is_null,
    le,
    like,
    lt,
    ne,
    not_in,
    not_null,
    raw,
)
from .database import Database
from .descriptor import (
    EntityDescriptor,
    Model,
    Registry,
    RelationKind,
    WriteMode,
    belongs_to,
    column,
    embedded,
    has_many,
    has_one,
    ignored,
    model_columns,
)
from .engine import Connection, RowSet, open_connection
from .query import Query
from .session import RawResult, Session
from .statement import OnConflict
from .transaction import Transaction, TransactionState

__all__ = [
    "And",
    "Comparison",
    "Condition",
    "Connection",
    "Database",
    "EntityDescriptor",
    "Model",
    "Not",
    "OnConflict",
    "Or",
    "Query",
    "Raw",
    "RawResult",
    "Registry",
    "RelationKind",
    "RowSet",
    "Session",
    "Transaction",
    "TransactionState",
    "WriteMode",
    "belongs_to",
    "column",
    "embedded",
    "eq",
    "ge",
    "gt",
    "has_many",
    "has_one",
    "ignored",
    "in_",
    "is_null",
    "le",
    "like",
    "lt",
    "model_columns",
    "ne",
    "not_in",
    "not_null",
    "open_connection",
    "raw",
]
