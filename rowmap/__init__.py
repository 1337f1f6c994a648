"""
rowmap: a small data-access core for relational databases.

Entities are dataclasses registered with explicit column and relation
declarations; a Database runs fluent queries, mutations and transactions
against them.
"""

from .core.exceptions import (
    ConstraintError,
    DatabaseConnectionError,
    DatabaseQueryError,
    MappingError,
    MissingWhereClauseError,
    RecordNotFoundError,
    RowmapException,
    TransactionError,
)
from .db import (
    Database,
    Model,
    OnConflict,
    Registry,
    Transaction,
    WriteMode,
    belongs_to,
    column,
    embedded,
    has_many,
    has_one,
    ignored,
    model_columns,
)

__version__ = "0.1.0"

__all__ = [
    "ConstraintError",
    "Database",
    "DatabaseConnectionError",
    "DatabaseQueryError",
    "MappingError",
    "MissingWhereClauseError",
    "Model",
    "OnConflict",
    "RecordNotFoundError",
    "Registry",
    "RowmapException",
    "Transaction",
    "TransactionError",
    "WriteMode",
    "__version__",
    "belongs_to",
    "column",
    "embedded",
    "has_many",
    "has_one",
    "ignored",
    "model_columns",
]
