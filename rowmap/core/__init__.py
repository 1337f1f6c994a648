"""
Core infrastructure for rowmap.

This module provides:
- Custom exception hierarchy
- Settings loading (TOML, environment, .env)
- Logger interface and implementations
"""

from .exceptions import (
    ConfigFileError,
    ConfigValidationError,
    ConstraintError,
    DatabaseConnectionError,
    DatabaseQueryError,
    DescriptorError,
    MappingError,
    MissingWhereClauseError,
    RecordNotFoundError,
    RowmapConfigError,
    RowmapDatabaseError,
    RowmapException,
    RowmapValidationError,
    TransactionError,
)
from .log import NullLogger, RowmapLogger, create_logger
from .settings import RowmapSettings, load_settings

__all__ = [
    "ConfigFileError",
    "ConfigValidationError",
    "ConstraintError",
    "DatabaseConnectionError",
    "DatabaseQueryError",
    "DescriptorError",
    "MappingError",
    "MissingWhereClauseError",
    "NullLogger",
    "RecordNotFoundError",
    "RowmapConfigError",
    "RowmapDatabaseError",
    "RowmapException",
    "RowmapLogger",
    "RowmapSettings",
    "RowmapValidationError",
    "TransactionError",
    "create_logger",
    "load_settings",
]
