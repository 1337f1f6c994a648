"""
Pydantic models for rowmap configuration.
"""

from .base import RowmapBaseModel
from .config import ConfigBaseModel, DatabaseConfig, LoggingConfig, QueryConfig

__all__ = [
    "ConfigBaseModel",
    "DatabaseConfig",
    "LoggingConfig",
    "QueryConfig",
    "RowmapBaseModel",
]
