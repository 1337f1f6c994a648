"""
Configuration models.

Provides Pydantic models for rowmap configuration with validation.
"""

from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict, Field, field_validator

from .base import RowmapBaseModel

LogLevel = Literal["debug", "info", "warning", "error"]


class ConfigBaseModel(RowmapBaseModel):
    """Base model for config sections with relaxed strict mode for TOML/env loading."""

    model_config = ConfigDict(
        strict=False,  # Allow coercion from TOML/env types
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
        use_enum_values=True,
        revalidate_instances="never",
    )


class DatabaseConfig(ConfigBaseModel):
    """Database connection section."""

    url: str | None = None
    echo: bool = False
    timeout: float | None = Field(default=30.0, gt=0)

    @field_validator("url", mode="before")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Require an SQLAlchemy-style URL (dialect[+driver]://...)."""
        if v is None or v == "":
            return None
        if "://" not in v:
            raise ValueError("database URL must look like dialect[+driver]://...")
        return v


class QueryConfig(ConfigBaseModel):
    """Query and mutation defaults."""

    batch_size: int = Field(default=100, gt=0)
    require_where: bool = True


class LoggingConfig(ConfigBaseModel):
    """Diagnostic logging section."""

    level: LogLevel = "warning"
    console: bool = False
    file: str | None = None
    slow_threshold_ms: float = Field(default=200.0, ge=0)

    @field_validator("level", mode="before")
    @classmethod
    def lower_level(cls, v: str) -> str:
        """Accept DEBUG/Info/etc."""
        return v.lower() if isinstance(v, str) else v
