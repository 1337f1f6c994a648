"""
Pydantic Settings for rowmap configuration.

Provides settings loading from TOML files, environment variables, a .env
file, and defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from .exceptions import ConfigFileError
from .models.config import DatabaseConfig, LoggingConfig, QueryConfig


def find_config_file(start_dir: str | None = None) -> Path | None:
    """
    Find .rowmap/config.toml by walking up from start_dir (or cwd).

    A pyproject.toml with a [tool.rowmap] table also counts.

    Returns:
        Path to config file, or None if not found.
    """
    start = Path(start_dir) if start_dir else Path.cwd()

    for parent in [start, *list(start.parents)]:
        config_path = parent / ".rowmap" / "config.toml"
        if config_path.exists():
            return config_path

        pyproject = parent / "pyproject.toml"
        if pyproject.exists():
            try:
                with open(pyproject, "rb") as f:
                    data = tomllib.load(f)
            except (tomllib.TOMLDecodeError, OSError):
                # Someone else's broken pyproject is not our config file
                continue
            if "rowmap" in data.get("tool", {}):
                return pyproject

    return None


class TomlConfigSource(PydanticBaseSettingsSource):
    """Settings source that loads from .rowmap/config.toml or pyproject.toml."""

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        config_path: Path | None = None,
        start_dir: str | None = None,
    ):
        super().__init__(settings_cls)
        self._config_path = config_path
        self._start_dir = start_dir
        self._data: dict[str, Any] | None = None

    def _load_toml(self) -> dict[str, Any]:
        """Load and cache TOML data."""
        if self._data is not None:
            return self._data

        self._data = {}

        path = self._config_path
        if path is None:
            path = find_config_file(self._start_dir)

        if path is None:
            return self._data

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigFileError(
                "Failed to parse config file", file_path=str(path), cause=e
            ) from e
        except OSError as e:
            raise ConfigFileError(
                "Failed to read config file", file_path=str(path), cause=e
            ) from e

        if path.name == "pyproject.toml":
            data = data.get("tool", {}).get("rowmap", {})

        self._data = data
        return self._data

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Get field value from TOML data."""
        data = self._load_toml()
        return data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return all TOML data for settings initialization."""
        return dict(self._load_toml())


class RowmapSettings(BaseSettings):
    """Rowmap configuration settings.

    Priority (highest to lowest):
    1. Explicit init values
    2. Environment variables (ROWMAP_<section>__<field>)
    3. .env file in the working directory
    4. TOML config file (.rowmap/config.toml or pyproject.toml [tool.rowmap])
    5. Model defaults
    """

    model_config = {
        "env_prefix": "ROWMAP_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "extra": "ignore",
    }

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Plain DB=<url>, as written in older .env files
    legacy_db_url: str | None = Field(default=None, validation_alias="DB", exclude=True)

    @model_validator(mode="after")
    def apply_legacy_db_url(self) -> RowmapSettings:
        """Fill database.url from DB when nothing more specific set it."""
        if self.database.url is None and self.legacy_db_url:
            self.database.url = self.legacy_db_url
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Add TOML loading below environment and .env.

        Note: config_path/start_dir cannot be passed through here, so
        load_settings() hands them over in module-level variables.
        """
        toml_source = TomlConfigSource(
            settings_cls,
            config_path=_current_config_path,
            start_dir=_current_start_dir,
        )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            toml_source,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to a plain dict (for display)."""
        return {
            "database": self.database.model_dump(),
            "query": self.query.model_dump(),
            "logging": self.logging.model_dump(),
        }


# Module-level variables for passing to settings_customise_sources
_current_config_path: Path | None = None
_current_start_dir: str | None = None


def load_settings(
    config_path: Path | None = None, start_dir: str | None = None, **overrides: Any
) -> RowmapSettings:
    """Load rowmap settings from config file, .env and environment.

    Args:
        config_path: Explicit path to config file
        start_dir: Directory to start searching from (if config_path not given)
        **overrides: Explicit section values (highest priority)

    Returns:
        RowmapSettings instance with all sources merged
    """
    global _current_config_path, _current_start_dir

    _current_config_path = config_path
    _current_start_dir = start_dir

    try:
        return RowmapSettings(**overrides)
    finally:
        _current_config_path = None
        _current_start_dir = None
