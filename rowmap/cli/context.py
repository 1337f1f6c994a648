"""
Click context extension for rowmap CLI.

Provides RowmapContext dataclass that holds rowmap-specific data
passed through the Click command chain via ctx.obj.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError

from ..core.exceptions import RowmapConfigError
from ..core.settings import RowmapSettings, load_settings
from ..db import Database, Registry


@dataclass
class RowmapContext:
    """Extended context passed through Click command chain.

    Attributes:
        cwd: Current working directory
        settings: Resolved settings (file, environment, .env, CLI overrides)
        config_path: Explicit config file given with --config
    """

    cwd: Path
    settings: RowmapSettings
    config_path: Path | None = None

    @classmethod
    def create(
        cls,
        config_path: Path | None = None,
        url: str | None = None,
        verbose: bool = False,
        cwd: Path | None = None,
    ) -> RowmapContext:
        """Create a RowmapContext for the current environment.

        Args:
            config_path: Explicit config file
            url: Database URL overriding every other source
            verbose: Log statements at debug level to stderr
            cwd: Working directory override (defaults to Path.cwd())

        Raises:
            click.ClickException: If the configuration cannot be loaded
        """
        if cwd is None:
            cwd = Path.cwd()

        overrides: dict[str, Any] = {}
        if url:
            overrides["database"] = {"url": url}
        if verbose:
            overrides["logging"] = {"console": True, "level": "debug"}

        try:
            settings = load_settings(config_path=config_path, start_dir=str(cwd), **overrides)
        except (RowmapConfigError, ValidationError) as e:
            raise click.ClickException(f"Invalid configuration: {e}") from e

        return cls(cwd=cwd, settings=settings, config_path=config_path)

    @property
    def has_database_url(self) -> bool:
        return bool(self.settings.database.url)

    def open_database(self) -> Database:
        """Connect with the resolved settings; raw statements need no entities."""
        return Database.from_settings(Registry(), self.settings)
