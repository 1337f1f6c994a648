"""
Database: a session that owns its connection.

Usage:
    registry = Registry()
    registry.register(User, table="users", fields=[...])

    with Database.open("sqlite:///app.db", registry) as db:
        db.create(user)
        adults = db.model(User).where("age >= ?", 18).find()

    # Or from .rowmap/config.toml / ROWMAP_* / .env:
    with Database.from_settings(registry) as db:
        ...
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from ..core.exceptions import ConfigValidationError
from ..core.interfaces.logger import ILogger
from ..core.log import NullLogger, create_logger
from ..core.settings import RowmapSettings, load_settings
from .descriptor import Registry
from .engine import open_connection
from .session import Session


class Database(Session):
    """Connected session; close() releases the connection."""

    @classmethod
    def open(
        cls,
        url: str,
        registry: Registry,
        *,
        timeout: float | None = None,
        echo: bool = False,
        logger: ILogger | None = None,
        batch_size: int = 100,
        require_where: bool = True,
        slow_threshold_ms: float = 200.0,
        now: Callable[[], datetime] | None = None,
    ) -> Database:
        """
        Connect to ``url``.

        Raises:
            DatabaseConnectionError: If the database cannot be reached
        """
        logger = logger or NullLogger()
        connection = open_connection(
            url,
            timeout=timeout,
            echo=echo,
            logger=logger,
            slow_threshold_ms=slow_threshold_ms,
        )
        logger.info("Connected to %s (%s)", connection.url, connection.dialect.name)
        return cls(
            connection,
            registry,
            logger=logger,
            batch_size=batch_size,
            require_where=require_where,
            now=now,
        )

    @classmethod
    def from_settings(
        cls,
        registry: Registry,
        settings: RowmapSettings | None = None,
        *,
        logger: ILogger | None = None,
    ) -> Database:
        """
        Connect using loaded settings (``load_settings()`` when not given).

        Raises:
            ConfigValidationError: If no database URL is configured
            DatabaseConnectionError: If the database cannot be reached
        """
        settings = settings or load_settings()
        if not settings.database.url:
            raise ConfigValidationError(
                "No database URL configured; set database.url, ROWMAP_DATABASE__URL or DB",
                key="database.url",
            )
        return cls.open(
            settings.database.url,
            registry,
            timeout=settings.database.timeout,
            echo=settings.database.echo,
            logger=logger or create_logger(settings.logging),
            batch_size=settings.query.batch_size,
            require_where=settings.query.require_where,
            slow_threshold_ms=settings.logging.slow_threshold_ms,
        )

    def ping(self) -> bool:
        """Round-trip a trivial statement."""
        self.execute("SELECT 1")
        return True

    def close(self) -> None:
        self.connection.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
