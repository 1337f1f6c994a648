"""
Statement and diagnostics logging.

SQL is logged at debug level, slow statements at warning and driver failures
at error. Output goes to stderr and/or a rotating file.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, ClassVar

from .interfaces.logger import ILogger

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class RowmapLogger(ILogger):
    """ILogger over a stdlib logger with its own handlers."""

    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
    BACKUP_COUNT = 3

    LEVEL_MAP: ClassVar[dict[str, int]] = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }

    def __init__(
        self,
        name: str = "rowmap",
        level: str = "warning",
        console_enabled: bool = True,
        file_path: Path | None = None,
    ) -> None:
        """
        Args:
            name: Logger name
            level: Initial level (debug, info, warning, error)
            console_enabled: Write to stderr
            file_path: Also write to this file, rotated at MAX_FILE_SIZE
        """
        self._logger = logging.getLogger(name)
        self._logger.setLevel(logging.DEBUG)  # handlers filter
        self._logger.handlers.clear()
        self._logger.propagate = False
        self._handlers: list[logging.Handler] = []

        if console_enabled:
            self._add_handler(logging.StreamHandler(sys.stderr))
        if file_path is not None:
            file_path = Path(file_path)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            self._add_handler(
                RotatingFileHandler(
                    file_path, maxBytes=self.MAX_FILE_SIZE, backupCount=self.BACKUP_COUNT
                )
            )
        self.set_level(level)

    def _add_handler(self, handler: logging.Handler) -> None:
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        self._logger.addHandler(handler)
        self._handlers.append(handler)

    @property
    def handlers(self) -> list[logging.Handler]:
        return list(self._handlers)

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.error(message, *args, **kwargs)

    def set_level(self, level: str) -> None:
        """Apply ``level`` to every handler; unknown names mean warning."""
        numeric = self.LEVEL_MAP.get(level.lower(), logging.WARNING)
        for handler in self._handlers:
            handler.setLevel(numeric)


class NullLogger(ILogger):
    """Discards everything."""

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        pass

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        pass

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        pass

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        pass

    def set_level(self, level: str) -> None:
        pass


def create_logger(config) -> ILogger:
    """
    Build a logger from a LoggingConfig section.

    Returns NullLogger when both console and file output are off.
    """
    if not config.console and not config.file:
        return NullLogger()
    return RowmapLogger(
        level=config.level,
        console_enabled=config.console,
        file_path=Path(config.file) if config.file else None,
    )
