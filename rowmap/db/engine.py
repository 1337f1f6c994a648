"""
Connection management.

Wraps an SQLAlchemy engine used purely as a DBAPI driver: rowmap renders
its own SQL and hands it to ``exec_driver_sql``. One ``Connection`` owns one
database handle.
"""

from __future__ import annotations

import time
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine, make_url

from ..core.exceptions import (
    ConstraintError,
    DatabaseConnectionError,
    DatabaseQueryError,
    TransactionError,
)
from ..core.interfaces.logger import ILogger
from ..core.log import NullLogger
from .dialect import Dialect, dialect_for


@dataclass
class RowSet:
    """Result of one statement: column names, row tuples and counters."""

    columns: list[str] = field(default_factory=list)
    rows: list[tuple] = field(default_factory=list)
    rowcount: int = -1
    lastrowid: Any = None

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[tuple]:
        return iter(self.rows)

    def as_dicts(self) -> list[dict[str, Any]]:
        """Rows as ``{column: value}`` dicts."""
        return [dict(zip(self.columns, row)) for row in self.rows]


def _install_sqlite_hooks(engine: Engine) -> None:
    """Enable foreign keys and let SQLAlchemy drive BEGIN/SAVEPOINT.

    pysqlite opens transactions on its own and breaks savepoints; turning
    its transaction handling off and emitting BEGIN from the "begin" event
    gives sqlite the same transaction semantics as other backends.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_rowmap_engine(url: str, *, timeout: float | None = None, echo: bool = False) -> Engine:
    """
    Create the SQLAlchemy engine for a database URL.

    Args:
        url: SQLAlchemy URL, e.g. ``sqlite:///app.db`` or
            ``postgresql+psycopg2://user:pw@host/db``
        timeout: Busy timeout (sqlite) or connect timeout (servers), seconds
        echo: Let SQLAlchemy echo statements too

    Returns:
        Configured SQLAlchemy Engine
    """
    sa_url = make_url(url)
    backend = sa_url.get_backend_name()
    connect_args: dict[str, Any] = {}

    if backend == "sqlite":
        if timeout is not None:
            connect_args["timeout"] = timeout
        if sa_url.database and sa_url.database != ":memory:":
            Path(sa_url.database).parent.mkdir(parents=True, exist_ok=True)
    elif timeout is not None and backend in ("postgresql", "mysql", "mariadb"):
        connect_args["connect_timeout"] = int(timeout)

    engine = create_engine(sa_url, echo=echo, connect_args=connect_args)
    if backend == "sqlite":
        _install_sqlite_hooks(engine)
    return engine


class Connection:
    """
    A single database handle.

    Statements executed while no transaction is open are committed
    immediately. Not safe for concurrent use from several threads.
    """

    def __init__(
        self,
        engine: Engine,
        logger: ILogger | None = None,
        slow_threshold_ms: float = 200.0,
    ) -> None:
        """
        Connect using the engine.

        Args:
            engine: SQLAlchemy engine (driver boundary)
            logger: Statement logger. Defaults to NullLogger.
            slow_threshold_ms: Statements slower than this log a warning
        """
        self._engine = engine
        self._logger = logger or NullLogger()
        self._slow_threshold_ms = slow_threshold_ms
        self.dialect: Dialect = dialect_for(engine.dialect)
        try:
            self._sa = engine.connect()
        except sa_exc.SQLAlchemyError as e:
            engine.dispose()
            raise DatabaseConnectionError(
                "Failed to connect to database",
                url=engine.url.render_as_string(hide_password=True),
                cause=e,
            ) from e

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def logger(self) -> ILogger:
        return self._logger

    @property
    def closed(self) -> bool:
        return self._sa.closed

    @property
    def url(self) -> str:
        return self._engine.url.render_as_string(hide_password=True)

    def _require_open(self) -> None:
        if self._sa.closed:
            raise DatabaseConnectionError("Connection is closed", url=self.url)

    def translate_error(self, error: sa_exc.SQLAlchemyError, sql: str) -> Exception:
        """Map a driver failure onto rowmap's error taxonomy."""
        detail = str(getattr(error, "orig", None) or error)
        if isinstance(error, sa_exc.IntegrityError):
            return ConstraintError(detail, sql=sql, cause=error)
        if isinstance(error, sa_exc.DBAPIError) and error.connection_invalidated:
            return DatabaseConnectionError(detail, url=self.url, cause=error)
        return DatabaseQueryError(detail, sql=sql, cause=error)

    def execute(self, sql: str, params: Sequence[Any] = ()) -> RowSet:
        """
        Execute one statement with positional ``?`` parameters.

        Args:
            sql: Statement text
            params: Parameter values, one per placeholder

        Returns:
            RowSet with fetched rows (empty for non-queries)

        Raises:
            ConstraintError: On integrity violations
            DatabaseQueryError: On any other driver failure
        """
        self._require_open()
        autocommit = not self._sa.in_transaction()
        driver_sql, driver_params = self.dialect.render(sql, params)

        started = time.perf_counter()
        try:
            result = self._sa.exec_driver_sql(driver_sql, driver_params)
            if result.returns_rows:
                rowset = RowSet(
                    columns=list(result.keys()),
                    rows=[tuple(row) for row in result.fetchall()],
                    rowcount=result.rowcount,
                )
            else:
                is_insert = sql.lstrip()[:6].upper() == "INSERT"
                rowset = RowSet(
                    rowcount=result.rowcount,
                    lastrowid=result.lastrowid if is_insert else None,
                )
            if autocommit:
                self._sa.commit()
        except BaseException as e:
            if autocommit and not self._sa.closed and self._sa.in_transaction():
                self._sa.rollback()
            elapsed_ms = (time.perf_counter() - started) * 1000
            self._logger.error("[%.3fms] %s %r failed: %s", elapsed_ms, sql, tuple(params), e)
            if isinstance(e, sa_exc.SQLAlchemyError):
                raise self.translate_error(e, sql) from e
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        affected = len(rowset.rows) if result.returns_rows else rowset.rowcount
        if self._slow_threshold_ms and elapsed_ms >= self._slow_threshold_ms:
            self._logger.warning(
                "SLOW SQL >= %.0fms [%.3fms] [rows:%d] %s",
                self._slow_threshold_ms,
                elapsed_ms,
                affected,
                sql,
            )
        else:
            self._logger.debug("[%.3fms] [rows:%d] %s %r", elapsed_ms, affected, sql, tuple(params))
        return rowset

    def in_transaction(self) -> bool:
        return self._sa.in_transaction()

    def begin(self) -> TxHandle:
        """
        Open a root transaction on this connection.

        Returns:
            TxHandle with commit()/rollback()

        Raises:
            TransactionError: If a transaction is already open
        """
        self._require_open()
        if self._sa.in_transaction():
            raise TransactionError(
                "A transaction is already open on this connection; "
                "nest with tx.transaction() or tx.begin() instead"
            )
        try:
            handle = TxHandle(self, self._sa.begin(), "transaction")
        except sa_exc.SQLAlchemyError as e:
            raise self.translate_error(e, "BEGIN") from e
        self._logger.debug("BEGIN")
        return handle

    def begin_nested(self) -> TxHandle:
        """Open a savepoint inside the current transaction."""
        self._require_open()
        if not self._sa.in_transaction():
            raise TransactionError("A savepoint needs an open transaction")
        try:
            handle = TxHandle(self, self._sa.begin_nested(), "savepoint")
        except sa_exc.SQLAlchemyError as e:
            raise self.translate_error(e, "SAVEPOINT") from e
        self._logger.debug("SAVEPOINT")
        return handle

    def close(self) -> None:
        """Roll back anything left open, then release the handle."""
        if self._sa.closed:
            return
        if self._sa.in_transaction():
            self._logger.warning("Closing connection with an open transaction; rolling back")
            self._sa.rollback()
        self._sa.close()
        self._engine.dispose()


class TxHandle:
    """A root transaction or savepoint on a Connection."""

    def __init__(self, connection: Connection, sa_transaction, label: str) -> None:
        self._connection = connection
        self._sa_transaction = sa_transaction
        self.label = label

    @property
    def is_active(self) -> bool:
        return self._sa_transaction.is_active

    def commit(self) -> None:
        try:
            self._sa_transaction.commit()
        except sa_exc.SQLAlchemyError as e:
            raise self._connection.translate_error(e, f"COMMIT {self.label}") from e
        self._connection.logger.debug("COMMIT %s", self.label)

    def rollback(self) -> None:
        """Roll back; a no-op once the transaction is no longer active."""
        if not self._sa_transaction.is_active:
            return
        try:
            self._sa_transaction.rollback()
        except sa_exc.SQLAlchemyError as e:
            raise self._connection.translate_error(e, f"ROLLBACK {self.label}") from e
        self._connection.logger.debug("ROLLBACK %s", self.label)


def open_connection(
    url: str,
    *,
    timeout: float | None = None,
    echo: bool = False,
    logger: ILogger | None = None,
    slow_threshold_ms: float = 200.0,
) -> Connection:
    """
    Open a connection to the database at ``url``.

    Raises:
        DatabaseConnectionError: Invalid URL, missing driver, or failed connect
    """
    try:
        engine = create_rowmap_engine(url, timeout=timeout, echo=echo)
    except (sa_exc.SQLAlchemyError, ImportError) as e:
        raise DatabaseConnectionError("Failed to create database engine", url=url, cause=e) from e
    return Connection(engine, logger=logger, slow_threshold_ms=slow_threshold_ms)
