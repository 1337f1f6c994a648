"""
Session: the handle application code talks to.

``Database`` (a session that owns its connection) and ``Transaction`` (a
session bound to an open transaction) share this API, so code written
against a ``Session`` runs the same inside and outside transactions.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, TypeVar

from ..core.exceptions import RecordNotFoundError
from ..core.interfaces.logger import ILogger
from ..core.log import NullLogger
from . import associations, mutation
from .conditions import all_of, eq, expand_params
from .descriptor import Registry
from .dialect import Dialect
from .engine import Connection, RowSet
from .mapper import scan
from .query import Query
from .statement import OnConflict

if TYPE_CHECKING:
    from .transaction import Transaction

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RawResult:
    """
    Result of a raw SQL statement, executed on first access.

    Usage:
        total = db.raw("SELECT COUNT(*) FROM users WHERE age > ?", 18).scalar()
        rows = db.raw("SELECT name, age FROM users").scan(NameAge)
    """

    def __init__(self, session: Session, sql: str, params: Sequence[Any]) -> None:
        self._session = session
        self._sql, self._params = expand_params(sql, params)
        self._rowset: RowSet | None = None

    def rows(self) -> RowSet:
        if self._rowset is None:
            self._rowset = self._session.execute(self._sql, self._params)
        return self._rowset

    def scan(self, cls: type[T]) -> list[T]:
        """Decode every row into ``cls`` (a dataclass, registered entity or dict)."""
        return scan(self.rows(), cls, self._session.registry)

    def scan_one(self, cls: type[T]) -> T:
        """
        Decode the first row into ``cls``.

        Raises:
            RecordNotFoundError: If the statement returned no rows
        """
        results = self.scan(cls)
        if not results:
            raise RecordNotFoundError()
        return results[0]

    def scalar(self) -> Any:
        """First column of the first row, or None."""
        rows = self.rows().rows
        return rows[0][0] if rows else None


class Session:
    """Query, mutation and transaction API over one connection."""

    def __init__(
        self,
        connection: Connection,
        registry: Registry,
        *,
        logger: ILogger | None = None,
        batch_size: int = 100,
        require_where: bool = True,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Args:
            connection: Open connection
            registry: Entity descriptors
            logger: Diagnostics logger. Defaults to NullLogger.
            batch_size: Default chunk size for create_batch()
            require_where: Refuse unconditioned update/delete
            now: Clock used for auto-timestamps and soft deletes
        """
        self._connection = connection
        self._registry = registry
        self._logger = logger or NullLogger()
        self._batch_size = batch_size
        self._require_where = require_where
        self._now = now or utc_now

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def logger(self) -> ILogger:
        return self._logger

    @property
    def dialect(self) -> Dialect:
        return self._connection.dialect

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def require_where(self) -> bool:
        return self._require_where

    def now(self) -> datetime:
        return self._now()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> RowSet:
        """Run one compiled statement (``?`` placeholders, no list expansion)."""
        return self._connection.execute(sql, params)

    def in_transaction(self) -> bool:
        return self._connection.in_transaction()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def model(self, target: Any) -> Query:
        """
        Start a query on an entity class or instance.

        An instance with a primary key restricts the query to that row, and
        updates through the query are written back onto it.
        """
        if isinstance(target, type):
            return Query(self, self._registry.get(target))
        descriptor = self._registry.of(target)
        query = Query(self, descriptor, target=target)
        if descriptor.has_primary_key(target):
            keys = descriptor.key_values(target)
            query = query.where(all_of([eq(col, value) for col, value in keys.items()]))
        return query

    def find(self, cls: type[T], *condition: Any) -> list[T]:
        return self.model(cls).find(*condition)

    def first(self, cls: type[T], *condition: Any) -> T:
        return self.model(cls).first(*condition)

    def last(self, cls: type[T], *condition: Any) -> T:
        return self.model(cls).last(*condition)

    def take(self, cls: type[T], *condition: Any) -> T:
        return self.model(cls).take(*condition)

    def related(self, entity: Any, name: str) -> Any:
        """Look up relation ``name`` of ``entity`` without binding it."""
        return associations.related(self, entity, name)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create(
        self,
        value: Any,
        *,
        on_conflict: OnConflict | None = None,
        omit_associations: bool = False,
    ) -> int:
        """Insert an entity or list of entities; returns affected rows."""
        return mutation.create(
            self, value, on_conflict=on_conflict, omit_associations=omit_associations
        )

    def create_batch(
        self,
        entities: Sequence[Any],
        batch_size: int | None = None,
        *,
        on_conflict: OnConflict | None = None,
        omit_associations: bool = False,
    ) -> int:
        return mutation.create_batch(
            self,
            entities,
            batch_size,
            on_conflict=on_conflict,
            omit_associations=omit_associations,
        )

    def save(self, entity: Any, *, omit_associations: bool = False) -> int:
        return mutation.save(self, entity, omit_associations=omit_associations)

    def updates(self, target: Any, values: Mapping[str, Any] | Any, *condition: Any) -> int:
        """Shortcut for ``model(target).where(*condition).updates(values)``."""
        query = self.model(target)
        if condition:
            query = query.where(*condition)
        return query.updates(values)

    def delete(self, target: Any, *condition: Any, allow_global: bool = False) -> int:
        """
        Delete by entity instance (its primary key) and/or condition.

        Soft-deletes when the entity declares a marker column.
        """
        query = self.model(target)
        if condition:
            query = query.where(*condition)
        return query.delete(allow_global=allow_global)

    # -------------------------------------------------------------------------
    # Raw SQL
    # -------------------------------------------------------------------------

    def exec(self, sql: str, *params: Any) -> int:
        """Execute a raw statement; returns affected rows."""
        sql, flat = expand_params(sql, params)
        return self.execute(sql, flat).rowcount

    def raw(self, sql: str, *params: Any) -> RawResult:
        return RawResult(self, sql, params)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def begin(self) -> Transaction:
        """
        Open a transaction for manual commit()/rollback().

        Raises:
            TransactionError: If this connection already has one open
        """
        from .transaction import Transaction

        return Transaction(self, self._connection.begin())

    def transaction(self, fn: Callable[[Transaction], T]) -> T:
        """
        Run ``fn`` in a transaction: commit when it returns, roll back when it raises.

        Returns:
            Whatever ``fn`` returned.
        """
        from .transaction import run_in_transaction

        return run_in_transaction(self, fn)
