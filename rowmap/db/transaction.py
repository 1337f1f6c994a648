"""
Transactions.

``Session.transaction(fn)`` is the usual entry point:

    def transfer(tx):
        tx.model(Wallet).where({"user_id": "alice"}).update("balance", 90)
        tx.model(Wallet).where({"user_id": "bob"}).update("balance", 110)

    db.transaction(transfer)

Anything ``fn`` raises (KeyboardInterrupt included) rolls back and
propagates unchanged. Called on a ``Transaction``, ``transaction()`` and
``begin()`` open savepoints.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any, TypeVar

from ..core.exceptions import TransactionError
from .engine import RowSet, TxHandle
from .session import Session

T = TypeVar("T")


class TransactionState(str, Enum):
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class Transaction(Session):
    """
    A session bound to an open transaction or savepoint.

    Usage:
        with db.begin() as tx:
            tx.create(user)
            tx.commit()

    Leaving the block, or dropping the object, without commit() rolls back.
    """

    def __init__(self, parent: Session, handle: TxHandle, *, nested: bool = False) -> None:
        super().__init__(
            parent.connection,
            parent.registry,
            logger=parent.logger,
            batch_size=parent.batch_size,
            require_where=parent.require_where,
            now=parent._now,
        )
        self._handle = handle
        self.nested = nested
        self._state = TransactionState.ACTIVE

    def __repr__(self) -> str:
        kind = "savepoint" if self.nested else "transaction"
        return f"<Transaction {kind} {self._state.value}>"

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is TransactionState.ACTIVE

    def _require_active(self) -> None:
        if self._state is not TransactionState.ACTIVE:
            raise TransactionError(f"Transaction is already {self._state.value}")

    def execute(self, sql: str, params: Sequence[Any] = ()) -> RowSet:
        self._require_active()
        return super().execute(sql, params)

    def commit(self) -> None:
        """
        Commit. A second commit is a no-op.

        Raises:
            TransactionError: If the transaction was rolled back
        """
        if self._state is TransactionState.COMMITTED:
            return
        if self._state is TransactionState.ROLLED_BACK:
            raise TransactionError("Cannot commit a transaction that was rolled back")
        self._handle.commit()
        self._state = TransactionState.COMMITTED

    def rollback(self) -> None:
        """Roll back. A no-op after commit or a previous rollback."""
        if self._state is not TransactionState.ACTIVE:
            return
        self._handle.rollback()
        self._state = TransactionState.ROLLED_BACK

    def begin(self) -> Transaction:
        """Open a savepoint inside this transaction."""
        self._require_active()
        return Transaction(self, self.connection.begin_nested(), nested=True)

    def __enter__(self) -> Transaction:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._state is not TransactionState.ACTIVE:
            return
        if exc_type is None:
            self.logger.warning("Transaction left without commit(); rolling back")
        self.rollback()

    def __del__(self) -> None:
        if getattr(self, "_state", None) is not TransactionState.ACTIVE:
            return
        if self.connection.closed or not self._handle.is_active:
            return
        self.logger.warning("Transaction discarded without commit() or rollback(); rolling back")
        self.rollback()


def run_in_transaction(session: Session, fn: Callable[[Transaction], T]) -> T:
    """
    Call ``fn`` inside a new transaction (a savepoint when ``session`` is one).

    Raises:
        Whatever ``fn`` raised, after rolling back.
        TransactionError: If the rollback itself failed; carries both errors.
    """
    tx = session.begin()
    try:
        result = fn(tx)
        tx.commit()
    except BaseException as error:
        try:
            tx.rollback()
        except Exception as rollback_error:
            session.logger.error("Rollback failed after %r: %s", error, rollback_error)
            raise TransactionError(
                "Rollback failed after an error in the transaction",
                original=error,
                rollback_error=rollback_error,
            ) from error
        session.logger.debug("Transaction rolled back after %s", type(error).__name__)
        raise
    return result
