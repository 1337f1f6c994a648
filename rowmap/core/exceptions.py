"""
Custom exception hierarchy for rowmap.

Every failure surfaced by the data-access core is one of these types, so
callers can tell a broken connection from a bad statement, a constraint
violation, a decoding problem, or an empty result.
"""

from __future__ import annotations


class RowmapException(Exception):
    """
    Base exception for all rowmap errors.

    Attributes:
        message: Human-readable error description
        context: Additional debugging context (table, sql, column, etc.)
        exit_code: Suggested exit code for CLI (default: 1)
        recoverable: Whether retry/recovery may be possible
    """

    exit_code: int = 1
    recoverable: bool = True

    def __init__(
        self,
        message: str,
        *,
        context: dict | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.message = message
        self.context = context or {}
        if cause is not None:
            self.__cause__ = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class RowmapConfigError(RowmapException):
    """Base class for configuration-related errors."""

    pass


class ConfigFileError(RowmapConfigError):
    """
    Error reading or parsing a configuration file.

    Raised for TOML parsing errors, permission errors, etc.
    """

    def __init__(
        self,
        message: str,
        *,
        file_path: str | None = None,
        context: dict | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or {}
        if file_path:
            ctx["file_path"] = file_path
        super().__init__(message, context=ctx, cause=cause)


class ConfigValidationError(RowmapConfigError, ValueError):
    """
    Invalid or missing configuration value.

    Inherits from ValueError so callers catching ValueError still work.
    """

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        value: str | None = None,
        context: dict | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or {}
        if key:
            ctx["key"] = key
        if value is not None:
            ctx["value"] = value
        super().__init__(message, context=ctx, cause=cause)


# =============================================================================
# Database Errors
# =============================================================================


class RowmapDatabaseError(RowmapException):
    """Base class for database-related errors."""

    pass


class DatabaseConnectionError(RowmapDatabaseError):
    """
    Error opening or using the database connection.

    Raised when the URL is invalid, the driver is missing, the server cannot
    be reached, or an operation is attempted on a closed connection.
    Never retried internally.
    """

    recoverable: bool = False

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        context: dict | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or {}
        if url:
            ctx["url"] = url
        super().__init__(message, context=ctx, cause=cause)


class DatabaseQueryError(RowmapDatabaseError):
    """
    Malformed statement or driver-reported failure while executing it.
    """

    def __init__(
        self,
        message: str,
        *,
        sql: str | None = None,
        context: dict | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or {}
        if sql:
            ctx["sql"] = sql
        super().__init__(message, context=ctx, cause=cause)
        self.sql = sql


class ConstraintError(DatabaseQueryError):
    """
    Primary-key, unique, foreign-key or not-null violation on write.
    """

    pass


class MissingWhereClauseError(DatabaseQueryError):
    """
    An update or delete was issued without any condition.

    Pass ``allow_global=True`` to the operation to touch every row on purpose.
    """

    recoverable: bool = False


class MappingError(RowmapDatabaseError):
    """
    A row could not be decoded into an entity.

    Raised when a required column is absent or a value cannot be converted
    to the field's type.
    """

    def __init__(
        self,
        message: str,
        *,
        entity: str | None = None,
        column: str | None = None,
        context: dict | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or {}
        if entity:
            ctx["entity"] = entity
        if column:
            ctx["column"] = column
        super().__init__(message, context=ctx, cause=cause)


class RecordNotFoundError(RowmapDatabaseError):
    """
    Zero rows where exactly one was required (first/last/take/scan_one).
    """

    def __init__(
        self,
        message: str = "record not found",
        *,
        table: str | None = None,
        context: dict | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or {}
        if table:
            ctx["table"] = table
        super().__init__(message, context=ctx, cause=cause)


class TransactionError(RowmapDatabaseError):
    """
    Transaction lifecycle misuse, or a rollback that failed.

    When a rollback fails after an operation failure, both errors are
    available: ``original`` is what the wrapped code raised and
    ``rollback_error`` is what the rollback raised.
    """

    def __init__(
        self,
        message: str,
        *,
        original: BaseException | None = None,
        rollback_error: BaseException | None = None,
        context: dict | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or {}
        if original is not None:
            ctx["original"] = repr(original)
        if rollback_error is not None:
            ctx["rollback_error"] = repr(rollback_error)
        super().__init__(message, context=ctx, cause=cause or original)
        self.original = original
        self.rollback_error = rollback_error


# =============================================================================
# Validation Errors
# =============================================================================


class RowmapValidationError(RowmapException, ValueError):
    """
    Base class for invalid arguments to the public API.

    Inherits from ValueError so callers catching ValueError still work.
    """

    pass


class DescriptorError(RowmapValidationError):
    """
    Invalid entity declaration or reference to an undeclared entity/relation.
    """

    def __init__(
        self,
        message: str,
        *,
        entity: str | None = None,
        context: dict | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or {}
        if entity:
            ctx["entity"] = entity
        super().__init__(message, context=ctx, cause=cause)
