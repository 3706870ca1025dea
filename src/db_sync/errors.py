"""Exceptions raised while syncing two SQLite databases.

All exceptions inherit from ``SyncError`` and carry a ``context`` dict
(table, key, operation, ...) that is appended to ``str(exc)``.

Scope of each failure:

- ``IntrospectionError``: fatal, aborts the whole run.
- ``ClassificationPolicyViolation``: informational, describes a skipped table.
- ``TableSyncError`` subclasses: abort one table only.
- ``RowApplyError``: aborts one row only.
"""

from typing import Any


class SyncError(Exception):
    """Base exception for all db_sync errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message


class ConfigError(SyncError):
    """Raised when the sync config file cannot be parsed or validated."""


class IntrospectionError(SyncError):
    """Raised when a database catalog cannot be read.

    Fatal for the run: neither database has been touched yet.
    """

    def __init__(
        self,
        message: str,
        database: str | None = None,
        operation: str | None = None,
        table: str | None = None,
    ) -> None:
        context: dict[str, Any] = {}
        if database is not None:
            context["database"] = database
        if operation is not None:
            context["operation"] = operation
        if table is not None:
            context["table"] = table
        super().__init__(message, context=context)
        self.database = database
        self.operation = operation
        self.table = table


class ClassificationPolicyViolation(SyncError):
    """A table that cannot take part in the sync (uncommon or no usable key).

    Never raised by the library; built by the orchestrator to describe
    skipped tables in logs and reports.
    """

    def __init__(self, table: str, reason: str, details: str) -> None:
        super().__init__(details, context={"table": table, "reason": reason})
        self.table = table
        self.reason = reason


class TableSyncError(SyncError):
    """Base class for failures that abort a single table's reconciliation."""

    def __init__(
        self, message: str, table: str, operation: str | None = None
    ) -> None:
        context: dict[str, Any] = {"table": table}
        if operation is not None:
            context["operation"] = operation
        super().__init__(message, context=context)
        self.table = table
        self.operation = operation


class DestinationCreateError(TableSyncError):
    """Raised when the table's CREATE statement fails on the destination."""

    def __init__(self, table: str, reason: str) -> None:
        super().__init__(
            f"Failed to create table in destination: {reason}",
            table=table,
            operation="create_table",
        )
        self.reason = reason


class TableReadError(TableSyncError):
    """Raised when a table's rows cannot be read from one side."""

    def __init__(self, table: str, side: str, reason: str) -> None:
        super().__init__(
            f"Failed to read rows from {side}: {reason}",
            table=table,
            operation="read_rows",
        )
        self.context["side"] = side
        self.side = side
        self.reason = reason


class MissingTimestampColumn(TableSyncError):
    """Raised when a table has no column to decide which write was last.

    This is a policy violation rather than a technical failure: the table
    has a usable key but last-write-wins has no defined ordering for it.
    """

    def __init__(self, table: str, column: str, side: str) -> None:
        super().__init__(
            f"Table has no '{column}' column on the {side}; "
            f"last-write-wins cannot order its rows",
            table=table,
            operation="check_timestamp",
        )
        self.context["column"] = column
        self.context["side"] = side
        self.column = column
        self.side = side


class RowApplyError(SyncError):
    """Raised when a single row's insert or update fails.

    The row is skipped; the rest of the table continues.
    """

    def __init__(
        self,
        message: str,
        table: str,
        key: Any,
        action: str,
        side: str,
    ) -> None:
        super().__init__(
            message,
            context={"table": table, "key": key, "action": action, "side": side},
        )
        self.table = table
        self.key = key
        self.action = action
        self.side = side
