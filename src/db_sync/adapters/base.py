"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that the introspector, reconciler
and orchestrator depend on.  All I/O methods are ``async def``.

Usage:
    from db_sync.adapters.base import DatabaseClient

    async def do_work(client: DatabaseClient) -> None:
        rows = await client.select("users", ["id", "name"], order_by="id")
        async with client.transaction() as conn:
            await client.insert("users", {"id": 7, "name": "Alice"}, conn=conn)
        await client.close()
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncConnection


class DatabaseClient(Protocol):
    """Database client interface for one SQLite database.

    Methods that write accept an optional ``conn`` obtained from
    ``transaction()``.  Without one, each call runs in its own transaction.
    """

    label: str

    async def fetch_all(
        self, sql: str, params: dict[str, Any] | None = None
    ) -> list[dict]:
        """Run a read-only SQL query and return its rows as dicts.

        Used for catalog queries.  Values are always passed as bound
        parameters (``:name`` placeholders).
        """
        ...

    async def select(
        self,
        table: str,
        columns: list[str],
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select the given columns of a table's rows.

        Args:
            table: Table name (quoted by the adapter, never interpolated).
            columns: Column names to select.
            filters: Optional ``{column: value}`` equality conditions, all
                of which must match.  Compared by SQLite, so the column's
                collation applies.
            order_by: Optional column name to sort by.

        Returns:
            List of dicts, one per row.  Empty list if nothing matches.
        """
        ...

    async def insert(
        self,
        table: str,
        data: dict[str, Any],
        conn: AsyncConnection | None = None,
    ) -> None:
        """Insert one row.

        Raises:
            sqlalchemy.exc.SQLAlchemyError: On constraint violations.
        """
        ...

    async def update(
        self,
        table: str,
        data: dict[str, Any],
        filters: dict[str, Any],
        conn: AsyncConnection | None = None,
    ) -> int:
        """Update rows matching all ``filters`` and return the row count."""
        ...

    async def execute(self, sql: str, conn: AsyncConnection | None = None) -> None:
        """Execute a raw SQL statement (DDL) verbatim."""
        ...

    async def table_exists(self, table: str) -> bool:
        """Probe-read the table; False if the read fails."""
        ...

    def transaction(self) -> AbstractAsyncContextManager[AsyncConnection]:
        """Scoped transaction: commits on success, rolls back on error.

        The yielded connection supports ``begin_nested()`` (SAVEPOINT).
        """
        ...

    async def close(self) -> None:
        """Close the connection and release resources."""
        ...
