"""Async SQLite database adapter.

Provides ``AsyncSQLiteAdapter``, an async implementation of the
``DatabaseClient`` protocol using SQLAlchemy's async engine with the
``aiosqlite`` driver.

Table and column names are never formatted into SQL strings: statements
are built from SQLAlchemy ``table()``/``column()`` constructs, which quote
identifiers, and all values are bound parameters.

Usage:
    from db_sync.adapters.sqlite import AsyncSQLiteAdapter

    adapter = AsyncSQLiteAdapter("data/app.db")
    rows = await adapter.select("users", ["id", "name"], order_by="id")
    await adapter.close()
"""

from collections.abc import AsyncIterator, Iterable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import and_, column, event, insert, literal_column, select, table, text, update
from sqlalchemy.engine import URL
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.sql.expression import TableClause


def create_async_sqlite_engine(database_path: str | Path, **kwargs: Any) -> AsyncEngine:
    """Create an async SQLAlchemy engine for a SQLite file.

    The ``sqlite3`` module's implicit transaction handling is disabled and
    ``BEGIN`` is emitted explicitly, so that ``begin_nested()`` (SAVEPOINT)
    and transactional DDL behave as documented.

    Args:
        database_path: Path to the SQLite database file.
        **kwargs: Additional keyword arguments forwarded to
            ``create_async_engine``.

    Returns:
        Configured ``AsyncEngine``.
    """
    url = URL.create("sqlite+aiosqlite", database=str(database_path))

    defaults: dict[str, Any] = {
        "echo": False,
    }
    # Caller kwargs override defaults
    merged = {**defaults, **kwargs}

    engine = create_async_engine(url, **merged)

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def table_clause(name: str, columns: Iterable[str] = ()) -> TableClause:
    """Build a lightweight table construct for a table and some of its columns.

    Raises:
        ValueError: If a name is empty or contains a NUL character.
    """
    names = [name, *columns]
    for identifier in names:
        if not identifier or "\x00" in identifier:
            raise ValueError(f"Invalid SQL identifier: {identifier!r}")
    return table(name, *(column(col) for col in dict.fromkeys(names[1:])))


class AsyncSQLiteAdapter:
    """Async SQLite implementation of the ``DatabaseClient`` protocol.

    Args:
        database_path: Path to the SQLite database file.  The caller is
            responsible for checking that it exists -- SQLite creates
            missing files on connect.
        label: Name used in log messages and errors (defaults to the path).
        **engine_kwargs: Additional keyword arguments forwarded to
            ``create_async_sqlite_engine``.

    Example:
        adapter = AsyncSQLiteAdapter("replica.db", label="destination")
        async with adapter.transaction() as conn:
            await adapter.insert("users", {"id": 1, "name": "Ada"}, conn=conn)
        await adapter.close()
    """

    def __init__(
        self,
        database_path: str | Path,
        label: str | None = None,
        **engine_kwargs: Any,
    ) -> None:
        self.database_path = Path(database_path)
        self.label = label or str(database_path)
        self._engine: AsyncEngine = create_async_sqlite_engine(
            self.database_path, **engine_kwargs
        )

    # ------------------------------------------------------------------
    # Query Methods
    # ------------------------------------------------------------------

    async def fetch_all(
        self, sql: str, params: dict[str, Any] | None = None
    ) -> list[dict]:
        """Run a read-only query and return rows as dicts."""
        async with self._engine.connect() as conn:
            result = await conn.execute(text(sql), params or {})
            return [dict(row) for row in result.mappings()]

    async def select(
        self,
        table: str,
        columns: list[str],
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select the given columns of the rows matching all ``filters``.

        Filters compare with ``=``, so the column's collation applies.
        """
        filters = filters or {}
        clause = table_clause(
            table, [*columns, *filters.keys(), *([order_by] if order_by else [])]
        )
        query = select(*(clause.c[col] for col in columns))
        if filters:
            query = query.where(and_(*(clause.c[k] == v for k, v in filters.items())))
        if order_by:
            query = query.order_by(clause.c[order_by])

        async with self._engine.connect() as conn:
            result = await conn.execute(query)
            return [dict(row) for row in result.mappings()]

    async def table_exists(self, table: str) -> bool:
        """Probe-read the table; False when SQLite reports it missing."""
        query = select(literal_column("1")).select_from(table_clause(table)).limit(1)
        try:
            async with self._engine.connect() as conn:
                await conn.execute(query)
        except OperationalError:
            return False
        return True

    # ------------------------------------------------------------------
    # Write Methods
    # ------------------------------------------------------------------

    async def insert(
        self,
        table: str,
        data: dict[str, Any],
        conn: AsyncConnection | None = None,
    ) -> None:
        """Insert one row.

        Runs on ``conn`` when given, otherwise in its own transaction.
        """
        clause = table_clause(table, data.keys())
        stmt = insert(clause).values({clause.c[k]: v for k, v in data.items()})

        async with self._connection(conn) as active:
            await active.execute(stmt)

    async def update(
        self,
        table: str,
        data: dict[str, Any],
        filters: dict[str, Any],
        conn: AsyncConnection | None = None,
    ) -> int:
        """Update rows matching all ``filters``; returns the affected row count."""
        if not filters:
            raise ValueError("update() requires at least one filter")

        clause = table_clause(table, [*data.keys(), *filters.keys()])
        stmt = (
            update(clause)
            .where(and_(*(clause.c[k] == v for k, v in filters.items())))
            .values({clause.c[k]: v for k, v in data.items()})
        )

        async with self._connection(conn) as active:
            result = await active.execute(stmt)
            return result.rowcount

    async def execute(self, sql: str, conn: AsyncConnection | None = None) -> None:
        """Execute a raw SQL statement (DDL) verbatim.

        The statement is passed straight to the driver, so colons inside
        string literals are not mistaken for bind parameters.

        Example:
            await adapter.execute(
                "CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT)"
            )
        """
        async with self._connection(conn) as active:
            await active.exec_driver_sql(sql)

    def transaction(self) -> AbstractAsyncContextManager[AsyncConnection]:
        """Scoped transaction: COMMIT on success, ROLLBACK on error."""
        return self._engine.begin()

    async def close(self) -> None:
        """Close the async engine and dispose of the connection pool."""
        if self._engine:
            await self._engine.dispose()

    # ------------------------------------------------------------------
    # Connection Test
    # ------------------------------------------------------------------

    async def test_connection(self) -> bool:
        """Run ``SELECT 1`` to verify the database can be opened."""
        async with self._engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.scalar() == 1

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _connection(
        self, conn: AsyncConnection | None
    ) -> AsyncIterator[AsyncConnection]:
        """Yield the caller's connection, or a fresh one inside ``engine.begin()``."""
        if conn is not None:
            yield conn
            return
        async with self._engine.begin() as own:
            yield own
