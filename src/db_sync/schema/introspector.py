"""SQLite schema introspection via the catalog.

This module queries a live database to extract schema information:
- User tables and the DDL that created them (``sqlite_master``)
- Columns, declared types, nullability, defaults and primary-key flags
  (``pragma_table_info``)

Views, indexes, triggers and SQLite's internal ``sqlite_*`` tables are
excluded.  Introspection is read-only.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from db_sync.adapters.base import DatabaseClient
from db_sync.errors import IntrospectionError
from db_sync.schema.models import ColumnInfo, DatabaseSchema, TableSchema

logger = logging.getLogger(__name__)

_TABLES_QUERY = """
    SELECT name, sql
    FROM sqlite_master
    WHERE type = 'table'
      AND name NOT LIKE 'sqlite!_%' ESCAPE '!'
    ORDER BY rowid
"""

# Table-valued form of PRAGMA table_info: the table name is a bound parameter.
_COLUMNS_QUERY = """
    SELECT cid, name, type, "notnull", dflt_value, pk
    FROM pragma_table_info(:table_name)
    ORDER BY cid
"""


class SchemaIntrospector:
    """Introspects the schema of one SQLite database.

    The client is opened and closed by the caller; the introspector only
    issues read queries over it.

    Usage:
        introspector = SchemaIntrospector(client)

        # Full schema (tables, DDL, columns)
        schema = await introspector.introspect()

        # Or just column names
        columns = await introspector.get_column_names()
    """

    def __init__(self, client: DatabaseClient):
        """Initialize with an open database client.

        Args:
            client: Client for the database to introspect.
        """
        self._client = client

    async def introspect(self) -> DatabaseSchema:
        """Introspect every user table.

        Returns:
            DatabaseSchema with tables in catalog order.

        Raises:
            IntrospectionError: If the catalog or any table's column list
                cannot be read, or a table disappears during the scan.
        """
        db_schema = DatabaseSchema()

        for table_name, create_sql in await self._get_tables():
            db_schema.tables[table_name] = TableSchema(
                name=table_name,
                create_statement=create_sql or "",
                columns=await self._get_columns(table_name),
            )

        logger.debug(
            "Introspected %d tables from %s", len(db_schema.tables), self._client.label
        )
        return db_schema

    async def get_column_names(self) -> dict[str, set[str]]:
        """Get column names for all tables.

        Returns:
            Dict mapping table name to set of column names
        """
        result: dict[str, set[str]] = {}
        for table_name, _ in await self._get_tables():
            result[table_name] = {col.name for col in await self._get_columns(table_name)}
        return result

    async def _get_tables(self) -> list[tuple[str, str | None]]:
        """Get (name, CREATE statement) for every user table."""
        try:
            rows = await self._client.fetch_all(_TABLES_QUERY)
        except SQLAlchemyError as e:
            raise IntrospectionError(
                f"Failed to read table catalog: {e}",
                database=self._client.label,
                operation="list_tables",
            ) from e
        return [(row["name"], row["sql"]) for row in rows]

    async def _get_columns(self, table_name: str) -> list[ColumnInfo]:
        """Get columns for a table in ordinal order."""
        try:
            rows = await self._client.fetch_all(
                _COLUMNS_QUERY, {"table_name": table_name}
            )
        except SQLAlchemyError as e:
            raise IntrospectionError(
                f"Failed to read column info: {e}",
                database=self._client.label,
                operation="table_info",
                table=table_name,
            ) from e

        # pragma_table_info returns nothing for a table dropped mid-scan
        if not rows:
            raise IntrospectionError(
                "Table disappeared during introspection",
                database=self._client.label,
                operation="table_info",
                table=table_name,
            )

        return [
            ColumnInfo(
                ordinal=row["cid"],
                name=row["name"],
                declared_type=row["type"] or "",
                not_null=bool(row["notnull"]),
                default=row["dflt_value"],
                is_primary_key=row["pk"] > 0,
                primary_key_position=row["pk"],
            )
            for row in rows
        ]
