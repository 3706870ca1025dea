"""Tests for SchemaIntrospector against real SQLite files."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from db_sync.adapters.sqlite import AsyncSQLiteAdapter
from db_sync.errors import IntrospectionError
from db_sync.schema.introspector import SchemaIntrospector


SCHEMA_SQL = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL DEFAULT 'anon',
    score REAL DEFAULT 0,
    updated_at TEXT
);
CREATE TABLE memberships (
    user_id INTEGER,
    group_id INTEGER,
    PRIMARY KEY (group_id, user_id)
);
CREATE TABLE log (message TEXT);
CREATE VIEW user_names AS SELECT name FROM users;
CREATE INDEX idx_users_name ON users (name);
CREATE TRIGGER users_touch AFTER UPDATE ON users BEGIN SELECT 1; END;
CREATE TABLE counters (id INTEGER PRIMARY KEY AUTOINCREMENT, n INTEGER);
"""


def _introspect(path):
    async def _run():
        client = AsyncSQLiteAdapter(path)
        try:
            return await SchemaIntrospector(client).introspect()
        finally:
            await client.close()

    return asyncio.run(_run())


def _mock_client(side_effect) -> AsyncMock:
    client = AsyncMock()
    client.label = "mock.db"
    client.fetch_all = AsyncMock(side_effect=side_effect)
    return client


# ============================================================
# Test: catalog reading
# ============================================================


class TestIntrospectTables:
    """Table discovery from sqlite_master."""

    def test_user_tables_in_catalog_order(self, make_db) -> None:
        schema = _introspect(make_db("app.db", SCHEMA_SQL))
        assert schema.table_names == ["users", "memberships", "log", "counters"]

    def test_views_indexes_and_internal_tables_excluded(self, make_db) -> None:
        schema = _introspect(make_db("app.db", SCHEMA_SQL))
        assert "user_names" not in schema.tables
        assert "idx_users_name" not in schema.tables
        assert "sqlite_sequence" not in schema.tables

    def test_create_statement_captured(self, make_db) -> None:
        schema = _introspect(make_db("app.db", SCHEMA_SQL))
        assert schema.tables["log"].create_statement == "CREATE TABLE log (message TEXT)"

    def test_empty_database(self, make_db) -> None:
        schema = _introspect(make_db("empty.db"))
        assert schema.tables == {}

    def test_unusual_identifiers(self, make_db) -> None:
        path = make_db(
            "odd.db",
            'CREATE TABLE "odd ""name""; drop" (id INTEGER PRIMARY KEY, "full name" TEXT);',
        )

        schema = _introspect(path)

        assert schema.table_names == ['odd "name"; drop']
        assert schema.tables['odd "name"; drop'].column_names == ["id", "full name"]


# ============================================================
# Test: column metadata
# ============================================================


class TestIntrospectColumns:
    """Column metadata from pragma_table_info."""

    def test_columns_in_ordinal_order(self, make_db) -> None:
        users = _introspect(make_db("app.db", SCHEMA_SQL)).tables["users"]
        assert [c.ordinal for c in users.columns] == [0, 1, 2, 3]
        assert users.column_names == ["id", "name", "score", "updated_at"]

    def test_column_details(self, make_db) -> None:
        users = _introspect(make_db("app.db", SCHEMA_SQL)).tables["users"]

        id_col = users.get_column("id")
        assert id_col.declared_type == "INTEGER"
        assert id_col.is_primary_key
        assert id_col.primary_key_position == 1

        name_col = users.get_column("name")
        assert name_col.not_null
        assert name_col.default == "'anon'"
        assert name_col.default_value == "anon"
        assert not name_col.is_primary_key

        assert users.get_column("score").default_value == 0
        assert users.get_column("updated_at").default is None

    def test_single_key(self, make_db) -> None:
        users = _introspect(make_db("app.db", SCHEMA_SQL)).tables["users"]
        assert users.primary_key_column == "id"

    def test_composite_key_in_key_order(self, make_db) -> None:
        memberships = _introspect(make_db("app.db", SCHEMA_SQL)).tables["memberships"]
        assert memberships.primary_key_columns == ["group_id", "user_id"]
        assert memberships.primary_key_column is None

    def test_no_key(self, make_db) -> None:
        log = _introspect(make_db("app.db", SCHEMA_SQL)).tables["log"]
        assert log.primary_key_columns == []

    def test_get_column_names(self, make_db) -> None:
        path = make_db("app.db", SCHEMA_SQL)

        async def _run():
            client = AsyncSQLiteAdapter(path)
            try:
                return await SchemaIntrospector(client).get_column_names()
            finally:
                await client.close()

        names = asyncio.run(_run())
        assert names["memberships"] == {"user_id", "group_id"}
        assert set(names) == {"users", "memberships", "log", "counters"}


# ============================================================
# Test: failures
# ============================================================


class TestIntrospectionErrors:
    """Catalog read failures surface as IntrospectionError."""

    def test_not_a_database(self, tmp_path) -> None:
        path = tmp_path / "garbage.db"
        path.write_bytes(b"this is not a sqlite database " * 200)

        with pytest.raises(IntrospectionError) as exc_info:
            _introspect(path)

        assert exc_info.value.operation == "list_tables"
        assert exc_info.value.database == str(path)

    def test_catalog_query_failure(self) -> None:
        client = _mock_client(OperationalError("SELECT", {}, Exception("disk I/O error")))

        with pytest.raises(IntrospectionError, match="table catalog") as exc_info:
            asyncio.run(SchemaIntrospector(client).introspect())

        assert exc_info.value.context == {"database": "mock.db", "operation": "list_tables"}

    def test_column_query_failure(self) -> None:
        client = _mock_client(
            [
                [{"name": "users", "sql": "CREATE TABLE users (id)"}],
                OperationalError("SELECT", {}, Exception("locked")),
            ]
        )

        with pytest.raises(IntrospectionError) as exc_info:
            asyncio.run(SchemaIntrospector(client).introspect())

        assert exc_info.value.operation == "table_info"
        assert exc_info.value.table == "users"

    def test_table_dropped_mid_scan(self) -> None:
        client = _mock_client([[{"name": "ghost", "sql": "CREATE TABLE ghost (id)"}], []])

        with pytest.raises(IntrospectionError, match="disappeared"):
            asyncio.run(SchemaIntrospector(client).introspect())

    def test_table_name_passed_as_parameter(self) -> None:
        client = _mock_client(
            [
                [{"name": "x'); DROP TABLE y; --", "sql": None}],
                [{"cid": 0, "name": "id", "type": "", "notnull": 0, "dflt_value": None, "pk": 1}],
            ]
        )

        schema = asyncio.run(SchemaIntrospector(client).introspect())

        _, params = client.fetch_all.await_args_list[1].args
        assert params == {"table_name": "x'); DROP TABLE y; --"}
        assert schema.tables["x'); DROP TABLE y; --"].create_statement == ""
