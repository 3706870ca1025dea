"""Tests for the db-sync command line."""

import pytest

from db_sync.cli import _key_label, main
from db_sync.schema.models import ColumnInfo, TableSchema


USERS_DDL = "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, updated_at TEXT);"


@pytest.fixture
def pair(make_db):
    """A source with two users and a destination with one."""
    source = make_db(
        "source.db",
        USERS_DDL + "INSERT INTO users VALUES (1, 'ada', '2024-01-01'), (2, 'bob', '2024-01-02');",
    )
    destination = make_db(
        "destination.db",
        USERS_DDL + "INSERT INTO users VALUES (1, 'ada', '2024-01-01');",
    )
    return source, destination


# ============================================================
# Test: sync command
# ============================================================


class TestSyncCommand:
    """db-sync sync."""

    def test_sync_succeeds(self, pair, fetch_rows, capsys) -> None:
        source, destination = pair

        assert main(["sync", str(source), str(destination)]) == 0

        assert len(fetch_rows(destination, "users")) == 2
        assert "Sync complete" in capsys.readouterr().out

    def test_dry_run(self, pair, fetch_rows, capsys) -> None:
        source, destination = pair

        assert main(["sync", str(source), str(destination), "--dry-run"]) == 0

        assert len(fetch_rows(destination, "users")) == 1
        assert "DRY RUN" in capsys.readouterr().out

    def test_missing_path(self, pair, tmp_path) -> None:
        source, _ = pair

        assert main(["sync", str(source), str(tmp_path / "missing.db")]) == 1
        assert not (tmp_path / "missing.db").exists()

    def test_unreadable_database(self, pair, tmp_path) -> None:
        source, _ = pair
        garbage = tmp_path / "garbage.db"
        garbage.write_bytes(b"not a database " * 200)

        assert main(["sync", str(source), str(garbage)]) == 1

    def test_updated_field_override(self, make_db, fetch_rows) -> None:
        ddl = "CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT, modified INTEGER);"
        source = make_db("source.db", ddl + "INSERT INTO notes VALUES (1, 'new', 2);")
        destination = make_db("destination.db", ddl + "INSERT INTO notes VALUES (1, 'old', 1);")

        code = main(
            ["sync", str(source), str(destination), "--updated-field", "modified"]
        )

        assert code == 0
        assert fetch_rows(destination, "notes") == [(1, "new", 2)]

    def test_tables_option(self, make_db, fetch_rows) -> None:
        ddl = USERS_DDL + "CREATE TABLE notes (id INTEGER PRIMARY KEY, updated_at TEXT);"
        source = make_db(
            "source.db",
            ddl
            + "INSERT INTO users VALUES (1, 'ada', 't');"
            + "INSERT INTO notes VALUES (1, 't');",
        )
        destination = make_db("destination.db", ddl)

        assert main(["sync", str(source), str(destination), "--tables", "notes"]) == 0

        assert fetch_rows(destination, "notes") == [(1, "t")]
        assert fetch_rows(destination, "users") == []

    def test_config_file(self, make_db, fetch_rows, tmp_path) -> None:
        ddl = "CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT, ts INTEGER);"
        source = make_db("source.db", ddl + "INSERT INTO notes VALUES (1, 'new', 2);")
        destination = make_db("destination.db", ddl + "INSERT INTO notes VALUES (1, 'old', 1);")
        config = tmp_path / "db-sync.toml"
        config.write_text('[sync]\nupdated_field = "ts"\n')

        code = main(["sync", str(source), str(destination), "--config", str(config)])

        assert code == 0
        assert fetch_rows(destination, "notes") == [(1, "new", 2)]

    def test_invalid_config_file(self, pair, tmp_path) -> None:
        source, destination = pair
        config = tmp_path / "db-sync.toml"
        config.write_text("[sync]\nstrict = 'maybe'\n")

        assert main(["sync", str(source), str(destination), "--config", str(config)]) == 1

    def test_help_describes_source_only_tables(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["sync", "--help"])

        assert exc_info.value.code == 0
        text = " ".join(capsys.readouterr().out.split())
        assert "Tables only in <source> are created in <destination>" in text
        assert "tables only in <destination> are ignored" in text

    def test_sync_setting_not_a_table(self, pair, tmp_path) -> None:
        source, destination = pair
        config = tmp_path / "db-sync.toml"
        config.write_text('sync = "oops"\n')

        assert main(["sync", str(source), str(destination), "--config", str(config)]) == 1


# ============================================================
# Test: strict mode
# ============================================================


class TestStrictMode:
    """Table failures only change the exit code under --strict."""

    @pytest.fixture
    def failing_pair(self, make_db):
        source = make_db(
            "source.db",
            USERS_DDL + "CREATE TABLE widgets (id INTEGER PRIMARY KEY, updated_at TEXT);",
        )
        destination = make_db(
            "destination.db", USERS_DDL + "CREATE INDEX widgets ON users (name);"
        )
        return source, destination

    def test_failure_without_strict_exits_zero(self, failing_pair) -> None:
        source, destination = failing_pair
        assert main(["sync", str(source), str(destination)]) == 0

    def test_failure_with_strict_exits_one(self, failing_pair) -> None:
        source, destination = failing_pair
        assert main(["sync", str(source), str(destination), "--strict"]) == 1

    def test_policy_violation_is_not_a_failure(self, make_db) -> None:
        source = make_db("source.db", "CREATE TABLE posts (id INTEGER PRIMARY KEY, title TEXT);")
        destination = make_db("destination.db", "CREATE TABLE other (id INTEGER PRIMARY KEY);")

        assert main(["sync", str(source), str(destination), "--strict"]) == 0


# ============================================================
# Test: inspect command
# ============================================================


class TestInspectCommand:
    """db-sync inspect."""

    def test_inspect(self, make_db, capsys) -> None:
        source = make_db("source.db", USERS_DDL + "CREATE TABLE posts (id INTEGER PRIMARY KEY);")
        destination = make_db("destination.db", USERS_DDL)

        assert main(["inspect", str(source), str(destination)]) == 0

        out = capsys.readouterr().out
        assert "Schema Classification" in out
        assert "WARN" in out

    def test_inspect_unreadable_database(self, make_db, tmp_path) -> None:
        source = make_db("source.db", USERS_DDL)
        garbage = tmp_path / "garbage.db"
        garbage.write_bytes(b"not a database " * 200)

        assert main(["inspect", str(source), str(garbage)]) == 1

    def test_inspect_does_not_write(self, make_db, table_names) -> None:
        source = make_db("source.db", USERS_DDL)
        destination = make_db("destination.db", "CREATE TABLE other (id INTEGER PRIMARY KEY);")

        main(["inspect", str(source), str(destination)])

        assert table_names(destination) == ["other"]


# ============================================================
# Test: inspect key labels
# ============================================================


class TestKeyLabel:
    """The "Primary key" column of inspect."""

    def _schema(self, *keys: str) -> TableSchema:
        columns = [
            ColumnInfo(ordinal=i, name=k, is_primary_key=True, primary_key_position=i + 1)
            for i, k in enumerate(keys)
        ]
        columns.append(ColumnInfo(ordinal=len(keys), name="updated_at"))
        return TableSchema(name="t", columns=columns)

    def test_single_key(self) -> None:
        assert _key_label(self._schema("id")) == "id"

    def test_composite_key(self) -> None:
        assert _key_label(self._schema("a", "b")) == "composite primary key (a, b)"

    def test_no_key(self) -> None:
        assert _key_label(self._schema()) == "no primary key"
