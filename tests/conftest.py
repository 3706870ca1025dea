"""Shared fixtures: throwaway SQLite files built with the stdlib driver."""

import sqlite3
from pathlib import Path

import pytest


@pytest.fixture
def make_db(tmp_path: Path):
    """Factory creating a SQLite file from a SQL script.

    Usage:
        path = make_db("source.db", "CREATE TABLE t (id INTEGER PRIMARY KEY);")
    """

    def _make(name: str, script: str = "") -> Path:
        path = tmp_path / name
        conn = sqlite3.connect(path)
        try:
            conn.executescript(script)
            conn.commit()
        finally:
            conn.close()
        return path

    return _make


@pytest.fixture
def fetch_rows():
    """Read all rows of a table, ordered by its first column."""

    def _fetch(path: Path, table: str) -> list[tuple]:
        conn = sqlite3.connect(path)
        try:
            quoted = '"' + table.replace('"', '""') + '"'
            return conn.execute(f"SELECT * FROM {quoted} ORDER BY 1").fetchall()
        finally:
            conn.close()

    return _fetch


@pytest.fixture
def table_names():
    """List user table names of a SQLite file."""

    def _names(path: Path) -> list[str]:
        conn = sqlite3.connect(path)
        try:
            rows = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
            ).fetchall()
            return [row[0] for row in rows]
        finally:
            conn.close()

    return _names
