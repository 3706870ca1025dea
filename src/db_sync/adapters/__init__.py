"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and the async SQLite adapter.

Usage:
    from db_sync.adapters import DatabaseClient, AsyncSQLiteAdapter
"""

from db_sync.adapters.base import DatabaseClient
from db_sync.adapters.sqlite import AsyncSQLiteAdapter

__all__ = [
    "DatabaseClient",
    "AsyncSQLiteAdapter",
]
