"""db-sync: last-write-wins row sync between two SQLite databases.

Introspects both databases, works out which tables can be synced safely,
and reconciles each one row by row so that both sides converge.

Usage:
    from db_sync import sync_files, SyncConfig
    from db_sync import AsyncSQLiteAdapter, sync_databases
    from db_sync import SchemaIntrospector, classify_schemas
"""

__version__ = "0.1.0"

# Adapters
from db_sync.adapters.base import DatabaseClient
from db_sync.adapters.sqlite import AsyncSQLiteAdapter

# Config
from db_sync.config.loader import load_sync_config
from db_sync.config.models import SyncConfig

# Errors
from db_sync.errors import (
    ClassificationPolicyViolation,
    ConfigError,
    DestinationCreateError,
    IntrospectionError,
    MissingTimestampColumn,
    RowApplyError,
    SyncError,
    TableReadError,
    TableSyncError,
)

# Schema
from db_sync.schema.classifier import classify_schemas
from db_sync.schema.introspector import SchemaIntrospector
from db_sync.schema.reconciler import TableSyncReport, reconcile_table
from db_sync.schema.sync import SyncReport, sync_databases, sync_files

__all__ = [
    # Adapters
    "DatabaseClient",
    "AsyncSQLiteAdapter",
    # Config
    "load_sync_config",
    "SyncConfig",
    # Errors
    "SyncError",
    "ConfigError",
    "IntrospectionError",
    "ClassificationPolicyViolation",
    "TableSyncError",
    "DestinationCreateError",
    "TableReadError",
    "MissingTimestampColumn",
    "RowApplyError",
    # Schema
    "SchemaIntrospector",
    "classify_schemas",
    "reconcile_table",
    "TableSyncReport",
    "sync_databases",
    "sync_files",
    "SyncReport",
]
