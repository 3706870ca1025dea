"""Schema introspection, classification, and row reconciliation.

Provides live database introspection (``SchemaIntrospector``), table
classification (``classify_schemas``), per-table last-write-wins
reconciliation (``reconcile_table``), and the end-to-end sync
(``sync_databases``, ``sync_files``).

Usage:
    from db_sync.schema import SchemaIntrospector, classify_schemas
    from db_sync.schema import reconcile_table, sync_files
"""

from db_sync.schema.classifier import classify_schemas, primary_key_issue
from db_sync.schema.introspector import SchemaIntrospector
from db_sync.schema.models import (
    ColumnInfo,
    DatabaseSchema,
    SchemaClassification,
    TableSchema,
)
from db_sync.schema.reconciler import (
    RowDecision,
    SyncDecision,
    TablePlan,
    TableStatus,
    TableSyncReport,
    decide_row,
    plan_table,
    reconcile_table,
)
from db_sync.schema.sync import (
    SkippedTable,
    SkipReason,
    SyncReport,
    sync_databases,
    sync_files,
)
from db_sync.schema.values import (
    SqlValue,
    StorageClass,
    compare_values,
    parse_default_literal,
    storage_class,
)

__all__ = [
    "SchemaIntrospector",
    "classify_schemas",
    "primary_key_issue",
    "ColumnInfo",
    "TableSchema",
    "DatabaseSchema",
    "SchemaClassification",
    "SyncDecision",
    "RowDecision",
    "TablePlan",
    "TableStatus",
    "TableSyncReport",
    "decide_row",
    "plan_table",
    "reconcile_table",
    "SyncReport",
    "SkippedTable",
    "SkipReason",
    "sync_databases",
    "sync_files",
    "SqlValue",
    "StorageClass",
    "storage_class",
    "compare_values",
    "parse_default_literal",
]
