"""Bidirectional last-write-wins sync between two SQLite databases (async).

Drives the whole run: introspect both sides, classify tables, reconcile
each syncable table, and collect the per-table reports into a
``SyncReport``.

Only an introspection failure stops the run (before any data is touched).
Every other failure is scoped to one table or one row and ends up in the
report; nothing is raised past this module.

Usage:
    from db_sync.schema.sync import sync_files

    report = await sync_files("laptop.db", "server.db")
    print(report.format_report())

    # Plan only
    report = await sync_files("laptop.db", "server.db", dry_run=True)

    # With already-open clients
    from db_sync.adapters.sqlite import AsyncSQLiteAdapter
    report = await sync_databases(
        AsyncSQLiteAdapter("a.db"), AsyncSQLiteAdapter("b.db"),
        config=SyncConfig(updated_field="modified"),
    )
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from db_sync.adapters.base import DatabaseClient
from db_sync.config.models import SyncConfig
from db_sync.errors import (
    ClassificationPolicyViolation,
    IntrospectionError,
    MissingTimestampColumn,
    TableSyncError,
)
from db_sync.schema.classifier import classify_schemas, primary_key_issue
from db_sync.schema.introspector import SchemaIntrospector
from db_sync.schema.models import DatabaseSchema, SchemaClassification
from db_sync.schema.reconciler import TableStatus, TableSyncReport, reconcile_table

logger = logging.getLogger(__name__)


class SkipReason(str, Enum):
    """Why a table was left out of the sync."""

    UNCOMMON = "uncommon"
    NO_PRIMARY_KEY = "no_primary_key"
    COMPOSITE_PRIMARY_KEY = "composite_primary_key"
    EXCLUDED = "excluded"


class SkippedTable(BaseModel):
    """A table that was not reconciled, and why."""

    table: str
    reason: SkipReason
    message: str = ""


class SyncReport(BaseModel):
    """Result of a sync run.

    Attributes:
        success: False only when the run was aborted (introspection failed).
            Table and row failures leave it True; see ``has_failures``.
        source: Label of the source database.
        destination: Label of the destination database.
        updated_field: Timestamp column used for last-write-wins.
        dry_run: Whether writes were skipped.
        classification: Table classification (None if aborted earlier).
        tables: One report per reconciled table, in source order.
        skipped: Tables left out of the sync.
        error: Fatal error message when ``success`` is False.
    """

    success: bool = False
    source: str = ""
    destination: str = ""
    updated_field: str = "updated_at"
    dry_run: bool = False
    classification: SchemaClassification | None = None
    tables: list[TableSyncReport] = Field(default_factory=list)
    skipped: list[SkippedTable] = Field(default_factory=list)
    error: str | None = None

    @property
    def tables_synced(self) -> list[str]:
        return [
            t.table
            for t in self.tables
            if t.status in (TableStatus.SYNCED, TableStatus.PLANNED)
        ]

    @property
    def rows_to_destination(self) -> int:
        return sum(t.rows_to_destination for t in self.tables)

    @property
    def rows_to_source(self) -> int:
        return sum(t.rows_to_source for t in self.tables)

    @property
    def total_collisions(self) -> int:
        return sum(t.collisions for t in self.tables)

    @property
    def total_failed_rows(self) -> int:
        return sum(t.failed for t in self.tables)

    @property
    def has_failures(self) -> bool:
        """True if any table failed or any row could not be written."""
        return any(
            t.status is TableStatus.FAILED or t.failed > 0 for t in self.tables
        )

    @property
    def has_policy_violations(self) -> bool:
        return any(t.status is TableStatus.POLICY_VIOLATION for t in self.tables)

    def format_report(self) -> str:
        """Format the run as a human-readable summary."""
        if not self.success:
            return f"Sync aborted: {self.error}"

        title = "Sync plan (dry run)" if self.dry_run else "Sync complete"
        lines = [f"{title}: {self.source} <-> {self.destination}"]

        lines.append(f"\n  Tables synced ({len(self.tables_synced)}):")
        for t in self.tables:
            if t.status in (TableStatus.SYNCED, TableStatus.PLANNED):
                created = " (created in destination)" if t.created_in_destination else ""
                lines.append(
                    f"    - {t.table}{created}: "
                    f"+{t.inserted_into_destination}/~{t.updated_destination} to destination, "
                    f"+{t.inserted_into_source}/~{t.updated_source} to source, "
                    f"{t.unchanged} unchanged, {t.collisions} collisions, "
                    f"{t.failed} failed"
                )

        violations = [t for t in self.tables if t.status is TableStatus.POLICY_VIOLATION]
        if violations:
            lines.append(f"\n  Policy violations ({len(violations)}):")
            for t in violations:
                lines.append(f"    - {t.table}: {'; '.join(t.errors)}")

        failed = [t for t in self.tables if t.status is TableStatus.FAILED]
        if failed:
            lines.append(f"\n  Failed tables ({len(failed)}):")
            for t in failed:
                lines.append(f"    - {t.table}: {'; '.join(t.errors)}")

        if self.skipped:
            lines.append(f"\n  Skipped tables ({len(self.skipped)}):")
            for s in self.skipped:
                lines.append(f"    - {s.table}: {s.message or s.reason.value}")

        lines.append(
            f"\n  Rows to destination: {self.rows_to_destination}, "
            f"rows to source: {self.rows_to_source}, "
            f"collisions: {self.total_collisions}, "
            f"failed rows: {self.total_failed_rows}"
        )
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _skip(
    report: SyncReport, table: str, reason: SkipReason, details: str
) -> None:
    """Record a skipped table and log it as a policy violation."""
    violation = ClassificationPolicyViolation(table, reason.value, details)
    logger.warning("Skipping table: %s", violation)
    report.skipped.append(SkippedTable(table=table, reason=reason, message=details))


def _key_skip_reason(issue: str) -> SkipReason:
    if issue.startswith("composite"):
        return SkipReason.COMPOSITE_PRIMARY_KEY
    return SkipReason.NO_PRIMARY_KEY


async def _introspect(client: DatabaseClient) -> DatabaseSchema:
    return await SchemaIntrospector(client).introspect()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def sync_databases(
    source: DatabaseClient,
    destination: DatabaseClient,
    config: SyncConfig | None = None,
    dry_run: bool = False,
) -> SyncReport:
    """Sync every compatible table between two open databases.

    The clients are opened and closed by the caller.

    Args:
        source: Source database client.
        destination: Destination database client.
        config: Sync settings.  Defaults to ``SyncConfig()``.
        dry_run: If ``True``, plan only -- nothing is written to either side.

    Returns:
        ``SyncReport``.  ``success`` is False only if introspection failed.

    Example:
        >>> report = await sync_databases(source, destination)
        >>> report.rows_to_destination, report.total_collisions
        (3, 0)
    """
    config = config or SyncConfig()
    report = SyncReport(
        source=source.label,
        destination=destination.label,
        updated_field=config.updated_field,
        dry_run=dry_run,
    )

    try:
        source_schema = await _introspect(source)
        destination_schema = await _introspect(destination)
    except IntrospectionError as e:
        logger.error("Introspection failed, nothing was synced: %s", e)
        report.error = str(e)
        return report

    classification = classify_schemas(source_schema, destination_schema)
    report.classification = classification

    if classification.has_uncommon:
        logger.warning(
            "Some tables are not present in both databases: %s",
            ", ".join(classification.uncommon_tables),
        )

    for name, table in source_schema.tables.items():
        if not config.is_selected(name):
            _skip(report, name, SkipReason.EXCLUDED, "excluded by configuration")
            continue

        issue = primary_key_issue(table)
        if name in classification.source_only_tables:
            if not config.create_missing_tables:
                _skip(report, name, SkipReason.UNCOMMON, "only present in source")
                continue
            if issue is not None:
                _skip(report, name, _key_skip_reason(issue), f"only present in source; {issue}")
                continue
        elif issue is not None:
            _skip(report, name, _key_skip_reason(issue), issue)
            continue

        logger.info("Syncing table %s", name)
        try:
            table_report = await reconcile_table(
                source,
                destination,
                table,
                updated_field=config.updated_field,
                destination_table=destination_schema.get(name),
                dry_run=dry_run,
            )
        except MissingTimestampColumn as e:
            logger.warning("Policy violation: %s", e)
            table_report = TableSyncReport(
                table=name,
                status=TableStatus.POLICY_VIOLATION,
                errors=[str(e)],
                error_type=type(e).__name__,
            )
        except TableSyncError as e:
            logger.error("Failed to sync table %s: %s", name, e)
            table_report = TableSyncReport(
                table=name,
                status=TableStatus.FAILED,
                errors=[str(e)],
                error_type=type(e).__name__,
            )
        report.tables.append(table_report)

    for name in classification.destination_only_tables:
        if config.is_selected(name):
            _skip(report, name, SkipReason.UNCOMMON, "only present in destination")
        else:
            _skip(report, name, SkipReason.EXCLUDED, "excluded by configuration")

    report.success = True
    return report


async def sync_files(
    source_path: str | Path,
    destination_path: str | Path,
    config: SyncConfig | None = None,
    dry_run: bool = False,
) -> SyncReport:
    """Open both SQLite files, sync them, and always close them.

    Args:
        source_path: Path to the source database.
        destination_path: Path to the destination database.
        config: Sync settings.  Defaults to ``SyncConfig()``.
        dry_run: If ``True``, plan only.

    Returns:
        ``SyncReport`` from ``sync_databases()``.
    """
    from db_sync.adapters.sqlite import AsyncSQLiteAdapter

    source = AsyncSQLiteAdapter(source_path)
    destination = AsyncSQLiteAdapter(destination_path)
    try:
        return await sync_databases(source, destination, config=config, dry_run=dry_run)
    finally:
        await source.close()
        await destination.close()
