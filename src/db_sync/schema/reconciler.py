"""Last-write-wins reconciliation of one table across two databases.

Rows are matched by primary-key value.  For every key present on either
side the newer row (by the table's timestamp column) is copied to the
other side, so both databases converge:

- source only: ``insert_into_destination``
- destination only: ``insert_into_source``
- source timestamp greater: ``update_destination``
- destination timestamp greater: ``update_source``
- equal timestamps: ``noop``

Equal timestamps with different field values are a *collision*: two writes
landed within the clock's resolution.  Nothing is written (no data is lost
by inaction) but the row is counted separately from a true no-op.

Planning (``decide_row``, ``plan_table``) is pure; ``reconcile_table``
does the I/O.  Writes for each side run in one transaction, with a
SAVEPOINT per row so a failing row is skipped without losing the rest of
the batch.

Usage:
    from db_sync.schema.reconciler import reconcile_table

    report = await reconcile_table(
        source, destination, source_schema.tables["users"],
        updated_field="updated_at",
        destination_table=dest_schema.get("users"),
    )
    print(report.inserted, report.updated, report.collisions)
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from db_sync.adapters.base import DatabaseClient
from db_sync.errors import (
    DestinationCreateError,
    MissingTimestampColumn,
    RowApplyError,
    TableReadError,
)
from db_sync.schema.models import TableSchema
from db_sync.schema.values import SqlValue, compare_values, values_equal

logger = logging.getLogger(__name__)

SOURCE = "source"
DESTINATION = "destination"


class SyncDecision(str, Enum):
    """What to do with one primary-key value."""

    INSERT_INTO_DESTINATION = "insert_into_destination"
    INSERT_INTO_SOURCE = "insert_into_source"
    UPDATE_DESTINATION = "update_destination"
    UPDATE_SOURCE = "update_source"
    NOOP = "noop"

    @property
    def target(self) -> str | None:
        """Side written by this decision, or None for a no-op."""
        if self in (SyncDecision.INSERT_INTO_DESTINATION, SyncDecision.UPDATE_DESTINATION):
            return DESTINATION
        if self in (SyncDecision.INSERT_INTO_SOURCE, SyncDecision.UPDATE_SOURCE):
            return SOURCE
        return None

    @property
    def is_insert(self) -> bool:
        return self in (SyncDecision.INSERT_INTO_DESTINATION, SyncDecision.INSERT_INTO_SOURCE)


class TableStatus(str, Enum):
    """Outcome of one table's reconciliation."""

    SYNCED = "synced"
    PLANNED = "planned"  # dry run
    POLICY_VIOLATION = "policy_violation"
    FAILED = "failed"


# ------------------------------------------------------------------
# Plan data classes
# ------------------------------------------------------------------


@dataclass
class RowDecision:
    """Decision for one primary-key value.

    ``row`` holds the winning values to write; None for a no-op.
    ``target_key`` is the key as stored on the side being updated; it can
    differ from ``key`` when the key column's collation matched them
    (``'A'`` and ``'a'`` under NOCASE).
    """

    key: SqlValue
    action: SyncDecision
    row: dict[str, Any] | None = None
    collision: bool = False
    target_key: SqlValue = None


@dataclass
class TablePlan:
    """Ordered row decisions for one table."""

    table: str
    decisions: list[RowDecision] = field(default_factory=list)

    @property
    def for_destination(self) -> list[RowDecision]:
        return [d for d in self.decisions if d.action.target == DESTINATION]

    @property
    def for_source(self) -> list[RowDecision]:
        return [d for d in self.decisions if d.action.target == SOURCE]

    @property
    def unchanged(self) -> int:
        """True no-ops (collisions excluded)."""
        return sum(1 for d in self.decisions if d.action is SyncDecision.NOOP and not d.collision)

    @property
    def collisions(self) -> list[RowDecision]:
        return [d for d in self.decisions if d.collision]

    def count(self, action: SyncDecision) -> int:
        return sum(1 for d in self.decisions if d.action is action)


class TableSyncReport(BaseModel):
    """Result of reconciling one table.

    Attributes:
        table: Table name.
        status: Outcome (``synced``, ``planned``, ``policy_violation``,
            ``failed``).
        created_in_destination: Whether the table was (or, in a dry run,
            would be) created on the destination.
        inserted_into_destination / inserted_into_source: Rows inserted
            on each side.
        updated_destination / updated_source: Rows overwritten on each side.
        unchanged: Keys already identical on both sides.
        collisions: Keys with equal timestamps but different values.
        failed: Rows whose write failed (or that could not be matched).
        collision_keys: ``repr`` of each collided key.
        errors: Human-readable error messages.
        error_type: Exception class name for table-level failures.
    """

    table: str
    status: TableStatus = TableStatus.SYNCED
    created_in_destination: bool = False
    inserted_into_destination: int = 0
    inserted_into_source: int = 0
    updated_destination: int = 0
    updated_source: int = 0
    unchanged: int = 0
    collisions: int = 0
    failed: int = 0
    collision_keys: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    error_type: str | None = None

    @property
    def inserted(self) -> int:
        return self.inserted_into_destination + self.inserted_into_source

    @property
    def updated(self) -> int:
        return self.updated_destination + self.updated_source

    @property
    def rows_to_destination(self) -> int:
        return self.inserted_into_destination + self.updated_destination

    @property
    def rows_to_source(self) -> int:
        return self.inserted_into_source + self.updated_source

    def record(self, action: SyncDecision, count: int = 1) -> None:
        """Add ``count`` successful writes of the given kind."""
        if action is SyncDecision.INSERT_INTO_DESTINATION:
            self.inserted_into_destination += count
        elif action is SyncDecision.INSERT_INTO_SOURCE:
            self.inserted_into_source += count
        elif action is SyncDecision.UPDATE_DESTINATION:
            self.updated_destination += count
        elif action is SyncDecision.UPDATE_SOURCE:
            self.updated_source += count


# ------------------------------------------------------------------
# Pure planning
# ------------------------------------------------------------------


def require_timestamp_column(
    table: TableSchema,
    updated_field: str,
    destination_table: TableSchema | None = None,
) -> str:
    """Check that last-write-wins can order this table's rows.

    Column names resolve the way SQLite resolves them, ignoring ASCII case.

    Returns:
        The source column's actual name (``updated_at`` for ``Updated_At``).

    Raises:
        MissingTimestampColumn: If ``updated_field`` is missing on the source
            table, or on the destination table when one is given.
    """
    column = table.get_column(updated_field)
    if column is None:
        raise MissingTimestampColumn(table.name, updated_field, SOURCE)
    if destination_table is not None and not destination_table.has_column(updated_field):
        raise MissingTimestampColumn(table.name, updated_field, DESTINATION)
    return column.name


def decide_row(
    source_row: dict[str, Any] | None,
    destination_row: dict[str, Any] | None,
    updated_field: str,
    compare_columns: list[str],
) -> tuple[SyncDecision, bool]:
    """Decide what to do with one key.

    Args:
        source_row: The row on the source side, or None if absent.
        destination_row: The row on the destination side, or None if absent.
        updated_field: Timestamp column deciding the last write.
        compare_columns: Columns checked for a collision when the
            timestamps are equal.

    Returns:
        ``(decision, collision)``.  ``collision`` is only ever True together
        with ``SyncDecision.NOOP``.

    Examples:
        >>> decide_row({"id": 1, "t": 5}, None, "t", ["t"])
        (<SyncDecision.INSERT_INTO_DESTINATION: 'insert_into_destination'>, False)
        >>> decide_row({"id": 1, "t": 5, "v": "a"}, {"id": 1, "t": 5, "v": "b"}, "t", ["v"])
        (<SyncDecision.NOOP: 'noop'>, True)
    """
    if source_row is None and destination_row is None:
        raise ValueError("decide_row() needs at least one row")
    if destination_row is None:
        return SyncDecision.INSERT_INTO_DESTINATION, False
    if source_row is None:
        return SyncDecision.INSERT_INTO_SOURCE, False

    order = compare_values(source_row.get(updated_field), destination_row.get(updated_field))
    if order > 0:
        return SyncDecision.UPDATE_DESTINATION, False
    if order < 0:
        return SyncDecision.UPDATE_SOURCE, False

    collision = any(
        not values_equal(source_row.get(col), destination_row.get(col))
        for col in compare_columns
    )
    return SyncDecision.NOOP, collision


def plan_table(
    table: TableSchema,
    source_rows: dict[SqlValue, dict[str, Any]],
    destination_rows: dict[SqlValue, dict[str, Any]],
    updated_field: str,
) -> TablePlan:
    """Build the row decisions for one table.

    Keys are visited in source order, then destination-only keys in
    destination order.

    Args:
        table: Source schema of the table (must have a single-column key).
        source_rows: Source rows indexed by primary-key value.
        destination_rows: Destination rows indexed by primary-key value.
        updated_field: Timestamp column deciding the last write.

    Returns:
        ``TablePlan`` with one ``RowDecision`` per key in the union.
    """
    compare_columns = table.non_key_columns
    key_column = table.primary_key_column
    plan = TablePlan(table=table.name)

    keys = list(source_rows)
    keys.extend(key for key in destination_rows if key not in source_rows)

    for key in keys:
        source_row = source_rows.get(key)
        destination_row = destination_rows.get(key)
        action, collision = decide_row(
            source_row, destination_row, updated_field, compare_columns
        )

        existing = None
        if action.target == DESTINATION:
            row, existing = source_row, destination_row
        elif action.target == SOURCE:
            row, existing = destination_row, source_row
        else:
            row = None

        target_key = key
        if existing is not None and key_column is not None:
            target_key = existing.get(key_column, key)

        plan.decisions.append(
            RowDecision(
                key=key, action=action, row=row, collision=collision, target_key=target_key
            )
        )

    return plan


# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------


async def _create_destination_table(
    destination: DatabaseClient,
    table: TableSchema,
) -> None:
    """Run the source's CREATE statement on the destination in a transaction.

    Raises:
        DestinationCreateError: If there is no DDL or it fails.
    """
    if not table.create_statement:
        raise DestinationCreateError(table.name, "no CREATE statement in source catalog")

    try:
        async with destination.transaction() as conn:
            await destination.execute(table.create_statement, conn=conn)
    except SQLAlchemyError as e:
        raise DestinationCreateError(table.name, str(e)) from e


async def _load_rows(
    client: DatabaseClient,
    table: TableSchema,
    key_column: str,
    side: str,
    report: TableSyncReport,
) -> dict[SqlValue, dict[str, Any]]:
    """Read all rows of a table indexed by primary-key value.

    Rows with a NULL key cannot be matched across databases; they are
    counted as failed and left alone.

    Raises:
        TableReadError: If the rows cannot be read.
    """
    try:
        rows = await client.select(table.name, table.column_names, order_by=key_column)
    except SQLAlchemyError as e:
        raise TableReadError(table.name, side, str(e)) from e

    indexed: dict[SqlValue, dict[str, Any]] = {}
    for row in rows:
        key = row[key_column]
        if key is None:
            report.failed += 1
            report.errors.append(
                f"{side} row with NULL primary key '{key_column}' cannot be matched"
            )
            continue
        indexed[key] = row
    return indexed


async def _match_keys(
    client: DatabaseClient,
    table: TableSchema,
    key_column: str,
    keys: list[SqlValue],
    candidates: dict[SqlValue, Any],
    side: str,
) -> dict[SqlValue, SqlValue]:
    """Ask ``client``'s database which candidate key each text key equals.

    The lookup is an ``=`` filter on the key column, so the column's
    collation on that side decides equality.

    Returns:
        ``{key: candidate}`` for every key that matched a not yet taken
        candidate.
    """
    matches: dict[SqlValue, SqlValue] = {}
    for key in keys:
        if not isinstance(key, str):
            continue
        try:
            rows = await client.select(table.name, [key_column], filters={key_column: key})
        except SQLAlchemyError as e:
            raise TableReadError(table.name, side, str(e)) from e
        for row in rows:
            other = row[key_column]
            if other in candidates and other not in matches.values():
                matches[key] = other
                break
    return matches


async def _align_collated_keys(
    source: DatabaseClient,
    destination: DatabaseClient,
    table: TableSchema,
    key_column: str,
    source_rows: dict[SqlValue, dict[str, Any]],
    destination_rows: dict[SqlValue, dict[str, Any]],
) -> dict[SqlValue, dict[str, Any]]:
    """Re-index destination rows whose key SQLite considers equal to a source key.

    Only keys left unmatched by exact comparison are looked up: first the
    source keys on the destination, then the remaining destination keys on
    the source.  Matched destination rows are re-indexed under the source
    key; their stored key value is kept in the row.
    """
    unmatched_source = [k for k in source_rows if k not in destination_rows]
    unmatched_destination = [k for k in destination_rows if k not in source_rows]
    if not any(isinstance(k, str) for k in unmatched_source) or not any(
        isinstance(k, str) for k in unmatched_destination
    ):
        return destination_rows

    # source key -> destination key
    renames = await _match_keys(
        destination, table, key_column, unmatched_source,
        dict.fromkeys(unmatched_destination), DESTINATION,
    )

    remaining_source = [k for k in unmatched_source if k not in renames]
    taken = set(renames.values())
    remaining_destination = [k for k in unmatched_destination if k not in taken]
    if remaining_source and remaining_destination:
        reverse = await _match_keys(
            source, table, key_column, remaining_destination,
            dict.fromkeys(remaining_source), SOURCE,
        )
        renames.update({s: d for d, s in reverse.items()})

    if not renames:
        return destination_rows

    by_destination_key = {d: s for s, d in renames.items()}
    for d, s in by_destination_key.items():
        logger.debug("Matched %s key %r to %r by collation", table.name, d, s)
    return {by_destination_key.get(k, k): row for k, row in destination_rows.items()}


async def _apply_row(
    client: DatabaseClient,
    conn: Any,
    table: TableSchema,
    key_column: str,
    decision: RowDecision,
    side: str,
) -> None:
    """Write one decision to one side."""
    row = decision.row or {}

    if decision.action.is_insert:
        await client.insert(table.name, row, conn=conn)
        return

    data = {col: row[col] for col in table.non_key_columns if col in row}
    target_key = decision.key if decision.target_key is None else decision.target_key
    matched = await client.update(
        table.name, data, {key_column: target_key}, conn=conn
    )
    if matched == 0:
        raise RowApplyError(
            "Update matched no row",
            table=table.name,
            key=decision.key,
            action=decision.action.value,
            side=side,
        )


async def _apply_decisions(
    client: DatabaseClient,
    table: TableSchema,
    key_column: str,
    decisions: list[RowDecision],
    side: str,
    report: TableSyncReport,
) -> None:
    """Apply one side's decisions inside a single transaction.

    Each row gets its own SAVEPOINT: a failing row is rolled back and
    recorded, the rest of the batch continues.  Counts are only added to
    the report once the batch has committed.
    """
    if not decisions:
        return

    applied: Counter[SyncDecision] = Counter()
    row_errors: list[RowApplyError] = []

    try:
        async with client.transaction() as conn:
            for decision in decisions:
                try:
                    async with conn.begin_nested():
                        await _apply_row(client, conn, table, key_column, decision, side)
                except RowApplyError as e:
                    row_errors.append(e)
                    continue
                except SQLAlchemyError as e:
                    row_errors.append(
                        RowApplyError(
                            str(getattr(e, "orig", None) or e),
                            table=table.name,
                            key=decision.key,
                            action=decision.action.value,
                            side=side,
                        )
                    )
                    continue
                applied[decision.action] += 1
    except SQLAlchemyError as e:
        # Batch rolled back: nothing on this side was written.
        logger.warning("Rolled back %s batch for table %s: %s", side, table.name, e)
        report.failed += len(decisions)
        report.errors.append(f"{side} batch rolled back: {e}")
        return

    for action, count in applied.items():
        report.record(action, count)

    for error in row_errors:
        logger.warning("Row apply failed: %s", error)
        report.failed += 1
        report.errors.append(str(error))


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------


async def reconcile_table(
    source: DatabaseClient,
    destination: DatabaseClient,
    table: TableSchema,
    updated_field: str = "updated_at",
    destination_table: TableSchema | None = None,
    dry_run: bool = False,
) -> TableSyncReport:
    """Bring one table into agreement on both databases.

    Steps:

    1. Check the timestamp column exists (before anything is written).
    2. Create the table on the destination if a probe read fails.
    3. Read both row sets, match text keys that differ only under the key
       column's collation, and plan each key with ``plan_table()``.
    4. Apply destination writes, then source writes, each side in one
       transaction with a SAVEPOINT per row.

    Args:
        source: Source database client.
        destination: Destination database client.
        table: Source schema of the table; must have a single-column key.
        updated_field: Timestamp column deciding the last write.
            Defaults to ``"updated_at"``.
        destination_table: Destination schema of the table, when it exists
            there.  Used to check the timestamp column on that side.
        dry_run: If ``True``, plan only -- nothing is created or written.

    Returns:
        ``TableSyncReport`` with per-decision counts.  Row failures are
        recorded in it, never raised.

    Raises:
        MissingTimestampColumn: The table cannot be ordered by last write.
        DestinationCreateError: The table could not be created on the
            destination.
        TableReadError: Rows could not be read from one side.
        ValueError: The table has no single-column primary key.
    """
    key_column = table.primary_key_column
    if key_column is None:
        raise ValueError(f"Table '{table.name}' has no single-column primary key")

    updated_field = require_timestamp_column(table, updated_field, destination_table)

    report = TableSyncReport(table=table.name)

    try:
        exists = await destination.table_exists(table.name)
    except SQLAlchemyError as e:
        raise TableReadError(table.name, DESTINATION, str(e)) from e

    if not exists:
        logger.info("Table %s does not exist in destination, creating it", table.name)
        if not dry_run:
            await _create_destination_table(destination, table)
        report.created_in_destination = True

    source_rows = await _load_rows(source, table, key_column, SOURCE, report)
    if exists:
        destination_rows = await _load_rows(
            destination, table, key_column, DESTINATION, report
        )
        destination_rows = await _align_collated_keys(
            source, destination, table, key_column, source_rows, destination_rows
        )
    else:
        destination_rows = {}

    plan = plan_table(table, source_rows, destination_rows, updated_field)

    report.unchanged = plan.unchanged
    report.collisions = len(plan.collisions)
    report.collision_keys = [repr(d.key) for d in plan.collisions]
    for decision in plan.collisions:
        logger.warning(
            "Write collision in %s for key %r: equal %s, different values; left unchanged",
            table.name,
            decision.key,
            updated_field,
        )

    if dry_run:
        for action in SyncDecision:
            if action is not SyncDecision.NOOP:
                report.record(action, plan.count(action))
        report.status = TableStatus.PLANNED
        return report

    await _apply_decisions(
        destination, table, key_column, plan.for_destination, DESTINATION, report
    )
    await _apply_decisions(
        source, table, key_column, plan.for_source, SOURCE, report
    )

    report.status = TableStatus.SYNCED
    logger.info(
        "Synced %s: %d to destination, %d to source, %d unchanged, %d collisions, %d failed",
        table.name,
        report.rows_to_destination,
        report.rows_to_source,
        report.unchanged,
        report.collisions,
        report.failed,
    )
    return report
