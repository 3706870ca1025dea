"""Pydantic models for schema introspection and classification.

This module contains schema-domain models:
- Introspection models: ColumnInfo, TableSchema, DatabaseSchema
- Classification model: SchemaClassification

Sync reports (TableSyncReport, SyncReport) live next to the code that
produces them in db_sync.schema.reconciler and db_sync.schema.sync.
"""

from pydantic import BaseModel, ConfigDict, Field

from db_sync.schema.values import SqlValue, parse_default_literal


def _ascii_lower(name: str) -> str:
    # SQLite folds identifier case for ASCII letters only
    return "".join(c.lower() if c.isascii() else c for c in name)


# ============================================================================
# Schema Introspection Models
# ============================================================================


class ColumnInfo(BaseModel):
    """Schema for a single column, as reported by ``pragma_table_info``.

    Example:
        >>> col = ColumnInfo(ordinal=0, name="id", declared_type="INTEGER",
        ...                  is_primary_key=True, primary_key_position=1)
        >>> col.not_null
        False
    """

    model_config = ConfigDict(frozen=True)

    ordinal: int
    name: str
    declared_type: str = ""
    not_null: bool = False
    default: str | None = None  # raw SQL expression text
    is_primary_key: bool = False
    primary_key_position: int = 0  # 1-based position inside the key, 0 if not a key column

    @property
    def default_value(self) -> SqlValue:
        """Default expression converted to a typed SQLite value."""
        return parse_default_literal(self.default)


class TableSchema(BaseModel):
    """Schema for a database table.

    Example:
        >>> table = TableSchema(
        ...     name="users",
        ...     create_statement="CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)",
        ...     columns=[
        ...         ColumnInfo(ordinal=0, name="id", is_primary_key=True, primary_key_position=1),
        ...         ColumnInfo(ordinal=1, name="name"),
        ...     ],
        ... )
        >>> table.primary_key_column
        'id'
    """

    model_config = ConfigDict(frozen=True)

    name: str
    create_statement: str = ""
    columns: list[ColumnInfo] = Field(default_factory=list)

    @property
    def column_names(self) -> list[str]:
        """Column names in ordinal order."""
        return [col.name for col in self.columns]

    @property
    def primary_key_columns(self) -> list[str]:
        """Names of all columns forming the primary key, in key order."""
        key_cols = [col for col in self.columns if col.is_primary_key]
        key_cols.sort(key=lambda col: (col.primary_key_position, col.ordinal))
        return [col.name for col in key_cols]

    @property
    def primary_key_column(self) -> str | None:
        """The single primary-key column, or None for no key or a composite key."""
        key_cols = self.primary_key_columns
        if len(key_cols) == 1:
            return key_cols[0]
        return None

    @property
    def non_key_columns(self) -> list[str]:
        """Column names that are not part of the primary key."""
        return [col.name for col in self.columns if not col.is_primary_key]

    def has_column(self, name: str) -> bool:
        """True if SQLite would resolve ``name`` to one of this table's columns."""
        return self.get_column(name) is not None

    def get_column(self, name: str) -> ColumnInfo | None:
        """Return the named column, or None.

        Like SQLite, an exact match wins, otherwise names are compared
        ignoring ASCII case (``Updated_At`` finds ``updated_at``).
        """
        for col in self.columns:
            if col.name == name:
                return col
        folded = _ascii_lower(name)
        for col in self.columns:
            if _ascii_lower(col.name) == folded:
                return col
        return None


class DatabaseSchema(BaseModel):
    """All user tables of one database, in catalog order."""

    tables: dict[str, TableSchema] = Field(default_factory=dict)

    @property
    def table_names(self) -> list[str]:
        return list(self.tables.keys())

    def get(self, name: str) -> TableSchema | None:
        return self.tables.get(name)


# ============================================================================
# Classification Model
# ============================================================================


class SchemaClassification(BaseModel):
    """Partition of two schemas into syncable and non-syncable tables.

    Invariant: ``eligible_tables`` and ``ineligible_tables`` are disjoint and
    together equal ``common_tables``.

    Example:
        >>> result = SchemaClassification(common_tables=["users"], eligible_tables=["users"])
        >>> result.format_report()
        'Common tables (1): users\\nEligible tables (1): users'
    """

    common_tables: list[str] = Field(default_factory=list)
    uncommon_tables: list[str] = Field(default_factory=list)
    eligible_tables: list[str] = Field(default_factory=list)
    ineligible_tables: list[str] = Field(default_factory=list)
    source_only_tables: list[str] = Field(default_factory=list)
    destination_only_tables: list[str] = Field(default_factory=list)
    ineligible_reasons: dict[str, str] = Field(default_factory=dict)

    @property
    def has_uncommon(self) -> bool:
        """True if any table exists on only one side (warning only)."""
        return len(self.uncommon_tables) > 0

    def format_report(self) -> str:
        """Format classification as a human-readable report."""
        sections = [
            ("Common tables", self.common_tables),
            ("Uncommon tables", self.uncommon_tables),
            ("Eligible tables", self.eligible_tables),
            ("Ineligible tables", self.ineligible_tables),
        ]
        lines = []
        for title, names in sections:
            if names:
                lines.append(f"{title} ({len(names)}): {', '.join(names)}")
        return "\n".join(lines)
