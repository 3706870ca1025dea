"""Pydantic models for sync configuration."""

from pydantic import BaseModel, ConfigDict, Field


class SyncConfig(BaseModel):
    """Sync settings from the ``[sync]`` table of db-sync.toml.

    Example:
        >>> config = SyncConfig()
        >>> config.updated_field
        'updated_at'
    """

    model_config = ConfigDict(extra="forbid")

    updated_field: str = "updated_at"
    strict: bool = False  # table/row failures make the run exit non-zero
    create_missing_tables: bool = True  # create source-only tables on the destination
    tables: list[str] = Field(default_factory=list)  # empty means all tables
    exclude_tables: list[str] = Field(default_factory=list)

    def is_selected(self, table: str) -> bool:
        """True if the table is neither excluded nor outside ``tables``."""
        if table in self.exclude_tables:
            return False
        return not self.tables or table in self.tables
